"""Value objects shared by every part of the checkout.

Amounts are Brazilian reais held as ``Decimal``.  Anything that divides
or scales an amount rounds back to centavos through ``round_minor`` so
the figure on screen is the figure charged.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from checkout_core.domain.exceptions import ValidationError

MINOR_UNIT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")


def round_minor(amount: Decimal) -> Decimal:
    """Round to centavos, half-up."""
    return amount.quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """A non-negative amount in one currency (BRL unless stated)."""

    amount: Decimal
    currency: str = "BRL"

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValidationError(
                f"Money amount must be a Decimal, got {type(self.amount).__name__}"
            )
        if self.amount < ZERO:
            raise ValidationError(f"Money amount cannot be negative, got {self.amount}")

    @classmethod
    def of(cls, amount: str | int | Decimal, currency: str = "BRL") -> Money:
        """Build from user or JSON input; bad input is a ValidationError."""
        try:
            return cls(Decimal(str(amount)), currency)
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid money amount: {amount!r}") from exc

    @classmethod
    def zero(cls, currency: str = "BRL") -> Money:
        return cls(Decimal("0.00"), currency)

    # --- Arithmetic -----------------------------------------------------------

    def __add__(self, other: Money) -> Money:
        return Money(self.amount + self._same_currency(other), self.currency)

    def __sub__(self, other: Money) -> Money:
        difference = self.amount - self._same_currency(other)
        if difference < ZERO:
            raise ValidationError(
                f"{self} minus {other} would result in a negative amount"
            )
        return Money(difference, self.currency)

    def __mul__(self, count: int) -> Money:
        if not isinstance(count, int):
            raise TypeError(f"Money can only be multiplied by an int count, got {count!r}")
        return Money(self.amount * count, self.currency)

    def __lt__(self, other: Money) -> bool:
        return self.amount < self._same_currency(other)

    def __le__(self, other: Money) -> bool:
        return self.amount <= self._same_currency(other)

    def __gt__(self, other: Money) -> bool:
        return self.amount > self._same_currency(other)

    def __ge__(self, other: Money) -> bool:
        return self.amount >= self._same_currency(other)

    # --- Rounding -------------------------------------------------------------

    def quantize(self) -> Money:
        return Money(round_minor(self.amount), self.currency)

    def scale(self, factor: Decimal) -> Money:
        if factor < ZERO:
            raise ValidationError(f"Scale factor cannot be negative, got {factor}")
        return Money(round_minor(self.amount * factor), self.currency)

    def percent_off(self, percent: Decimal) -> Money:
        """``round(amount * (1 - percent/100))``, percent in 0..100."""
        if not ZERO <= percent <= HUNDRED:
            raise ValidationError(f"Discount percent must be between 0 and 100, got {percent}")
        return self.scale(1 - percent / HUNDRED)

    def split(self, parts: int) -> Money:
        """One of *parts* equal installments, rounded to centavos."""
        if not isinstance(parts, int) or parts < 1:
            raise ValidationError(f"Cannot split money into {parts!r} parts")
        return Money(round_minor(self.amount / parts), self.currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == ZERO

    def __str__(self) -> str:
        return f"R$ {round_minor(self.amount):.2f}"

    def _same_currency(self, other: Money) -> Decimal:
        if other.currency != self.currency:
            raise ValidationError(f"Cannot combine {self.currency} with {other.currency}")
        return other.amount


@dataclass(frozen=True)
class Quantity:
    """How many units of a product a cart line holds (at least one)."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value < 1:
            raise ValidationError(f"Quantity must be positive, got {self.value}")

    def __str__(self) -> str:
        return str(self.value)


def digits_only(raw: str | None) -> str:
    """Keep ASCII digits only (drops CEP, CPF and card-number masks)."""
    return "".join(ch for ch in (raw or "") if ch.isascii() and ch.isdigit())
