"""Payment methods, card fields and tokenized credentials."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.value_objects import Money, digits_only

MAX_INSTALLMENTS = 12


class PaymentMethod(Enum):
    PIX = "pix"
    CREDIT_CARD = "credit_card"
    BOLETO = "boleto"
    WHATSAPP = "whatsapp"


@dataclass(frozen=True)
class PaymentSettings:
    enabled_methods: frozenset[PaymentMethod] = frozenset(PaymentMethod)
    pix_discount_percent: Decimal = Decimal("0")
    max_installments_no_interest: int = 1

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.pix_discount_percent <= Decimal("100"):
            raise ValidationError(
                f"PIX discount must be between 0 and 100, got {self.pix_discount_percent}"
            )
        if self.max_installments_no_interest < 1:
            raise ValidationError("Stores must allow at least one installment")


# ---------------------------------------------------------------------------
# Card brand inference (display only, the gateway decides authoritatively)
# ---------------------------------------------------------------------------
_BRAND_PREFIXES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("elo", re.compile(r"^(636368|438935|504175|451416|636297|5067|4576|4011)")),
    ("hipercard", re.compile(r"^(606282|3841)")),
    ("visa", re.compile(r"^4")),
    ("master", re.compile(r"^(5[1-5]|2[2-7])")),
    ("amex", re.compile(r"^3[47]")),
    ("discover", re.compile(r"^6(011|5)")),
    ("jcb", re.compile(r"^(2131|1800|35)")),
    ("diners", re.compile(r"^3(0[0-5]|[68])")),
)


def infer_card_brand(number: str) -> str:
    """Guess the brand from leading digits; ``"unknown"`` when nothing matches.

    Elo and Hipercard ranges overlap visa/master prefixes, so they are
    checked first.
    """
    digits = digits_only(number)
    for brand, pattern in _BRAND_PREFIXES:
        if pattern.match(digits):
            return brand
    return "unknown"


_EXPIRY_PATTERN = re.compile(r"^\s*(\d{1,2})\s*/\s*(\d{2}|\d{4})\s*$")


def parse_expiry(raw: str) -> tuple[int, int] | None:
    """Parse ``MM/YY`` (or ``MM/YYYY``) into (month, four-digit year)."""
    match = _EXPIRY_PATTERN.match(raw or "")
    if match is None:
        return None
    month = int(match.group(1))
    year = int(match.group(2))
    if year < 100:
        year += 2000
    return month, year


@dataclass(frozen=True)
class CardFields:
    """Raw card data exactly as typed.  Never leaves the payment resolver."""

    number: str = ""
    expiry: str = ""
    holder_name: str = ""
    cvv: str = ""
    tax_id: str = ""

    @property
    def number_digits(self) -> str:
        return digits_only(self.number)

    @property
    def brand(self) -> str:
        return infer_card_brand(self.number)

    def errors(self, today: date) -> dict[str, str]:
        """Field-level problems that must be fixed before tokenization."""
        errors: dict[str, str] = {}

        if not 13 <= len(self.number_digits) <= 19:
            errors["number"] = "Card number must have between 13 and 19 digits"

        parsed = parse_expiry(self.expiry)
        if parsed is None:
            errors["expiry"] = "Expiry must be MM/YY"
        else:
            month, year = parsed
            if not 1 <= month <= 12:
                errors["expiry"] = "Expiry month must be between 01 and 12"
            elif (year, month) < (today.year, today.month):
                errors["expiry"] = "Card has expired"

        cvv = self.cvv.strip()
        if not (cvv.isdigit() and 3 <= len(cvv) <= 4):
            errors["cvv"] = "CVV must have 3 or 4 digits"

        if len(self.holder_name.strip()) < 3:
            errors["holder_name"] = "Cardholder name must have at least 3 characters"

        if self.tax_id.strip() and len(digits_only(self.tax_id)) not in (11, 14):
            errors["tax_id"] = "Tax id must be a CPF (11 digits) or CNPJ (14 digits)"

        return errors

    @property
    def expiry_month(self) -> int:
        parsed = parse_expiry(self.expiry)
        if parsed is None:
            raise ValidationError("Expiry must be MM/YY")
        return parsed[0]

    @property
    def expiry_year(self) -> int:
        parsed = parse_expiry(self.expiry)
        if parsed is None:
            raise ValidationError("Expiry must be MM/YY")
        return parsed[1]


@dataclass(frozen=True)
class TokenizedCard:
    """What the gateway hands back for a successful tokenization."""

    token: str
    brand: str


@dataclass(frozen=True)
class CardCredential:
    """Single-use card token plus what the order needs to charge it."""

    token: str
    brand: str
    installments: int
    last_four: str = ""


@dataclass(frozen=True)
class Installment:
    count: int
    amount: Money
    no_interest: bool = True

    def __str__(self) -> str:
        suffix = " (sem juros)" if self.no_interest else ""
        return f"{self.count}x de {self.amount}{suffix}"


# Issuer status details -> customer-facing text
ISSUER_MESSAGES = {
    "cc_rejected_insufficient_amount": "Insufficient funds on this card",
    "cc_rejected_bad_filled_card_number": "Invalid card number",
    "cc_rejected_bad_filled_date": "Invalid expiry date",
    "cc_rejected_bad_filled_security_code": "Invalid security code",
    "cc_rejected_card_disabled": "This card is disabled",
    "cc_rejected_high_risk": "Payment refused for security reasons",
}
GENERIC_DECLINE = "Rejected by issuer. Please try another card."
GENERIC_FAILURE = "Could not process the card. Please try again."


def issuer_message(status_detail: str | None) -> str:
    return ISSUER_MESSAGES.get(status_detail or "", GENERIC_DECLINE)
