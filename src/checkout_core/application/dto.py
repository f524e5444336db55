"""Read-only snapshots that cross from the checkout core to the UI.

Resolvers publish these upward; nothing downstream ever reaches into a
resolver's internal state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from checkout_core.domain.model.address import Address
from checkout_core.domain.model.cart import CartLine
from checkout_core.domain.model.delivery import DeliveryMethod
from checkout_core.domain.model.identity import Identity, IdentificationState
from checkout_core.domain.model.payment import CardCredential, Installment, PaymentMethod
from checkout_core.domain.model.session import CheckoutStatus, OrderTotals
from checkout_core.domain.model.value_objects import Money


@dataclass(frozen=True)
class IdentificationSnapshot:
    state: IdentificationState
    valid: bool
    identity: Identity
    errors: dict[str, str] = field(default_factory=dict)
    email_exists: bool = False
    lookup_pending: bool = False
    login_link_sent: bool = False


@dataclass(frozen=True)
class DeliveryOptionView:
    """One selectable row in the delivery list."""

    method: DeliveryMethod
    label: str
    selectable: bool
    loading: bool = False
    fee: Money | None = None
    estimated_days: tuple[int, int] | None = None


@dataclass(frozen=True)
class DeliverySnapshot:
    method: DeliveryMethod | None
    valid: bool
    fee: Money | None
    estimated_days: tuple[int, int] | None
    destination: Address | None
    options: tuple[DeliveryOptionView, ...] = ()
    missing_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class PaymentSnapshot:
    method: PaymentMethod | None
    valid: bool
    enabled_methods: tuple[PaymentMethod, ...]
    installments: tuple[Installment, ...] = ()
    selected_installments: int = 1
    credential: CardCredential | None = None
    card_brand: str = "unknown"
    card_errors: dict[str, str] = field(default_factory=dict)
    tokenizing: bool = False
    last_error: str | None = None


@dataclass(frozen=True)
class ValiditySignals:
    identification: bool
    delivery: bool
    payment: bool

    @property
    def all_valid(self) -> bool:
        return self.identification and self.delivery and self.payment

    @property
    def blocking(self) -> list[str]:
        """Names of the resolvers still holding submission back."""
        return [
            name
            for name, ok in (
                ("identification", self.identification),
                ("delivery", self.delivery),
                ("payment", self.payment),
            )
            if not ok
        ]


@dataclass(frozen=True)
class SessionView:
    """Everything a renderer needs, in one immutable projection."""

    status: CheckoutStatus
    identification: IdentificationSnapshot
    delivery: DeliverySnapshot
    payment: PaymentSnapshot
    lines: tuple[CartLine, ...]
    totals: OrderTotals
    signals: ValiditySignals
    order_id: str | None = None
    failure_reason: str | None = None

    @property
    def can_submit(self) -> bool:
        return self.status == CheckoutStatus.BUILDING and self.signals.all_valid
