"""CheckoutSession aggregate and the immutable order draft it produces.

The session is owned by the finalization coordinator.  Status only moves
forward: BUILDING -> SUBMITTING -> SUCCEEDED | FAILED, with FAILED ->
BUILDING allowed for a retry.  SUCCEEDED is terminal.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.address import Address
from checkout_core.domain.model.cart import CartLine
from checkout_core.domain.model.delivery import DeliveryMethod
from checkout_core.domain.model.identity import Authenticated, Guest
from checkout_core.domain.model.payment import CardCredential, PaymentMethod
from checkout_core.domain.model.value_objects import Money


class CheckoutStatus(Enum):
    BUILDING = "BUILDING"
    SUBMITTING = "SUBMITTING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Money
    delivery_fee: Money
    discount: Money
    total: Money


@dataclass(frozen=True)
class OrderDraft:
    """Everything the order service needs, frozen at the moment of submit."""

    identity: Authenticated | Guest
    lines: tuple[CartLine, ...]
    delivery_method: DeliveryMethod
    destination: Address | None
    payment_method: PaymentMethod
    credential: CardCredential | None
    totals: OrderTotals
    reference: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def delivery_fee(self) -> Money:
        return self.totals.delivery_fee

    @property
    def total(self) -> Money:
        return self.totals.total


@dataclass
class CheckoutSession:
    """Aggregate root for one checkout attempt."""

    lines: tuple[CartLine, ...]
    status: CheckoutStatus = CheckoutStatus.BUILDING
    order_id: str | None = None
    failure_reason: str | None = None
    draft: OrderDraft | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # --- State transitions ----------------------------------------------------

    def begin_submission(self, draft: OrderDraft) -> None:
        """Transition BUILDING -> SUBMITTING."""
        if self.status != CheckoutStatus.BUILDING:
            raise ValidationError(
                f"Cannot submit checkout, current status is {self.status.value}, "
                f"expected BUILDING"
            )
        self.status = CheckoutStatus.SUBMITTING
        self.draft = draft
        self.failure_reason = None

    def mark_succeeded(self, order_id: str) -> None:
        """Transition SUBMITTING -> SUCCEEDED (terminal)."""
        if self.status != CheckoutStatus.SUBMITTING:
            raise ValidationError(
                f"Cannot complete checkout in {self.status.value} status"
            )
        self.status = CheckoutStatus.SUCCEEDED
        self.order_id = order_id

    def mark_failed(self, reason: str) -> None:
        """Transition SUBMITTING -> FAILED."""
        if self.status != CheckoutStatus.SUBMITTING:
            raise ValidationError(
                f"Cannot fail checkout in {self.status.value} status"
            )
        self.status = CheckoutStatus.FAILED
        self.failure_reason = reason

    def reopen(self) -> None:
        """Transition FAILED -> BUILDING so the customer can retry."""
        if self.status != CheckoutStatus.FAILED:
            raise ValidationError(
                f"Cannot retry checkout in {self.status.value} status"
            )
        self.status = CheckoutStatus.BUILDING
        self.draft = None

    # --- Computed properties --------------------------------------------------

    @property
    def is_editable(self) -> bool:
        return self.status == CheckoutStatus.BUILDING

    @property
    def is_terminal(self) -> bool:
        return self.status == CheckoutStatus.SUCCEEDED
