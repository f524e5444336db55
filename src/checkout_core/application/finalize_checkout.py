"""Application service: Finalization Coordinator.

Owns the CheckoutSession.  Reads only the published validity signals
and snapshots of the three resolvers, freezes them into an OrderDraft
and hands that to the order service exactly once per attempt.

The coordinator never retries a failed submission on its own; the
customer has to call ``retry()`` and submit again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from checkout_core.application.delivery import DeliveryResolver
from checkout_core.application.dto import SessionView, ValiditySignals
from checkout_core.application.identification import IdentificationResolver
from checkout_core.application.observable import Observable
from checkout_core.application.payment import PaymentResolver
from checkout_core.domain.exceptions import OrderSubmissionFailure, ValidationError
from checkout_core.domain.gateway.order_service import OrderService
from checkout_core.domain.model.cart import CartLine, cart_subtotal, validate_cart
from checkout_core.domain.model.identity import Authenticated, Guest
from checkout_core.domain.model.payment import PaymentMethod
from checkout_core.domain.model.session import (
    CheckoutSession,
    CheckoutStatus,
    OrderDraft,
    OrderTotals,
)
from checkout_core.domain.model.value_objects import Money
from checkout_core.domain.service.order_total import compute_totals

logger = logging.getLogger(__name__)

DEFAULT_SUBMIT_TIMEOUT = 30.0
SUBMIT_FAILURE_REASON = "Could not place the order. Please try again."


class CheckoutCoordinator(Observable):

    def __init__(
        self,
        lines: Sequence[CartLine],
        identification: IdentificationResolver,
        delivery: DeliveryResolver,
        payment: PaymentResolver,
        order_service: OrderService,
        *,
        submit_timeout: float = DEFAULT_SUBMIT_TIMEOUT,
    ) -> None:
        super().__init__()
        self._session = CheckoutSession(lines=tuple(lines))
        self.identification = identification
        self.delivery = delivery
        self.payment = payment
        self._order_service = order_service
        self._submit_timeout = submit_timeout

        for resolver in self._resolvers:
            resolver.subscribe(self._notify)

    @property
    def _resolvers(self):
        return (self.identification, self.delivery, self.payment)

    # --- Queries --------------------------------------------------------------

    @property
    def status(self) -> CheckoutStatus:
        return self._session.status

    @property
    def order_id(self) -> str | None:
        return self._session.order_id

    @property
    def failure_reason(self) -> str | None:
        return self._session.failure_reason

    def signals(self) -> ValiditySignals:
        return ValiditySignals(
            identification=self.identification.valid,
            delivery=self.delivery.valid,
            payment=self.payment.valid,
        )

    def totals(self) -> OrderTotals:
        """The payable amount, as shown on screen and as submitted."""
        subtotal = cart_subtotal(self._session.lines)
        fee = self.delivery.fee or Money.zero(subtotal.currency)
        return compute_totals(
            subtotal,
            fee,
            self.payment.method,
            self.payment.settings.pix_discount_percent,
        )

    @property
    def can_submit(self) -> bool:
        return self._session.status == CheckoutStatus.BUILDING and self.signals().all_valid

    @property
    def session(self) -> SessionView:
        totals = self.totals()
        return SessionView(
            status=self._session.status,
            identification=self.identification.snapshot(),
            delivery=self.delivery.snapshot(),
            payment=self.payment.snapshot(totals.total),
            lines=self._session.lines,
            totals=totals,
            signals=self.signals(),
            order_id=self._session.order_id,
            failure_reason=self._session.failure_reason,
        )

    # --- Commands -------------------------------------------------------------

    async def submit(self) -> CheckoutStatus:
        """Submit the order once every resolver is satisfied.

        Ignored (returns the current status) unless the session is
        BUILDING.  Raises ValidationError, without touching the network,
        when the cart is empty or a resolver is not valid.
        """
        if self._session.status != CheckoutStatus.BUILDING:
            logger.info("Ignoring submit while checkout is %s", self._session.status.value)
            return self._session.status

        validate_cart(self._session.lines)
        signals = self.signals()
        if not signals.all_valid:
            raise ValidationError(
                f"Checkout is not ready: {', '.join(signals.blocking)} incomplete"
            )

        draft = self._build_draft()
        self._session.begin_submission(draft)
        for resolver in self._resolvers:
            resolver.lock()
        self._notify()
        logger.info(
            "Submitting order %s (%s, %s, total %s)",
            draft.reference,
            draft.delivery_method,
            draft.payment_method.value,
            draft.total,
        )

        try:
            order_id = await asyncio.wait_for(
                self._order_service.submit(draft), timeout=self._submit_timeout
            )
        except OrderSubmissionFailure as exc:
            logger.warning("Order %s was not accepted: %s", draft.reference, exc)
            return self._fail(draft, str(exc))
        except asyncio.TimeoutError:
            logger.warning(
                "Order %s timed out after %ss", draft.reference, self._submit_timeout
            )
            return self._fail(draft, SUBMIT_FAILURE_REASON)
        except Exception:
            logger.exception("Order service crashed while submitting %s", draft.reference)
            return self._fail(draft, SUBMIT_FAILURE_REASON)

        self._session.mark_succeeded(order_id)
        logger.info("Order %s recorded as #%s", draft.reference, order_id)
        self._notify()
        return self._session.status

    def retry(self) -> None:
        """Return a failed checkout to BUILDING with its data intact."""
        self._session.reopen()
        for resolver in self._resolvers:
            resolver.unlock()
        self._notify()

    async def aclose(self) -> None:
        for resolver in self._resolvers:
            await resolver.aclose()

    # --- Internal helpers -----------------------------------------------------

    def _fail(self, draft: OrderDraft, reason: str) -> CheckoutStatus:
        self._session.mark_failed(reason)
        if draft.payment_method == PaymentMethod.CREDIT_CARD:
            self.payment.invalidate_credential()
        self._notify()
        return self._session.status

    def _build_draft(self) -> OrderDraft:
        identity = self.identification.identity()
        if not isinstance(identity, (Authenticated, Guest)):
            raise ValidationError("Customer identification is incomplete")

        method = self.delivery.method
        payment_method = self.payment.method
        if method is None or payment_method is None:
            raise ValidationError("Select delivery and payment methods")

        return OrderDraft(
            identity=identity,
            lines=self._session.lines,
            delivery_method=method,
            destination=None if method.is_pickup else self.delivery.address,
            payment_method=payment_method,
            credential=(
                self.payment.credential
                if payment_method == PaymentMethod.CREDIT_CARD
                else None
            ),
            totals=self.totals(),
        )
