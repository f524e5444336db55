"""Domain service: Order Total Calculator.

The single source of truth for what the customer pays.  The on-screen
summary, the installment schedule and the submitted order all read
from here, so the displayed and charged amounts cannot drift apart.
"""

from __future__ import annotations

from decimal import Decimal

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.payment import MAX_INSTALLMENTS, Installment, PaymentMethod
from checkout_core.domain.model.session import OrderTotals
from checkout_core.domain.model.value_objects import Money


def compute_totals(
    subtotal: Money,
    delivery_fee: Money,
    payment_method: PaymentMethod | None,
    pix_discount_percent: Decimal,
) -> OrderTotals:
    """Combine subtotal, delivery fee and the payment-method discount.

    PIX gets ``round((subtotal + fee) * (1 - pct/100))``; every other
    method (or no method yet) pays ``subtotal + fee``.
    """
    base = (subtotal + delivery_fee).quantize()
    if payment_method == PaymentMethod.PIX:
        total = base.percent_off(Decimal(pix_discount_percent))
    else:
        total = base
    return OrderTotals(
        subtotal=subtotal.quantize(),
        delivery_fee=delivery_fee.quantize(),
        discount=base - total,
        total=total,
    )


def payable_total(
    subtotal: Money,
    delivery_fee: Money,
    payment_method: PaymentMethod | None,
    pix_discount_percent: Decimal,
) -> Money:
    return compute_totals(subtotal, delivery_fee, payment_method, pix_discount_percent).total


def installment_schedule(total: Money, max_installments_no_interest: int) -> list[Installment]:
    """Interest-free installment options for *total*.

    One entry per ``n`` in ``1..min(max, 12)``, each amount rounded
    half-up, so ``n * amount`` is within ``n`` cents of the total.
    """
    if max_installments_no_interest < 1:
        raise ValidationError("Stores must allow at least one installment")
    upper = min(max_installments_no_interest, MAX_INSTALLMENTS)
    return [Installment(count=n, amount=total.split(n)) for n in range(1, upper + 1)]
