"""CLI commands for the order total calculator."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import click

from checkout_core.domain.exceptions import DomainException
from checkout_core.domain.model.payment import PaymentMethod
from checkout_core.domain.model.value_objects import Money
from checkout_core.domain.service.order_total import compute_totals, installment_schedule

PAYMENT_CHOICES = [m.value for m in PaymentMethod]


def _percent(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise click.BadParameter(f"Invalid percentage '{raw}'.")


@click.command("total")
@click.option("--subtotal", required=True, help="Cart subtotal (e.g. 100.00).")
@click.option("--fee", default="0", show_default=True, help="Delivery fee.")
@click.option("--payment", type=click.Choice(PAYMENT_CHOICES), default=None, help="Payment method.")
@click.option("--pix-discount", default="0", show_default=True, help="PIX discount percent.")
def pricing_total(subtotal: str, fee: str, payment: str | None, pix_discount: str) -> None:
    """Show the payable total for a cart."""
    try:
        totals = compute_totals(
            Money.of(subtotal),
            Money.of(fee),
            PaymentMethod(payment) if payment else None,
            _percent(pix_discount),
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"{'Subtotal':<12} {str(totals.subtotal):>14}")
    click.echo(f"{'Delivery':<12} {str(totals.delivery_fee):>14}")
    if not totals.discount.is_zero:
        click.echo(f"{'Discount':<12} {'-' + str(totals.discount):>14}")
    click.echo("-" * 27)
    click.echo(f"{'Total':<12} {str(totals.total):>14}")


@click.command("installments")
@click.option("--total", "total", required=True, help="Payable total (e.g. 300.00).")
@click.option("--max", "max_installments", default=1, show_default=True, type=int,
              help="Maximum interest-free installments configured by the store.")
def pricing_installments(total: str, max_installments: int) -> None:
    """List interest-free installment options."""
    try:
        schedule = installment_schedule(Money.of(total), max_installments)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    for installment in schedule:
        click.echo(str(installment))
