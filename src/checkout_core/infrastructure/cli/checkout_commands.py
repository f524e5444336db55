"""CLI command that runs a whole checkout against the configured adapters."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import click

from checkout_core.application.dto import SessionView
from checkout_core.domain.exceptions import DomainException, EntityNotFoundError
from checkout_core.domain.model.cart import CartLine
from checkout_core.domain.model.delivery import DeliveryMethod
from checkout_core.domain.model.identity import IdentificationState
from checkout_core.domain.model.payment import PaymentMethod
from checkout_core.domain.model.session import CheckoutStatus
from checkout_core.domain.model.value_objects import Money, Quantity
from checkout_core.infrastructure import bootstrap


@dataclass(frozen=True)
class _Customer:
    email: str
    name: str
    phone: str
    store_name: str
    password: str | None


@dataclass(frozen=True)
class _Card:
    number: str
    expiry: str
    holder: str
    cvv: str
    tax_id: str
    installments: int


def _parse_items(raw: str) -> list[CartLine]:
    """Parse 'sku-1:15.00:2,sku-2:9.90:1' into CartLine list."""
    lines: list[CartLine] = []
    for entry in raw.split(","):
        entry = entry.strip()
        parts = entry.split(":")
        if len(parts) != 3:
            raise click.BadParameter(
                f"Invalid item format '{entry}'. Expected 'ProductId:Price:Qty'."
            )
        product_id, price, qty_str = (p.strip() for p in parts)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(
                f"Invalid quantity '{qty_str}' for product '{product_id}'."
            )
        try:
            lines.append(
                CartLine(product_id=product_id, unit_price=Money.of(price), quantity=Quantity(qty))
            )
        except DomainException as exc:
            raise click.BadParameter(str(exc))
    return lines


def _parse_delivery(raw: str) -> DeliveryMethod:
    if raw == "pickup":
        return DeliveryMethod.pickup()
    if raw == "local":
        return DeliveryMethod.local_courier()
    if raw.startswith("carrier:") and raw.split(":", 1)[1]:
        return DeliveryMethod.carrier(raw.split(":", 1)[1])
    raise click.BadParameter(
        f"Invalid delivery '{raw}'. Expected 'pickup', 'local' or 'carrier:<service id>'."
    )


async def _run_checkout(
    store_id: str,
    lines: list[CartLine],
    customer: _Customer,
    delivery_method: DeliveryMethod,
    address: dict[str, str],
    payment_method: PaymentMethod,
    card: _Card | None,
) -> SessionView:
    settings = bootstrap.load_settings()
    store = bootstrap.store_settings_repository(settings).get_by_id(store_id)
    if store is None:
        raise EntityNotFoundError(f"Store '{store_id}' not found")

    async with bootstrap.http_client() as client:
        checkout = bootstrap.build_checkout(settings, store, lines, client)
        try:
            identification = checkout.identification
            identification.edit_email(customer.email)
            identification.update_guest(
                full_name=customer.name, phone=customer.phone, store_name=customer.store_name
            )
            await identification.settle()
            if identification.state == IdentificationState.EMAIL_EXISTS:
                if not customer.password:
                    raise click.ClickException(
                        f"An account already exists for {customer.email}; "
                        f"pass --password to log in."
                    )
                await identification.login(customer.password)

            delivery = checkout.delivery
            if not delivery_method.is_pickup:
                delivery.set_postal_code(address.pop("postal_code", ""))
                await delivery.settle()
                delivery.update_address(**{k: v for k, v in address.items() if v})
            delivery.select(delivery_method)

            payment = checkout.payment
            payment.select(payment_method)
            if payment_method == PaymentMethod.CREDIT_CARD and card is not None:
                payment.edit_card(
                    number=card.number,
                    expiry=card.expiry,
                    holder_name=card.holder,
                    cvv=card.cvv,
                    tax_id=card.tax_id,
                )
                payment.set_installments(card.installments)
                await payment.tokenize()

            await checkout.submit()
            return checkout.session
        finally:
            await checkout.aclose()


@click.command("place")
@click.option("--store", "store_id", required=True, help="Store ID.")
@click.option("--items", required=True, help="Items as 'ProductId:Price:Qty,...'.")
@click.option("--email", required=True, help="Customer e-mail.")
@click.option("--name", default="", help="Customer full name (guests).")
@click.option("--phone", default="", help="Customer phone.")
@click.option("--store-name", default="", help="Customer store name (guests).")
@click.option("--password", default=None, help="Log in if the e-mail has an account.")
@click.option("--delivery", "delivery_raw", required=True,
              help="'pickup', 'local' or 'carrier:<service id>'.")
@click.option("--cep", default="", help="Destination postal code.")
@click.option("--street", default="")
@click.option("--number", default="")
@click.option("--complement", default="")
@click.option("--neighborhood", default="")
@click.option("--city", default="")
@click.option("--state", default="")
@click.option("--payment", "payment_raw", required=True,
              type=click.Choice([m.value for m in PaymentMethod]))
@click.option("--card-number", default="")
@click.option("--card-expiry", default="", help="MM/YY")
@click.option("--card-holder", default="")
@click.option("--card-cvv", default="")
@click.option("--tax-id", default="", help="Cardholder CPF/CNPJ.")
@click.option("--installments", default=1, show_default=True, type=int)
def checkout_place(
    store_id: str,
    items: str,
    email: str,
    name: str,
    phone: str,
    store_name: str,
    password: str | None,
    delivery_raw: str,
    cep: str,
    street: str,
    number: str,
    complement: str,
    neighborhood: str,
    city: str,
    state: str,
    payment_raw: str,
    card_number: str,
    card_expiry: str,
    card_holder: str,
    card_cvv: str,
    tax_id: str,
    installments: int,
) -> None:
    """Run a checkout end to end and place the order."""
    lines = _parse_items(items)
    delivery_method = _parse_delivery(delivery_raw)
    payment_method = PaymentMethod(payment_raw)
    card = None
    if payment_method == PaymentMethod.CREDIT_CARD:
        card = _Card(card_number, card_expiry, card_holder, card_cvv, tax_id, installments)

    address = {
        "postal_code": cep,
        "street": street,
        "number": number,
        "complement": complement,
        "neighborhood": neighborhood,
        "city": city,
        "state": state,
    }

    try:
        view = asyncio.run(
            _run_checkout(
                store_id,
                lines,
                _Customer(email, name, phone, store_name, password),
                delivery_method,
                address,
                payment_method,
                card,
            )
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if view.status != CheckoutStatus.SUCCEEDED:
        raise click.ClickException(view.failure_reason or f"Checkout ended as {view.status.value}")

    click.echo(f"Order #{view.order_id} placed  (status={view.status.value})")
    click.echo(f"  {'Subtotal':<20} {str(view.totals.subtotal):>14}")
    click.echo(f"  {'Delivery':<20} {str(view.totals.delivery_fee):>14}")
    if not view.totals.discount.is_zero:
        click.echo(f"  {'Discount':<20} {'-' + str(view.totals.discount):>14}")
    click.echo(f"  {'-'*35}")
    click.echo(f"  {'Order Total':<20} {str(view.totals.total):>14}")
    credential = view.payment.credential
    if credential is not None:
        click.echo(
            f"  Card {credential.brand} ****{credential.last_four} "
            f"in {credential.installments}x"
        )
