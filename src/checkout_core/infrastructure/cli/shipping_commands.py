"""CLI commands for carrier quotation and postal-code lookup."""

from __future__ import annotations

import asyncio

import click

from checkout_core.domain.exceptions import DomainException, EntityNotFoundError
from checkout_core.domain.model.address import is_valid_postal_code
from checkout_core.infrastructure import bootstrap


@click.command("quote")
@click.option("--store", "store_id", required=True, help="Store ID.")
@click.option("--cep", required=True, help="Destination postal code.")
def shipping_quote(store_id: str, cep: str) -> None:
    """Quote the store's enabled carrier services for a postal code."""
    if not is_valid_postal_code(cep):
        raise click.BadParameter(f"Invalid postal code '{cep}'.")
    settings = bootstrap.load_settings()

    async def run():
        store = bootstrap.store_settings_repository(settings).get_by_id(store_id)
        if store is None:
            raise EntityNotFoundError(f"Store '{store_id}' not found")
        async with bootstrap.http_client() as client:
            rates = bootstrap.carrier_rates(settings, store, client)
            return await rates.quote(cep, list(store.delivery.carrier_service_ids))

    try:
        quotes = asyncio.run(run())
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not quotes:
        click.echo("No carrier quotes available.")
        return

    click.echo(f"{'Service':<28} {'Price':>12} {'Days':>8}")
    click.echo("-" * 50)
    for quote in quotes:
        if quote.available:
            days = f"{quote.estimated_days_min}-{quote.estimated_days_max}"
            click.echo(f"{quote.name:<28} {str(quote.price):>12} {days:>8}")
        else:
            click.echo(f"{quote.name:<28} {'unavailable':>12} {'--':>8}")


@click.command("address")
@click.option("--cep", required=True, help="Postal code to look up.")
def shipping_address(cep: str) -> None:
    """Look up street, neighborhood, city and state for a postal code."""
    if not is_valid_postal_code(cep):
        raise click.BadParameter(f"Invalid postal code '{cep}'.")
    settings = bootstrap.load_settings()

    async def run():
        async with bootstrap.http_client() as client:
            return await bootstrap.address_lookup(settings, client).lookup(cep)

    try:
        found = asyncio.run(run())
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if found is None:
        click.echo(f"No address found for {cep}.")
        return
    click.echo(f"Street:       {found.street}")
    click.echo(f"Neighborhood: {found.neighborhood}")
    click.echo(f"City:         {found.city}/{found.state}")
