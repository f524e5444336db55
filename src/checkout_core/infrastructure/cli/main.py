import logging

import click

from checkout_core.infrastructure.cli.checkout_commands import checkout_place
from checkout_core.infrastructure.cli.pricing_commands import pricing_installments, pricing_total
from checkout_core.infrastructure.cli.shipping_commands import shipping_address, shipping_quote


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output.")
def cli(verbose: bool) -> None:
    """Storefront checkout: totals, shipping and order placement."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.group()
def pricing() -> None:
    """Totals and installments."""


@cli.group()
def shipping() -> None:
    """Carrier quotes and address lookup."""


# Register subcommands
pricing.add_command(pricing_total)
pricing.add_command(pricing_installments)
shipping.add_command(shipping_quote)
shipping.add_command(shipping_address)
cli.add_command(checkout_place)
