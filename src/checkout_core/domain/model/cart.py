"""Cart lines handed to the checkout.

The cart is owned by the storefront; checkout only reads it.  Each line
captures the unit price at the moment checkout started (price snapshot).
"""

from __future__ import annotations

from dataclasses import dataclass

from checkout_core.domain.exceptions import ValidationError
from checkout_core.domain.model.value_objects import Money, Quantity

MAX_CART_LINES = 50


@dataclass(frozen=True)
class CartLine:

    product_id: str
    unit_price: Money  # locked at checkout start
    quantity: Quantity
    product_name: str = ""

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


def cart_subtotal(lines: tuple[CartLine, ...] | list[CartLine]) -> Money:
    """Sum of line totals, quantised to the minor unit."""
    if not lines:
        return Money.zero()
    result = Money.zero(lines[0].unit_price.currency)
    for line in lines:
        result = result + line.line_total
    return result.quantize()


def validate_cart(lines: tuple[CartLine, ...] | list[CartLine]) -> None:
    if not lines:
        raise ValidationError("Cart must contain at least one item")
    if len(lines) > MAX_CART_LINES:
        raise ValidationError(f"Maximum {MAX_CART_LINES} items per order")
