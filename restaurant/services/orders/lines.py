"""
Order Line-Item Manager

Each add-to-order call is a discrete event and becomes its own line;
lines are never merged, renumbered or deleted. ``recompute_total`` is the
only code path that writes ``Order.sum_price``.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import Iterable, Optional

from restaurant.core.errors import InvalidArgumentError, InvalidTransitionError
from restaurant.records import (
    FoodRecord,
    OrderLineRecord,
    OrderLineStatus,
    OrderRecord,
)
from restaurant.repositories.base import BaseOrderRepository

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def compute_total(lines: Iterable[OrderLineRecord]) -> Decimal:
    """Σ price × quantity over the lines that are not cancelled."""
    total = sum(
        (line.subtotal for line in lines if not line.is_cancelled),
        Decimal("0"),
    )
    return total.quantize(CENTS)


def _validate_quantity(quantity) -> int:
    # bool is an int subclass; True is not a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidArgumentError(
            f"Quantity must be a positive integer, got {quantity!r}"
        )
    return quantity


def _validate_price(price) -> Decimal:
    try:
        price = Decimal(str(price))
    except ArithmeticError:
        raise InvalidArgumentError(f"Invalid price {price!r}")
    if not price.is_finite() or price < 0:
        raise InvalidArgumentError(f"Price must be a non-negative amount, got {price}")
    return price.quantize(CENTS)


class OrderLineManager:
    """
    Creates and mutates order lines and keeps the order total in step.

    Callers run every method inside the same transaction as the
    ``recompute_total`` that follows it, with the order row locked.
    """

    def __init__(self, orders: BaseOrderRepository):
        self.orders = orders

    async def add_line(
        self,
        order: OrderRecord,
        food: FoodRecord,
        quantity: int,
        price_override: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> OrderLineRecord:
        """
        Append a new line to the order.

        Price and description are copied from the catalog entry at call
        time, so later catalog edits never rewrite order history.

        Raises:
            InvalidArgumentError: Bad quantity or price, or unavailable food
        """
        quantity = _validate_quantity(quantity)
        if price_override is not None:
            price = _validate_price(price_override)
        else:
            price = _validate_price(food.price)

        if not food.is_available:
            raise InvalidArgumentError(f"Food #{food.id} ({food.name}) is not available")

        line = await self.orders.insert_line(
            order_id=order.id,
            food_id=food.id,
            price=price,
            quantity=quantity,
            description=description if description is not None else food.name,
        )
        logger.info(
            f"Order #{order.id}: added line #{line.id} "
            f"(food #{food.id}, {quantity} x {price})"
        )
        return line

    async def cancel_line(self, line: OrderLineRecord) -> OrderLineRecord:
        """Cancel a line. Cancelling an already-cancelled line is a no-op."""
        if line.is_cancelled:
            return line
        cancelled = await self.orders.update_line(
            replace(line, status=OrderLineStatus.CANCELLED)
        )
        logger.info(f"Order #{line.order_id}: cancelled line #{line.id}")
        return cancelled

    async def correct_line(
        self,
        line: OrderLineRecord,
        quantity: Optional[int] = None,
        price: Optional[Decimal] = None,
    ) -> OrderLineRecord:
        """
        Fix the quantity and/or price of a pending line.

        Raises:
            InvalidTransitionError: The line is cancelled
            InvalidArgumentError: Bad quantity or price
        """
        if line.is_cancelled:
            raise InvalidTransitionError(f"Line #{line.id} is cancelled and cannot be changed")

        changes = {}
        if quantity is not None:
            changes["quantity"] = _validate_quantity(quantity)
        if price is not None:
            changes["price"] = _validate_price(price)
        if not changes:
            return line

        corrected = await self.orders.update_line(replace(line, **changes))
        logger.info(f"Order #{line.order_id}: corrected line #{line.id} {changes}")
        return corrected

    async def recompute_total(self, order: OrderRecord) -> OrderRecord:
        """
        Recompute ``sum_price`` from the stored lines and persist it.

        Always writes, so the order version moves with every line change
        and a concurrent writer holding the old version gets a conflict.
        """
        lines = await self.orders.list_lines(order.id)
        total = compute_total(lines)
        updated = await self.orders.update_total(order, total)
        logger.debug(f"Order #{order.id}: sum_price {order.sum_price} -> {total}")
        return updated
