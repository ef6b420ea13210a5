"""
Order Service

Orchestrates every order operation:
    authorize -> load (locking the order row for writes) -> mutate
    -> recompute total when lines changed -> return the aggregate

All writes of one operation commit together through ``run_atomic``.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from restaurant.core.errors import (
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
)
from restaurant.records import (
    Actor,
    FoodRecord,
    OrderAggregate,
    OrderLineRecord,
    OrderLineStatus,
    OrderRecord,
    OrderType,
)
from restaurant.repositories.base import (
    BaseFoodCatalog,
    BaseOrderRepository,
    BaseTableDirectory,
    BaseTransaction,
    BaseUserDirectory,
)
from restaurant.schemas import (
    AddOrderLineCommand,
    CreateOrderCommand,
    UpdateOrderLineCommand,
    UpdateOrderStatusCommand,
)
from restaurant.services.authorization import Action, AuthorizationPolicy
from restaurant.services.orders.lifecycle import is_terminal, transition, utcnow
from restaurant.services.orders.lines import OrderLineManager
from restaurant.services.transactions import run_atomic

logger = logging.getLogger(__name__)


class OrderService:
    """
    Order use cases for one request.

    Attributes:
        orders: Order aggregate repository
        users: User directory (existence checks)
        tables: Table directory (dine-in validation)
        foods: Food catalog (price and name snapshots)
        tx: Unit of work shared by the repositories above
        policy: Authorization policy
        clock: Time source for acceptance timestamps
    """

    def __init__(
        self,
        orders: BaseOrderRepository,
        users: BaseUserDirectory,
        tables: BaseTableDirectory,
        foods: BaseFoodCatalog,
        tx: BaseTransaction,
        policy: AuthorizationPolicy,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.orders = orders
        self.users = users
        self.tables = tables
        self.foods = foods
        self.tx = tx
        self.policy = policy
        self.clock = clock or utcnow
        self.lines = OrderLineManager(orders)

    # =========================================================================
    # READS
    # =========================================================================

    async def list_all(self, actor: Actor) -> list[OrderAggregate]:
        self.policy.ensure(actor, Action.LIST_ORDERS)
        return await self.orders.list_all()

    async def get(self, actor: Actor, order_id: int) -> OrderAggregate:
        aggregate = await self.orders.get_aggregate(order_id)
        if aggregate is None:
            raise NotFoundError(f"Order #{order_id} not found")
        self.policy.ensure(actor, Action.VIEW_ORDER, aggregate.order)
        return aggregate

    async def list_by_user(self, actor: Actor, user_id: int) -> list[OrderAggregate]:
        """
        Orders placed by one user.

        Permission is checked before existence, so a USER probing other
        ids learns nothing about which users exist.

        Raises:
            ForbiddenError: USER asking for somebody else's orders
            NotFoundError: No such user
        """
        self.policy.ensure(actor, Action.LIST_USER_ORDERS, user_id)
        if not await self.users.exists(user_id):
            raise NotFoundError("User not found", {"user_id": user_id})
        return await self.orders.list_by_user(user_id)

    async def get_line(self, actor: Actor, line_id: int) -> OrderLineRecord:
        line = await self.orders.get_line(line_id)
        if line is None:
            raise NotFoundError(f"Order list #{line_id} not found")
        order = await self.orders.get(line.order_id)
        self.policy.ensure(actor, Action.VIEW_ORDER, order)
        return line

    # =========================================================================
    # WRITES
    # =========================================================================

    async def create(self, actor: Actor, command: CreateOrderCommand) -> OrderAggregate:
        """
        Place a new PENDING order, optionally with its first lines.

        A USER always orders for themselves; STAFF and ADMIN may order on
        behalf of another existing user.
        """
        owner_id = command.user_id if command.user_id is not None else actor.id
        self.policy.ensure(actor, Action.CREATE_ORDER, owner_id)

        if command.type == OrderType.DINE_IN and command.table_id is None:
            raise InvalidArgumentError("Dine-in orders need a table_id")
        if command.type == OrderType.DELIVERY and not command.address:
            raise InvalidArgumentError("Delivery orders need an address")
        if any(line.price is not None for line in command.lines):
            self.policy.ensure(actor, Action.OVERRIDE_LINE_PRICE)

        async def operation() -> OrderAggregate:
            if owner_id != actor.id and not await self.users.exists(owner_id):
                raise NotFoundError("User not found", {"user_id": owner_id})
            if command.table_id is not None and not await self.tables.exists(command.table_id):
                raise NotFoundError(f"Table #{command.table_id} not found")

            order = await self.orders.create(
                user_id=owner_id,
                type=command.type,
                payment_method=command.payment_method,
                table_id=command.table_id,
                address=command.address,
            )
            for item in command.lines:
                food = await self._get_food(item.food_id)
                await self.lines.add_line(
                    order,
                    food,
                    item.quantity,
                    price_override=item.price,
                    description=item.description,
                )
            await self.lines.recompute_total(order)
            return await self.orders.get_aggregate(order.id)

        aggregate = await run_atomic(self.tx, operation)
        logger.info(
            f"Order #{aggregate.order.id} created for user #{owner_id} "
            f"({aggregate.order.type.value}, {len(aggregate.lines)} line(s), "
            f"total {aggregate.order.sum_price})"
        )
        return aggregate

    async def update_status(
        self,
        actor: Actor,
        order_id: int,
        command: UpdateOrderStatusCommand,
    ) -> OrderAggregate:
        """
        Move an order through its lifecycle.

        Raises:
            NotFoundError: No such order
            ForbiddenError: Not the owner, or the role may not take this edge
            InvalidTransitionError: Terminal order or illegal edge
            ConflictError: The order changed concurrently
        """
        async def operation() -> OrderAggregate:
            order = await self._lock_order(order_id)
            self.policy.ensure(actor, Action.UPDATE_ORDER_STATUS, order)
            changed = transition(order, command.status, actor.role, self.clock)
            await self.orders.update_status(changed)
            return await self.orders.get_aggregate(order_id)

        aggregate = await run_atomic(self.tx, operation)
        logger.info(
            f"Order #{order_id} -> {aggregate.order.status.value} "
            f"by user #{actor.id} ({actor.role.value})"
        )
        return aggregate

    async def add_line(self, actor: Actor, command: AddOrderLineCommand) -> OrderLineRecord:
        """Append a new line to an open order and refresh its total."""
        async def operation() -> OrderLineRecord:
            order = await self._lock_order(command.order_id)
            self.policy.ensure(actor, Action.MODIFY_ORDER_LINES, order)
            if command.price is not None:
                self.policy.ensure(actor, Action.OVERRIDE_LINE_PRICE, order)
            self._ensure_open(order)

            food = await self._get_food(command.food_id)
            line = await self.lines.add_line(
                order,
                food,
                command.quantity,
                price_override=command.price,
                description=command.description,
            )
            await self.lines.recompute_total(order)
            return line

        return await run_atomic(self.tx, operation)

    async def update_line(
        self,
        actor: Actor,
        line_id: int,
        command: UpdateOrderLineCommand,
    ) -> OrderLineRecord:
        """
        Cancel or correct a line and refresh the order total.

        Re-cancelling a cancelled line returns it unchanged.

        Raises:
            InvalidTransitionError: Re-opening a cancelled line, or the
                order is already completed or cancelled
        """
        async def operation() -> OrderLineRecord:
            found = await self.orders.get_line(line_id)
            if found is None:
                raise NotFoundError(f"Order list #{line_id} not found")
            order = await self._lock_order(found.order_id)
            # Re-read under the order lock
            line = await self.orders.get_line(line_id)

            self.policy.ensure(actor, Action.MODIFY_ORDER_LINES, order)
            if command.price is not None:
                self.policy.ensure(actor, Action.OVERRIDE_LINE_PRICE, order)

            corrects = command.quantity is not None or command.price is not None
            if line.is_cancelled:
                if command.status == OrderLineStatus.CANCELLED and not corrects:
                    return line
                raise InvalidTransitionError(f"Line #{line.id} is cancelled and cannot be changed")

            self._ensure_open(order)
            if corrects:
                line = await self.lines.correct_line(
                    line, quantity=command.quantity, price=command.price
                )
            if command.status == OrderLineStatus.CANCELLED:
                line = await self.lines.cancel_line(line)

            await self.lines.recompute_total(order)
            return line

        return await run_atomic(self.tx, operation)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _lock_order(self, order_id: int) -> OrderRecord:
        order = await self.orders.get(order_id, for_update=True)
        if order is None:
            raise NotFoundError(f"Order #{order_id} not found")
        return order

    async def _get_food(self, food_id: int) -> FoodRecord:
        food = await self.foods.get(food_id)
        if food is None:
            raise NotFoundError(f"Food #{food_id} not found")
        return food

    @staticmethod
    def _ensure_open(order: OrderRecord) -> None:
        if is_terminal(order.status):
            raise InvalidTransitionError(
                f"Order #{order.id} is {order.status.value}; its lines cannot change"
            )
