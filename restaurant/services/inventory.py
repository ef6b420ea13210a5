"""
Inventory Service

Stock items, stock entries (deliveries) and the inventory log. Every
quantity change writes an inventory log row in the same transaction.
STAFF and ADMIN only.
"""

import logging
from dataclasses import replace
from typing import Optional

from restaurant.core.errors import NotFoundError
from restaurant.records import (
    Actor,
    InventoryLogRecord,
    StockEntryRecord,
    StockItemRecord,
)
from restaurant.repositories.base import BaseInventoryRepository, BaseTransaction
from restaurant.schemas import (
    CreateStockItemCommand,
    RecordStockEntryCommand,
    UpdateStockItemCommand,
)
from restaurant.services.authorization import Action, AuthorizationPolicy
from restaurant.services.transactions import run_atomic

logger = logging.getLogger(__name__)


class InventoryService:

    def __init__(
        self,
        inventory: BaseInventoryRepository,
        tx: BaseTransaction,
        policy: AuthorizationPolicy,
    ):
        self.inventory = inventory
        self.tx = tx
        self.policy = policy

    async def list_items(self, actor: Actor) -> list[StockItemRecord]:
        self.policy.ensure(actor, Action.MANAGE_INVENTORY)
        return await self.inventory.list_items()

    async def get_item(self, actor: Actor, item_id: int) -> StockItemRecord:
        self.policy.ensure(actor, Action.MANAGE_INVENTORY)
        return await self._get_item(item_id)

    async def create_item(self, actor: Actor, command: CreateStockItemCommand) -> StockItemRecord:
        self.policy.ensure(actor, Action.MANAGE_INVENTORY)

        async def operation() -> StockItemRecord:
            return await self.inventory.create_item(name=command.name, unit=command.unit)

        item = await run_atomic(self.tx, operation)
        logger.info(f"Stock item #{item.id} ({item.name}, {item.unit}) created")
        return item

    async def update_item(
        self,
        actor: Actor,
        item_id: int,
        command: UpdateStockItemCommand,
    ) -> StockItemRecord:
        """Rename an item or change its unit. Quantities only move through entries."""
        self.policy.ensure(actor, Action.MANAGE_INVENTORY)

        async def operation() -> StockItemRecord:
            item = await self._get_item(item_id, for_update=True)
            changes = {k: v for k, v in command.model_dump(exclude_unset=True).items() if v is not None}
            if not changes:
                return item
            return await self.inventory.update_item(replace(item, **changes))

        return await run_atomic(self.tx, operation)

    async def record_entry(self, actor: Actor, command: RecordStockEntryCommand) -> StockEntryRecord:
        """
        Record a stock delivery.

        Appends the entry, raises the item quantity and writes the
        matching inventory log row, all in one transaction.
        """
        self.policy.ensure(actor, Action.MANAGE_INVENTORY)

        async def operation() -> StockEntryRecord:
            item = await self._get_item(command.stock_item_id, for_update=True)
            entry = await self.inventory.add_entry(
                stock_item_id=item.id,
                quantity=command.quantity,
                cost=command.cost,
                user_id=actor.id,
            )
            await self.inventory.update_item(
                replace(item, quantity=item.quantity + command.quantity)
            )
            await self.inventory.add_log(
                stock_item_id=item.id,
                change=command.quantity,
                reason=f"Stock entry #{entry.id}",
                user_id=actor.id,
            )
            return entry

        entry = await run_atomic(self.tx, operation)
        logger.info(
            f"Stock entry #{entry.id}: +{entry.quantity} on item #{entry.stock_item_id}"
        )
        return entry

    async def list_entries(
        self,
        actor: Actor,
        stock_item_id: Optional[int] = None,
    ) -> list[StockEntryRecord]:
        self.policy.ensure(actor, Action.MANAGE_INVENTORY)
        return await self.inventory.list_entries(stock_item_id)

    async def list_logs(
        self,
        actor: Actor,
        stock_item_id: Optional[int] = None,
    ) -> list[InventoryLogRecord]:
        self.policy.ensure(actor, Action.MANAGE_INVENTORY)
        return await self.inventory.list_logs(stock_item_id)

    async def _get_item(self, item_id: int, for_update: bool = False) -> StockItemRecord:
        item = await self.inventory.get_item(item_id, for_update=for_update)
        if item is None:
            raise NotFoundError(f"Stock item #{item_id} not found")
        return item
