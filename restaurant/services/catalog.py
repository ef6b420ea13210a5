"""
Food Catalog Service

Anyone may browse the menu; only STAFF and ADMIN may change it.
Price changes never touch existing order lines, which keep the price
they were added with.
"""

import logging
from dataclasses import replace

from restaurant.core.errors import NotFoundError
from restaurant.records import Actor, FoodRecord
from restaurant.repositories.base import BaseFoodCatalog, BaseTransaction
from restaurant.schemas import CreateFoodCommand, UpdateFoodCommand
from restaurant.services.authorization import Action, AuthorizationPolicy
from restaurant.services.transactions import run_atomic

logger = logging.getLogger(__name__)


class FoodService:

    def __init__(
        self,
        foods: BaseFoodCatalog,
        tx: BaseTransaction,
        policy: AuthorizationPolicy,
    ):
        self.foods = foods
        self.tx = tx
        self.policy = policy

    async def list_all(self) -> list[FoodRecord]:
        return await self.foods.list_all()

    async def get(self, food_id: int) -> FoodRecord:
        food = await self.foods.get(food_id)
        if food is None:
            raise NotFoundError(f"Food #{food_id} not found")
        return food

    async def create(self, actor: Actor, command: CreateFoodCommand) -> FoodRecord:
        self.policy.ensure(actor, Action.MANAGE_FOOD)

        async def operation() -> FoodRecord:
            return await self.foods.create(**command.model_dump())

        food = await run_atomic(self.tx, operation)
        logger.info(f"Food #{food.id} ({food.name}) created at {food.price}")
        return food

    async def update(self, actor: Actor, food_id: int, command: UpdateFoodCommand) -> FoodRecord:
        self.policy.ensure(actor, Action.MANAGE_FOOD)

        async def operation() -> FoodRecord:
            food = await self.get(food_id)
            changes = command.model_dump(exclude_unset=True)
            # Nullable text fields may be cleared; name, price and status may not
            for required in ("name", "price", "status"):
                if changes.get(required, ...) is None:
                    changes.pop(required)
            return await self.foods.update(replace(food, **changes))

        food = await run_atomic(self.tx, operation)
        logger.info(f"Food #{food.id} updated")
        return food
