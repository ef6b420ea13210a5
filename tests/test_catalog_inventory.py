from decimal import Decimal

import pytest

from restaurant.core.errors import ForbiddenError, NotFoundError
from restaurant.records import FoodStatus, OrderType, PaymentMethod
from restaurant.schemas import (
    CreateFoodCommand,
    CreateOrderCommand,
    CreateStockItemCommand,
    OrderLineItem,
    RecordStockEntryCommand,
    UpdateFoodCommand,
    UpdateStockItemCommand,
)


# =============================================================================
# FOOD CATALOG
# =============================================================================

async def test_menu_is_public(food_service, seed):
    foods = await food_service.list_all()
    assert [f.name for f in foods] == ["Green Curry", "Pad Thai", "Mango Sticky Rice"]
    assert (await food_service.get(seed["noodles"])).price == Decimal("15.75")
    with pytest.raises(NotFoundError):
        await food_service.get(9999)


async def test_only_staff_manage_the_menu(food_service, actors):
    command = CreateFoodCommand(name="Tom Yum", price=Decimal("12.00"), category="SOUP")
    with pytest.raises(ForbiddenError):
        await food_service.create(actors["alice"], command)

    food = await food_service.create(actors["staff"], command)
    assert food.name == "Tom Yum"
    assert food.status == FoodStatus.AVAILABLE


async def test_partial_food_update(food_service, actors, seed):
    food = await food_service.update(
        actors["admin"], seed["curry"], UpdateFoodCommand(status=FoodStatus.UNAVAILABLE, name=None)
    )
    assert food.status == FoodStatus.UNAVAILABLE
    assert food.name == "Green Curry"
    assert food.price == Decimal("10.50")


async def test_price_change_does_not_touch_existing_lines(food_service, order_service, actors, seed):
    aggregate = await order_service.create(actors["alice"], CreateOrderCommand(
        type=OrderType.PICKUP,
        payment_method=PaymentMethod.CASH,
        lines=[OrderLineItem(food_id=seed["curry"], quantity=2)],
    ))

    await food_service.update(actors["admin"], seed["curry"], UpdateFoodCommand(price=Decimal("99.00")))

    after = await order_service.get(actors["alice"], aggregate.order.id)
    assert after.lines[0].price == Decimal("10.50")
    assert after.order.sum_price == Decimal("21.00")


# =============================================================================
# INVENTORY
# =============================================================================

async def test_inventory_is_staff_only(inventory_service, actors):
    with pytest.raises(ForbiddenError):
        await inventory_service.list_items(actors["alice"])
    with pytest.raises(ForbiddenError):
        await inventory_service.create_item(actors["bob"], CreateStockItemCommand(name="Rice", unit="kg"))


async def test_stock_entry_raises_quantity_and_logs(inventory_service, actors):
    staff = actors["staff"]
    item = await inventory_service.create_item(staff, CreateStockItemCommand(name="Rice", unit="kg"))
    assert item.quantity == Decimal("0")

    entry = await inventory_service.record_entry(
        staff, RecordStockEntryCommand(stock_item_id=item.id, quantity=Decimal("25.5"), cost=Decimal("400.00"))
    )
    await inventory_service.record_entry(
        staff, RecordStockEntryCommand(stock_item_id=item.id, quantity=Decimal("4.5"))
    )

    assert entry.user_id == staff.id
    assert (await inventory_service.get_item(staff, item.id)).quantity == Decimal("30")

    entries = await inventory_service.list_entries(staff, item.id)
    assert len(entries) == 2

    logs = await inventory_service.list_logs(staff, item.id)
    assert [log.change for log in logs] == [Decimal("25.5"), Decimal("4.5")]
    assert logs[0].reason == f"Stock entry #{entry.id}"


async def test_entry_for_unknown_item(inventory_service, actors):
    with pytest.raises(NotFoundError):
        await inventory_service.record_entry(
            actors["admin"], RecordStockEntryCommand(stock_item_id=9999, quantity=Decimal("1"))
        )
    assert await inventory_service.list_logs(actors["admin"]) == []


async def test_update_item_keeps_quantity(inventory_service, actors):
    admin = actors["admin"]
    item = await inventory_service.create_item(admin, CreateStockItemCommand(name="Oil", unit="l"))
    await inventory_service.record_entry(
        admin, RecordStockEntryCommand(stock_item_id=item.id, quantity=Decimal("3"))
    )

    updated = await inventory_service.update_item(admin, item.id, UpdateStockItemCommand(unit="ml"))

    assert updated.unit == "ml"
    assert updated.name == "Oil"
    assert updated.quantity == Decimal("3")
