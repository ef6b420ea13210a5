from decimal import Decimal

import pytest

from restaurant.core.errors import ForbiddenError, InvalidArgumentError, InvalidTransitionError
from restaurant.records import (
    OrderLineRecord,
    OrderLineStatus,
    OrderStatus,
    OrderType,
    PaymentMethod,
)
from restaurant.schemas import (
    AddOrderLineCommand,
    CreateOrderCommand,
    OrderLineItem,
    UpdateOrderLineCommand,
    UpdateOrderStatusCommand,
)
from restaurant.services.orders import compute_total


def _line(id: int, price: str, quantity: int, status=OrderLineStatus.PENDING) -> OrderLineRecord:
    return OrderLineRecord(
        id=id, order_id=1, food_id=1, price=Decimal(price), quantity=quantity, status=status,
    )


def test_compute_total_skips_cancelled_lines():
    lines = [
        _line(1, "10.50", 2),
        _line(2, "15.75", 3),
        _line(3, "99.99", 1, status=OrderLineStatus.CANCELLED),
    ]
    assert compute_total(lines) == Decimal("68.25")


def test_compute_total_of_nothing_is_zero():
    assert compute_total([]) == Decimal("0.00")


async def _pickup(order_service, actor, seed, *items):
    command = CreateOrderCommand(
        type=OrderType.PICKUP,
        payment_method=PaymentMethod.CASH,
        lines=[OrderLineItem(food_id=seed[name], quantity=qty) for name, qty in items],
    )
    return await order_service.create(actor, command)


async def _assert_total_matches_lines(order_service, actor, order_id):
    aggregate = await order_service.get(actor, order_id)
    assert aggregate.order.sum_price == compute_total(aggregate.lines)
    return aggregate


async def test_cancelling_a_line_recomputes_total(order_service, actors, seed):
    alice = actors["alice"]
    aggregate = await _pickup(order_service, alice, seed, ("curry", 2), ("noodles", 3))
    assert aggregate.order.sum_price == Decimal("68.25")

    second = aggregate.lines[1]
    await order_service.update_line(
        alice, second.id, UpdateOrderLineCommand(status=OrderLineStatus.CANCELLED)
    )

    aggregate = await _assert_total_matches_lines(order_service, alice, aggregate.order.id)
    assert aggregate.order.sum_price == Decimal("21.00")
    assert [line.status for line in aggregate.lines] == [
        OrderLineStatus.PENDING,
        OrderLineStatus.CANCELLED,
    ]


async def test_same_food_twice_gives_two_lines(order_service, actors, seed):
    alice = actors["alice"]
    aggregate = await _pickup(order_service, alice, seed)
    order_id = aggregate.order.id

    first = await order_service.add_line(
        alice, AddOrderLineCommand(order_id=order_id, food_id=seed["curry"], quantity=1)
    )
    second = await order_service.add_line(
        alice, AddOrderLineCommand(order_id=order_id, food_id=seed["curry"], quantity=1)
    )

    assert first.id != second.id
    assert first.food_id == second.food_id == seed["curry"]
    aggregate = await _assert_total_matches_lines(order_service, alice, order_id)
    assert len(aggregate.lines) == 2
    assert aggregate.order.sum_price == Decimal("21.00")


async def test_cancelling_twice_is_a_no_op(order_service, actors, seed):
    alice = actors["alice"]
    aggregate = await _pickup(order_service, alice, seed, ("curry", 1))
    line_id = aggregate.lines[0].id
    cancel = UpdateOrderLineCommand(status=OrderLineStatus.CANCELLED)

    first = await order_service.update_line(alice, line_id, cancel)
    version = (await order_service.get(alice, aggregate.order.id)).order.version
    second = await order_service.update_line(alice, line_id, cancel)

    assert first == second
    after = await _assert_total_matches_lines(order_service, alice, aggregate.order.id)
    assert after.order.version == version
    assert after.order.sum_price == Decimal("0.00")


async def test_cancelled_line_cannot_be_reopened(order_service, actors, seed):
    alice = actors["alice"]
    aggregate = await _pickup(order_service, alice, seed, ("curry", 1))
    line_id = aggregate.lines[0].id
    await order_service.update_line(
        alice, line_id, UpdateOrderLineCommand(status=OrderLineStatus.CANCELLED)
    )

    with pytest.raises(InvalidTransitionError):
        await order_service.update_line(
            alice, line_id, UpdateOrderLineCommand(status=OrderLineStatus.PENDING)
        )
    with pytest.raises(InvalidTransitionError):
        await order_service.update_line(alice, line_id, UpdateOrderLineCommand(quantity=5))


async def test_correcting_quantity_recomputes_total(order_service, actors, seed):
    alice = actors["alice"]
    aggregate = await _pickup(order_service, alice, seed, ("noodles", 1))

    line = await order_service.update_line(
        alice, aggregate.lines[0].id, UpdateOrderLineCommand(quantity=4)
    )

    assert line.quantity == 4
    after = await _assert_total_matches_lines(order_service, alice, aggregate.order.id)
    assert after.order.sum_price == Decimal("63.00")


async def test_price_correction_needs_elevated_role(order_service, actors, seed):
    aggregate = await _pickup(order_service, actors["alice"], seed, ("curry", 2))
    line_id = aggregate.lines[0].id

    with pytest.raises(ForbiddenError):
        await order_service.update_line(
            actors["alice"], line_id, UpdateOrderLineCommand(price=Decimal("1.00"))
        )

    line = await order_service.update_line(
        actors["staff"], line_id, UpdateOrderLineCommand(price=Decimal("8.00"))
    )
    assert line.price == Decimal("8.00")
    after = await _assert_total_matches_lines(order_service, actors["staff"], aggregate.order.id)
    assert after.order.sum_price == Decimal("16.00")


async def test_line_keeps_catalog_snapshot(order_service, actors, seed):
    aggregate = await _pickup(order_service, actors["alice"], seed, ("curry", 1))
    line = aggregate.lines[0]
    assert line.price == Decimal("10.50")
    assert line.description == "Green Curry"


async def test_unavailable_food_is_rejected(order_service, actors, seed):
    alice = actors["alice"]
    aggregate = await _pickup(order_service, alice, seed)

    with pytest.raises(InvalidArgumentError):
        await order_service.add_line(
            alice,
            AddOrderLineCommand(order_id=aggregate.order.id, food_id=seed["dessert"], quantity=1),
        )
    after = await order_service.get(alice, aggregate.order.id)
    assert after.lines == ()


async def test_lines_frozen_on_terminal_order(order_service, actors, seed):
    alice = actors["alice"]
    aggregate = await _pickup(order_service, alice, seed, ("curry", 1))
    order_id = aggregate.order.id
    await order_service.update_status(
        alice, order_id, UpdateOrderStatusCommand(status=OrderStatus.CANCELLED)
    )

    with pytest.raises(InvalidTransitionError):
        await order_service.add_line(
            alice, AddOrderLineCommand(order_id=order_id, food_id=seed["curry"], quantity=1)
        )
    with pytest.raises(InvalidTransitionError):
        await order_service.update_line(
            alice, aggregate.lines[0].id, UpdateOrderLineCommand(quantity=2)
        )
    after = await order_service.get(alice, order_id)
    assert after.order.sum_price == Decimal("10.50")
