from datetime import datetime

import pytest

from restaurant.core.errors import ForbiddenError, InvalidTransitionError, NotFoundError
from restaurant.records import ReservationStatus
from restaurant.schemas import CreateReservationCommand, UpdateReservationCommand

DINNER = datetime(2025, 4, 1, 19, 0)


async def _book(reservation_service, actor, seed, **kwargs):
    kwargs.setdefault("table_id", seed["table"])
    kwargs.setdefault("appointment_time", DINNER)
    return await reservation_service.create(actor, CreateReservationCommand(**kwargs))


async def test_new_reservation_is_pending(reservation_service, actors, seed):
    reservation = await _book(reservation_service, actors["alice"], seed)

    assert reservation.status == ReservationStatus.PENDING
    assert reservation.user_id == actors["alice"].id
    assert reservation.table_id == seed["table"]


async def test_unknown_table_is_not_found(reservation_service, actors, seed):
    with pytest.raises(NotFoundError):
        await _book(reservation_service, actors["alice"], seed, table_id=9999)


async def test_user_books_only_for_themselves(reservation_service, actors, seed):
    with pytest.raises(ForbiddenError):
        await _book(reservation_service, actors["alice"], seed, user_id=actors["bob"].id)

    reservation = await _book(reservation_service, actors["staff"], seed, user_id=actors["bob"].id)
    assert reservation.user_id == actors["bob"].id


async def test_listing(reservation_service, actors, seed):
    await _book(reservation_service, actors["alice"], seed)
    await _book(reservation_service, actors["bob"], seed)

    assert len(await reservation_service.list_all(actors["admin"])) == 2
    with pytest.raises(ForbiddenError):
        await reservation_service.list_all(actors["alice"])

    own = await reservation_service.list_by_user(actors["alice"], actors["alice"].id)
    assert [r.user_id for r in own] == [actors["alice"].id]
    with pytest.raises(ForbiddenError):
        await reservation_service.list_by_user(actors["alice"], actors["bob"].id)
    with pytest.raises(NotFoundError):
        await reservation_service.list_by_user(actors["staff"], 9999)


async def test_view_is_owner_or_staff(reservation_service, actors, seed):
    reservation = await _book(reservation_service, actors["alice"], seed)

    assert (await reservation_service.get(actors["staff"], reservation.id)).id == reservation.id
    with pytest.raises(ForbiddenError):
        await reservation_service.get(actors["bob"], reservation.id)


async def test_lifecycle(reservation_service, actors, seed):
    reservation = await _book(reservation_service, actors["alice"], seed)

    with pytest.raises(ForbiddenError):
        await reservation_service.update(
            actors["alice"], reservation.id,
            UpdateReservationCommand(status=ReservationStatus.CONFIRMED),
        )

    confirmed = await reservation_service.update(
        actors["staff"], reservation.id,
        UpdateReservationCommand(status=ReservationStatus.CONFIRMED),
    )
    assert confirmed.status == ReservationStatus.CONFIRMED

    cancelled = await reservation_service.update(
        actors["alice"], reservation.id,
        UpdateReservationCommand(status=ReservationStatus.CANCELLED),
    )
    assert cancelled.status == ReservationStatus.CANCELLED

    with pytest.raises(InvalidTransitionError):
        await reservation_service.update(
            actors["admin"], reservation.id,
            UpdateReservationCommand(status=ReservationStatus.CONFIRMED),
        )
    with pytest.raises(InvalidTransitionError):
        await reservation_service.update(
            actors["alice"], reservation.id,
            UpdateReservationCommand(appointment_time=datetime(2025, 4, 2, 19, 0)),
        )


async def test_owner_may_reschedule(reservation_service, actors, seed):
    reservation = await _book(reservation_service, actors["alice"], seed)
    later = datetime(2025, 4, 1, 20, 30)

    updated = await reservation_service.update(
        actors["alice"], reservation.id, UpdateReservationCommand(appointment_time=later)
    )

    assert updated.appointment_time.replace(tzinfo=None) == later
    assert updated.status == ReservationStatus.PENDING
