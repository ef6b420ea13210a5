"""
Reservation Service

Table bookings owned by the requesting user.

    PENDING ──► CONFIRMED ──► COMPLETED
       │            │
       └──► CANCELLED ◄┘

Owners may cancel or reschedule their own bookings; confirming and
completing are for STAFF and ADMIN.
"""

import logging
from dataclasses import replace
from typing import Optional

from restaurant.core.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from restaurant.records import (
    ELEVATED_ROLES,
    Actor,
    ReservationRecord,
    ReservationStatus,
    Role,
)
from restaurant.repositories.base import (
    BaseReservationRepository,
    BaseTableDirectory,
    BaseTransaction,
    BaseUserDirectory,
)
from restaurant.schemas import CreateReservationCommand, UpdateReservationCommand
from restaurant.services.authorization import Action, AuthorizationPolicy
from restaurant.services.transactions import run_atomic

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED})

TRANSITIONS: dict[tuple[ReservationStatus, ReservationStatus], frozenset] = {
    (ReservationStatus.PENDING, ReservationStatus.CONFIRMED): ELEVATED_ROLES,
    (ReservationStatus.PENDING, ReservationStatus.CANCELLED): frozenset(Role),
    (ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED): frozenset(Role),
    (ReservationStatus.CONFIRMED, ReservationStatus.COMPLETED): ELEVATED_ROLES,
}


def transition(
    reservation: ReservationRecord,
    new_status: ReservationStatus,
    actor_role: Role,
) -> ReservationRecord:
    """
    Raises:
        InvalidTransitionError: Terminal reservation or no such edge
        ForbiddenError: The role may not take this edge
    """
    if new_status == reservation.status:
        return reservation
    if reservation.status in TERMINAL_STATES:
        raise InvalidTransitionError(
            f"Reservation #{reservation.id} is {reservation.status.value} and cannot change"
        )
    roles = TRANSITIONS.get((reservation.status, new_status))
    if roles is None:
        raise InvalidTransitionError(
            f"Cannot move reservation #{reservation.id} from "
            f"{reservation.status.value} to {new_status.value}"
        )
    if actor_role not in roles:
        raise ForbiddenError(
            f"{actor_role.value} may not move a reservation to {new_status.value}"
        )
    return replace(reservation, status=new_status)


class ReservationService:

    def __init__(
        self,
        reservations: BaseReservationRepository,
        users: BaseUserDirectory,
        tables: BaseTableDirectory,
        tx: BaseTransaction,
        policy: AuthorizationPolicy,
    ):
        self.reservations = reservations
        self.users = users
        self.tables = tables
        self.tx = tx
        self.policy = policy

    async def list_all(self, actor: Actor) -> list[ReservationRecord]:
        self.policy.ensure(actor, Action.LIST_RESERVATIONS)
        return await self.reservations.list_all()

    async def get(self, actor: Actor, reservation_id: int) -> ReservationRecord:
        reservation = await self.reservations.get(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation #{reservation_id} not found")
        self.policy.ensure(actor, Action.VIEW_RESERVATION, reservation)
        return reservation

    async def list_by_user(self, actor: Actor, user_id: int) -> list[ReservationRecord]:
        self.policy.ensure(actor, Action.LIST_USER_RESERVATIONS, user_id)
        if not await self.users.exists(user_id):
            raise NotFoundError("User not found", {"user_id": user_id})
        return await self.reservations.list_by_user(user_id)

    async def create(
        self,
        actor: Actor,
        command: CreateReservationCommand,
    ) -> ReservationRecord:
        """Book a table. The status is always PENDING, whatever the caller wants."""
        owner_id = command.user_id if command.user_id is not None else actor.id
        self.policy.ensure(actor, Action.CREATE_RESERVATION, owner_id)

        async def operation() -> ReservationRecord:
            if owner_id != actor.id and not await self.users.exists(owner_id):
                raise NotFoundError("User not found", {"user_id": owner_id})
            await self._ensure_table(command.table_id)
            return await self.reservations.create(
                user_id=owner_id,
                table_id=command.table_id,
                appointment_time=command.appointment_time,
                status=ReservationStatus.PENDING,
            )

        reservation = await run_atomic(self.tx, operation)
        logger.info(
            f"Reservation #{reservation.id} created for user #{owner_id} "
            f"(table #{reservation.table_id} at {reservation.appointment_time})"
        )
        return reservation

    async def update(
        self,
        actor: Actor,
        reservation_id: int,
        command: UpdateReservationCommand,
    ) -> ReservationRecord:
        async def operation() -> ReservationRecord:
            reservation = await self.reservations.get(reservation_id)
            if reservation is None:
                raise NotFoundError(f"Reservation #{reservation_id} not found")
            self.policy.ensure(actor, Action.UPDATE_RESERVATION, reservation)

            changed = reservation
            if command.table_id is not None or command.appointment_time is not None:
                if reservation.status in TERMINAL_STATES:
                    raise InvalidTransitionError(
                        f"Reservation #{reservation_id} is {reservation.status.value} "
                        f"and cannot be rescheduled"
                    )
                if command.table_id is not None:
                    await self._ensure_table(command.table_id)
                changed = replace(
                    changed,
                    table_id=_pick(command.table_id, changed.table_id),
                    appointment_time=_pick(command.appointment_time, changed.appointment_time),
                )
            if command.status is not None:
                changed = transition(changed, command.status, actor.role)

            if changed == reservation:
                return reservation
            return await self.reservations.update(changed)

        updated = await run_atomic(self.tx, operation)
        logger.info(f"Reservation #{reservation_id} updated ({updated.status.value})")
        return updated

    async def _ensure_table(self, table_id: int) -> None:
        if not await self.tables.exists(table_id):
            raise NotFoundError(f"Table #{table_id} not found")


def _pick(value, default):
    return default if value is None else value
