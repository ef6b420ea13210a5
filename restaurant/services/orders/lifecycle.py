"""
Order Lifecycle State Machine

    PENDING ──► IN_PROGRESS ──► COMPLETED
       │             │
       └──► CANCELLED ◄┘

COMPLETED and CANCELLED are terminal. ``accept`` is stamped with the
server clock when an order leaves PENDING for IN_PROGRESS and is never
cleared afterwards.
"""

from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from restaurant.core.errors import ForbiddenError, InvalidTransitionError
from restaurant.records import ELEVATED_ROLES, OrderRecord, OrderStatus, Role

OWNER_ROLES = frozenset(Role)

TERMINAL_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# (from, to) -> roles allowed to take the edge.
# USER only ever reaches an order it owns; ownership is the policy's job.
TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], frozenset] = {
    (OrderStatus.PENDING, OrderStatus.IN_PROGRESS): ELEVATED_ROLES,
    (OrderStatus.PENDING, OrderStatus.CANCELLED): OWNER_ROLES,
    (OrderStatus.IN_PROGRESS, OrderStatus.COMPLETED): ELEVATED_ROLES,
    (OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED): OWNER_ROLES,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATES


def allowed_targets(status: OrderStatus, role: Role) -> list[OrderStatus]:
    """Statuses the given role may move an order to from ``status``."""
    return [
        target for (source, target), roles in TRANSITIONS.items()
        if source == status and role in roles
    ]


def transition(
    order: OrderRecord,
    new_status: OrderStatus,
    actor_role: Role,
    clock: Optional[Callable[[], datetime]] = None,
) -> OrderRecord:
    """
    Apply one status change and return the updated record.

    Args:
        order: Current order state
        new_status: Requested status
        actor_role: Role of the caller
        clock: Time source for ``accept`` (defaults to UTC now)

    Raises:
        InvalidTransitionError: Terminal source state or no such edge
        ForbiddenError: The edge exists but the role may not take it
    """
    if is_terminal(order.status):
        raise InvalidTransitionError(
            f"Order #{order.id} is {order.status.value} and cannot change status",
            {"from": order.status.value, "to": new_status.value},
        )

    roles = TRANSITIONS.get((order.status, new_status))
    if roles is None:
        raise InvalidTransitionError(
            f"Cannot move order #{order.id} from {order.status.value} to {new_status.value}",
            {"from": order.status.value, "to": new_status.value},
        )

    if actor_role not in roles:
        raise ForbiddenError(
            f"{actor_role.value} may not move an order to {new_status.value}"
        )

    accept = order.accept
    if new_status == OrderStatus.IN_PROGRESS and accept is None:
        accept = (clock or utcnow)()

    return replace(order, status=new_status, accept=accept)
