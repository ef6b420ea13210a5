"""
Authorization Policy

Pure decision function mapping (actor, action, subject) to allow/deny.
Services receive a policy instance at construction and call ``ensure``
before touching any data; a denial always surfaces as ``ForbiddenError``.

Subjects:
    - a record with a ``user_id`` (order, reservation): ownership check
    - an ``int``: the user id the action targets (list-by-user, create)
    - ``None``: class-level actions (list-all, catalog, inventory)
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from restaurant.core.errors import ForbiddenError
from restaurant.records import Actor

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    # Orders
    LIST_ORDERS = "orders.list"
    VIEW_ORDER = "orders.view"
    LIST_USER_ORDERS = "orders.list_by_user"
    CREATE_ORDER = "orders.create"
    UPDATE_ORDER_STATUS = "orders.update_status"
    MODIFY_ORDER_LINES = "orders.modify_lines"
    OVERRIDE_LINE_PRICE = "orders.override_line_price"

    # Reservations
    LIST_RESERVATIONS = "reservations.list"
    VIEW_RESERVATION = "reservations.view"
    LIST_USER_RESERVATIONS = "reservations.list_by_user"
    CREATE_RESERVATION = "reservations.create"
    UPDATE_RESERVATION = "reservations.update"

    # Catalog and inventory
    MANAGE_FOOD = "foods.manage"
    MANAGE_INVENTORY = "inventory.manage"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def _owner_id(subject: Any) -> Optional[int]:
    if isinstance(subject, int):
        return subject
    return getattr(subject, "user_id", None)


def elevated_only(actor: Actor, subject: Any) -> Decision:
    if actor.is_elevated:
        return ALLOW
    return Decision(False, "Requires STAFF or ADMIN role")


def owner_or_elevated(actor: Actor, subject: Any) -> Decision:
    if actor.is_elevated:
        return ALLOW
    owner_id = _owner_id(subject)
    if owner_id is not None and owner_id == actor.id:
        return ALLOW
    return Decision(False, "Only the owner or staff may do this")


Rule = Callable[[Actor, Any], Decision]


class AuthorizationPolicy:
    """
    Role and ownership rules for every action of the service layer.

    ADMIN and STAFF are allowed everything; USER is limited to records
    they own. The per-transition restrictions for owners (an owner may
    cancel but not accept an order) live in the lifecycle state machine.
    """

    RULES: dict[Action, Rule] = {
        Action.LIST_ORDERS: elevated_only,
        Action.VIEW_ORDER: owner_or_elevated,
        Action.LIST_USER_ORDERS: owner_or_elevated,
        Action.CREATE_ORDER: owner_or_elevated,
        Action.UPDATE_ORDER_STATUS: owner_or_elevated,
        Action.MODIFY_ORDER_LINES: owner_or_elevated,
        Action.OVERRIDE_LINE_PRICE: elevated_only,
        Action.LIST_RESERVATIONS: elevated_only,
        Action.VIEW_RESERVATION: owner_or_elevated,
        Action.LIST_USER_RESERVATIONS: owner_or_elevated,
        Action.CREATE_RESERVATION: owner_or_elevated,
        Action.UPDATE_RESERVATION: owner_or_elevated,
        Action.MANAGE_FOOD: elevated_only,
        Action.MANAGE_INVENTORY: elevated_only,
    }

    def authorize(self, actor: Actor, action: Action, subject: Any = None) -> Decision:
        """Decide without side effects. Unknown actions are denied."""
        rule = self.RULES.get(action)
        if rule is None:
            return Decision(False, f"Unknown action {action}")
        return rule(actor, subject)

    def ensure(self, actor: Actor, action: Action, subject: Any = None) -> None:
        """
        Raise ``ForbiddenError`` unless the actor may perform the action.

        Raises:
            ForbiddenError: Carrying the denial reason
        """
        decision = self.authorize(actor, action, subject)
        if not decision.allowed:
            logger.warning(
                f"Denied {action.value} for user #{actor.id} ({actor.role.value}): "
                f"{decision.reason}"
            )
            raise ForbiddenError(decision.reason or "This action is unauthorized.")
