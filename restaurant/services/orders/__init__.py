"""
Orders Module

Order lifecycle state machine, line-item manager and the order service
that ties them to the policy and the repositories.
"""

from restaurant.services.orders.lifecycle import (
    TRANSITIONS,
    TERMINAL_STATES,
    allowed_targets,
    is_terminal,
    transition,
)
from restaurant.services.orders.lines import OrderLineManager, compute_total
from restaurant.services.orders.service import OrderService

__all__ = [
    "TRANSITIONS",
    "TERMINAL_STATES",
    "allowed_targets",
    "is_terminal",
    "transition",
    "OrderLineManager",
    "compute_total",
    "OrderService",
]
