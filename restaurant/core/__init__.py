"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from restaurant.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from restaurant.core.errors import (
    ServiceError,
    ForbiddenError,
    NotFoundError,
    InvalidTransitionError,
    InvalidArgumentError,
    ConflictError,
    InternalError,
    TransientStorageError,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "ServiceError",
    "ForbiddenError",
    "NotFoundError",
    "InvalidTransitionError",
    "InvalidArgumentError",
    "ConflictError",
    "InternalError",
    "TransientStorageError",
]
