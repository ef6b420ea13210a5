"""
Atomic execution with a single retry on transient storage faults.
"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

from restaurant.core.config import get_settings
from restaurant.core.errors import InternalError, TransientStorageError
from restaurant.repositories.base import BaseTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_atomic(
    tx: BaseTransaction,
    operation: Callable[[], Awaitable[T]],
    retries: Optional[int] = None,
) -> T:
    """
    Run ``operation`` inside one transaction.

    The whole operation is re-run from scratch after a transient fault, so
    it must re-read whatever state it depends on. Service errors
    (forbidden, not found, conflict, ...) are never retried.

    Args:
        tx: Unit of work shared by the repositories used in ``operation``
        operation: Zero-argument coroutine function doing reads and writes
        retries: Extra attempts after a transient fault (defaults to settings)

    Raises:
        InternalError: When the storage fault persists after all retries
    """
    if retries is None:
        retries = get_settings().storage_retry_attempts

    attempt = 0
    while True:
        attempt += 1
        try:
            async with tx.atomic():
                return await operation()
        except TransientStorageError as e:
            if attempt > retries:
                logger.error(f"Storage fault persisted after {attempt} attempt(s)")
                raise InternalError("Storage fault, please try again later") from e
            logger.warning(f"Retrying after transient storage fault (attempt {attempt})")
