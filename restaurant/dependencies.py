"""
FastAPI Dependencies

Builds one set of repositories per request around the request's
``AsyncSession`` and resolves the calling actor from the bearer token.

Tokens are issued by an external auth service; here they are only
verified. The role always comes from the user directory, never from the
token, so a demoted user loses access immediately.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant.core.config import get_settings
from restaurant.database import get_db
from restaurant.records import Actor
from restaurant.repositories import (
    SessionTransaction,
    SqlAlchemyFoodCatalog,
    SqlAlchemyInventoryRepository,
    SqlAlchemyOrderRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyTableDirectory,
    SqlAlchemyUserDirectory,
)
from restaurant.services import (
    AuthorizationPolicy,
    FoodService,
    InventoryService,
    OrderService,
    ReservationService,
)

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

_policy = AuthorizationPolicy()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# AUTHENTICATION
# =============================================================================

async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Actor:
    """Verify the bearer token and look the caller up in the user directory."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Not authenticated")

    settings = get_settings()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except JWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise _unauthorized("Invalid token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token subject")

    role = await SqlAlchemyUserDirectory(db).get_role(user_id)
    if role is None:
        raise _unauthorized("Unknown user")
    return Actor(id=user_id, role=role)


# =============================================================================
# SERVICES
# =============================================================================

def get_policy() -> AuthorizationPolicy:
    return _policy


def get_order_service(
    db: AsyncSession = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_policy),
) -> OrderService:
    return OrderService(
        orders=SqlAlchemyOrderRepository(db),
        users=SqlAlchemyUserDirectory(db),
        tables=SqlAlchemyTableDirectory(db),
        foods=SqlAlchemyFoodCatalog(db),
        tx=SessionTransaction(db),
        policy=policy,
    )


def get_reservation_service(
    db: AsyncSession = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_policy),
) -> ReservationService:
    return ReservationService(
        reservations=SqlAlchemyReservationRepository(db),
        users=SqlAlchemyUserDirectory(db),
        tables=SqlAlchemyTableDirectory(db),
        tx=SessionTransaction(db),
        policy=policy,
    )


def get_food_service(
    db: AsyncSession = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_policy),
) -> FoodService:
    return FoodService(
        foods=SqlAlchemyFoodCatalog(db),
        tx=SessionTransaction(db),
        policy=policy,
    )


def get_inventory_service(
    db: AsyncSession = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_policy),
) -> InventoryService:
    return InventoryService(
        inventory=SqlAlchemyInventoryRepository(db),
        tx=SessionTransaction(db),
        policy=policy,
    )
