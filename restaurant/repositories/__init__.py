"""
Repositories Module

Persistence contracts (``base``) and their async SQLAlchemy
implementations (``sqlalchemy``).
"""

from restaurant.repositories.base import (
    BaseTransaction,
    BaseUserDirectory,
    BaseTableDirectory,
    BaseOrderRepository,
    BaseReservationRepository,
    BaseFoodCatalog,
    BaseInventoryRepository,
)
from restaurant.repositories.sqlalchemy import (
    SessionTransaction,
    SqlAlchemyUserDirectory,
    SqlAlchemyTableDirectory,
    SqlAlchemyOrderRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyFoodCatalog,
    SqlAlchemyInventoryRepository,
)

__all__ = [
    "BaseTransaction",
    "BaseUserDirectory",
    "BaseTableDirectory",
    "BaseOrderRepository",
    "BaseReservationRepository",
    "BaseFoodCatalog",
    "BaseInventoryRepository",
    "SessionTransaction",
    "SqlAlchemyUserDirectory",
    "SqlAlchemyTableDirectory",
    "SqlAlchemyOrderRepository",
    "SqlAlchemyReservationRepository",
    "SqlAlchemyFoodCatalog",
    "SqlAlchemyInventoryRepository",
]
