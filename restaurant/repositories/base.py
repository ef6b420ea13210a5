"""
Repository Abstract Base Classes

Defines the persistence contracts the services depend on. Implementations
return frozen records from ``restaurant.records`` and never leak ORM rows.

Design Pattern: Repository + Unit of Work
    - One repository per aggregate (orders, reservations, catalog, inventory)
    - Directories for the data the core only reads (users, tables)
    - ``BaseTransaction`` commits every write of one operation together
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import AsyncContextManager, Optional

from restaurant.records import (
    FoodRecord,
    FoodStatus,
    InventoryLogRecord,
    OrderAggregate,
    OrderLineRecord,
    OrderRecord,
    OrderType,
    PaymentMethod,
    ReservationRecord,
    ReservationStatus,
    Role,
    StockEntryRecord,
    StockItemRecord,
)


class BaseTransaction(ABC):
    """
    Unit of work shared by the repositories of one request.

    ``atomic()`` commits on success and rolls back on any exception, so a
    rejected operation never leaves a partial write behind. Storage faults
    worth retrying surface as ``TransientStorageError``.
    """

    @abstractmethod
    def atomic(self) -> AsyncContextManager[None]:
        pass


class BaseUserDirectory(ABC):
    """Read-only view of the user directory."""

    @abstractmethod
    async def exists(self, user_id: int) -> bool:
        pass

    @abstractmethod
    async def get_role(self, user_id: int) -> Optional[Role]:
        """Return the user's role, or None for an unknown user."""
        pass


class BaseTableDirectory(ABC):
    """Read-only view of the dining tables."""

    @abstractmethod
    async def exists(self, table_id: int) -> bool:
        pass


class BaseOrderRepository(ABC):
    """
    Persistence for the order aggregate (order + order lists).

    Every order write takes the version the caller read and fails with
    ``ConflictError`` when the stored version moved on.
    """

    @abstractmethod
    async def get(self, order_id: int, for_update: bool = False) -> Optional[OrderRecord]:
        """
        Fetch one order.

        Args:
            order_id: Order primary key
            for_update: Lock the order row until the transaction ends
        """
        pass

    @abstractmethod
    async def get_aggregate(self, order_id: int) -> Optional[OrderAggregate]:
        pass

    @abstractmethod
    async def list_all(self) -> list[OrderAggregate]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int) -> list[OrderAggregate]:
        pass

    @abstractmethod
    async def create(
        self,
        user_id: int,
        type: OrderType,
        payment_method: PaymentMethod,
        table_id: Optional[int] = None,
        address: Optional[str] = None,
    ) -> OrderRecord:
        """Insert a PENDING order with no lines and a zero total."""
        pass

    @abstractmethod
    async def update_status(self, order: OrderRecord) -> OrderRecord:
        """Persist ``status`` and ``accept``; returns the re-versioned record."""
        pass

    @abstractmethod
    async def update_total(self, order: OrderRecord, sum_price: Decimal) -> OrderRecord:
        """Persist ``sum_price``; returns the re-versioned record."""
        pass

    # =========================================================================
    # ORDER LISTS
    # =========================================================================

    @abstractmethod
    async def get_line(self, line_id: int) -> Optional[OrderLineRecord]:
        pass

    @abstractmethod
    async def list_lines(self, order_id: int) -> list[OrderLineRecord]:
        pass

    @abstractmethod
    async def insert_line(
        self,
        order_id: int,
        food_id: int,
        price: Decimal,
        quantity: int,
        description: Optional[str] = None,
    ) -> OrderLineRecord:
        """Always inserts a new row; never merges with an existing line."""
        pass

    @abstractmethod
    async def update_line(self, line: OrderLineRecord) -> OrderLineRecord:
        """Persist ``status``, ``quantity`` and ``price`` of an existing line."""
        pass


class BaseReservationRepository(ABC):

    @abstractmethod
    async def get(self, reservation_id: int) -> Optional[ReservationRecord]:
        pass

    @abstractmethod
    async def list_all(self) -> list[ReservationRecord]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: int) -> list[ReservationRecord]:
        pass

    @abstractmethod
    async def create(
        self,
        user_id: int,
        table_id: int,
        appointment_time: datetime,
        status: ReservationStatus = ReservationStatus.PENDING,
    ) -> ReservationRecord:
        pass

    @abstractmethod
    async def update(self, reservation: ReservationRecord) -> ReservationRecord:
        pass


class BaseFoodCatalog(ABC):

    @abstractmethod
    async def get(self, food_id: int) -> Optional[FoodRecord]:
        pass

    @abstractmethod
    async def list_all(self) -> list[FoodRecord]:
        pass

    @abstractmethod
    async def create(
        self,
        name: str,
        price: Decimal,
        status: FoodStatus = FoodStatus.AVAILABLE,
        category: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> FoodRecord:
        pass

    @abstractmethod
    async def update(self, food: FoodRecord) -> FoodRecord:
        pass


class BaseInventoryRepository(ABC):

    @abstractmethod
    async def get_item(self, item_id: int, for_update: bool = False) -> Optional[StockItemRecord]:
        pass

    @abstractmethod
    async def list_items(self) -> list[StockItemRecord]:
        pass

    @abstractmethod
    async def create_item(self, name: str, unit: str) -> StockItemRecord:
        pass

    @abstractmethod
    async def update_item(self, item: StockItemRecord) -> StockItemRecord:
        pass

    @abstractmethod
    async def add_entry(
        self,
        stock_item_id: int,
        quantity: Decimal,
        cost: Optional[Decimal] = None,
        user_id: Optional[int] = None,
    ) -> StockEntryRecord:
        pass

    @abstractmethod
    async def list_entries(self, stock_item_id: Optional[int] = None) -> list[StockEntryRecord]:
        pass

    @abstractmethod
    async def add_log(
        self,
        stock_item_id: int,
        change: Decimal,
        reason: str,
        user_id: Optional[int] = None,
    ) -> InventoryLogRecord:
        pass

    @abstractmethod
    async def list_logs(self, stock_item_id: Optional[int] = None) -> list[InventoryLogRecord]:
        pass
