"""
SQLAlchemy Repository Implementations

Async repositories over one shared ``AsyncSession`` per request.

Concurrency on the order aggregate:
    - ``get(..., for_update=True)`` takes a row lock (SELECT ... FOR UPDATE)
      for the rest of the transaction
    - every order write is ``UPDATE ... WHERE version = :read_version``;
      zero affected rows means somebody else committed first
"""

import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant.core.errors import (
    ConflictError,
    InternalError,
    ServiceError,
    TransientStorageError,
)
from restaurant.models import (
    DiningTable,
    Food,
    InventoryLog,
    Order,
    OrderLine,
    Reservation,
    StockEntry,
    StockItem,
    User,
)
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
from restaurant.repositories.base import (
    BaseFoodCatalog,
    BaseInventoryRepository,
    BaseOrderRepository,
    BaseReservationRepository,
    BaseTableDirectory,
    BaseTransaction,
    BaseUserDirectory,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(value if value is not None else 0).quantize(CENTS)


def _amount(value) -> Decimal:
    return Decimal(value if value is not None else 0)


# =============================================================================
# ROW -> RECORD MAPPING
# =============================================================================

def _order_record(row: Order) -> OrderRecord:
    return OrderRecord(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        payment_method=row.payment_method,
        status=row.status,
        table_id=row.table_id,
        address=row.address,
        accept=row.accept,
        sum_price=_money(row.sum_price),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _line_record(row: OrderLine) -> OrderLineRecord:
    return OrderLineRecord(
        id=row.id,
        order_id=row.order_id,
        food_id=row.food_id,
        price=_money(row.price),
        quantity=row.quantity,
        description=row.description,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _food_record(row: Food) -> FoodRecord:
    return FoodRecord(
        id=row.id,
        name=row.name,
        price=_money(row.price),
        status=row.status,
        category=row.category,
        description=row.description,
        image_url=row.image_url,
    )


def _reservation_record(row: Reservation) -> ReservationRecord:
    return ReservationRecord(
        id=row.id,
        user_id=row.user_id,
        table_id=row.table_id,
        appointment_time=row.appointment_time,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _stock_item_record(row: StockItem) -> StockItemRecord:
    return StockItemRecord(
        id=row.id,
        name=row.name,
        unit=row.unit,
        quantity=_amount(row.quantity),
    )


def _stock_entry_record(row: StockEntry) -> StockEntryRecord:
    return StockEntryRecord(
        id=row.id,
        stock_item_id=row.stock_item_id,
        quantity=_amount(row.quantity),
        cost=_money(row.cost) if row.cost is not None else None,
        user_id=row.user_id,
        created_at=row.created_at,
    )


def _inventory_log_record(row: InventoryLog) -> InventoryLogRecord:
    return InventoryLogRecord(
        id=row.id,
        stock_item_id=row.stock_item_id,
        change=_amount(row.change),
        reason=row.reason,
        user_id=row.user_id,
        created_at=row.created_at,
    )


class _SessionRepository:
    """Shared plumbing for repositories bound to one session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _fetch_one(self, stmt):
        # Rows are written with bulk UPDATEs, so always refresh the identity map
        result = await self.session.execute(
            stmt.execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _fetch_all(self, stmt) -> list:
        result = await self.session.execute(
            stmt.execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _insert(self, row):
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def _update(self, stmt) -> int:
        result = await self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        return result.rowcount


# =============================================================================
# UNIT OF WORK
# =============================================================================

class SessionTransaction(BaseTransaction):
    """Commits or rolls back the shared session as one unit."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except ServiceError:
            await self.session.rollback()
            raise
        except OperationalError as e:
            await self.session.rollback()
            logger.warning(f"Transient storage fault: {e}")
            raise TransientStorageError("Storage temporarily unavailable") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.exception(f"Storage fault: {e}")
            raise InternalError("Storage fault") from e
        except BaseException:
            await self.session.rollback()
            raise


# =============================================================================
# DIRECTORIES
# =============================================================================

class SqlAlchemyUserDirectory(_SessionRepository, BaseUserDirectory):

    async def exists(self, user_id: int) -> bool:
        result = await self.session.execute(select(User.id).where(User.id == user_id))
        return result.scalar_one_or_none() is not None

    async def get_role(self, user_id: int) -> Optional[Role]:
        result = await self.session.execute(select(User.role).where(User.id == user_id))
        return result.scalar_one_or_none()


class SqlAlchemyTableDirectory(_SessionRepository, BaseTableDirectory):

    async def exists(self, table_id: int) -> bool:
        result = await self.session.execute(
            select(DiningTable.id).where(DiningTable.id == table_id)
        )
        return result.scalar_one_or_none() is not None


# =============================================================================
# ORDERS
# =============================================================================

class SqlAlchemyOrderRepository(_SessionRepository, BaseOrderRepository):

    async def get(self, order_id: int, for_update: bool = False) -> Optional[OrderRecord]:
        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = await self._fetch_one(stmt)
        return _order_record(row) if row else None

    async def get_aggregate(self, order_id: int) -> Optional[OrderAggregate]:
        order = await self.get(order_id)
        if order is None:
            return None
        lines = await self.list_lines(order_id)
        return OrderAggregate(order=order, lines=tuple(lines))

    async def list_all(self) -> list[OrderAggregate]:
        rows = await self._fetch_all(select(Order).order_by(Order.id))
        return await self._with_lines(rows)

    async def list_by_user(self, user_id: int) -> list[OrderAggregate]:
        rows = await self._fetch_all(
            select(Order).where(Order.user_id == user_id).order_by(Order.id)
        )
        return await self._with_lines(rows)

    async def _with_lines(self, rows: list[Order]) -> list[OrderAggregate]:
        if not rows:
            return []
        line_rows = await self._fetch_all(
            select(OrderLine)
            .where(OrderLine.order_id.in_([row.id for row in rows]))
            .order_by(OrderLine.id)
        )
        grouped: dict[int, list[OrderLineRecord]] = defaultdict(list)
        for line in line_rows:
            grouped[line.order_id].append(_line_record(line))
        return [
            OrderAggregate(order=_order_record(row), lines=tuple(grouped[row.id]))
            for row in rows
        ]

    async def create(
        self,
        user_id: int,
        type: OrderType,
        payment_method: PaymentMethod,
        table_id: Optional[int] = None,
        address: Optional[str] = None,
    ) -> OrderRecord:
        row = await self._insert(Order(
            user_id=user_id,
            type=type,
            payment_method=payment_method,
            table_id=table_id,
            address=address,
            sum_price=Decimal("0.00"),
            version=0,
        ))
        return _order_record(row)

    async def update_status(self, order: OrderRecord) -> OrderRecord:
        return await self._versioned_update(
            order,
            status=order.status,
            accept=order.accept,
        )

    async def update_total(self, order: OrderRecord, sum_price: Decimal) -> OrderRecord:
        return await self._versioned_update(order, sum_price=sum_price)

    async def _versioned_update(self, order: OrderRecord, **values) -> OrderRecord:
        updated = await self._update(
            update(Order)
            .where(Order.id == order.id, Order.version == order.version)
            .values(version=order.version + 1, **values)
        )
        if updated == 0:
            logger.warning(
                f"Order #{order.id} changed concurrently (expected version {order.version})"
            )
            raise ConflictError(
                f"Order #{order.id} was modified by another request",
                {"order_id": order.id},
            )
        return await self.get(order.id)

    # =========================================================================
    # ORDER LISTS
    # =========================================================================

    async def get_line(self, line_id: int) -> Optional[OrderLineRecord]:
        row = await self._fetch_one(select(OrderLine).where(OrderLine.id == line_id))
        return _line_record(row) if row else None

    async def list_lines(self, order_id: int) -> list[OrderLineRecord]:
        rows = await self._fetch_all(
            select(OrderLine).where(OrderLine.order_id == order_id).order_by(OrderLine.id)
        )
        return [_line_record(row) for row in rows]

    async def insert_line(
        self,
        order_id: int,
        food_id: int,
        price: Decimal,
        quantity: int,
        description: Optional[str] = None,
    ) -> OrderLineRecord:
        row = await self._insert(OrderLine(
            order_id=order_id,
            food_id=food_id,
            price=price,
            quantity=quantity,
            description=description,
        ))
        return _line_record(row)

    async def update_line(self, line: OrderLineRecord) -> OrderLineRecord:
        await self._update(
            update(OrderLine)
            .where(OrderLine.id == line.id)
            .values(status=line.status, quantity=line.quantity, price=line.price)
        )
        return await self.get_line(line.id)


# =============================================================================
# RESERVATIONS
# =============================================================================

class SqlAlchemyReservationRepository(_SessionRepository, BaseReservationRepository):

    async def get(self, reservation_id: int) -> Optional[ReservationRecord]:
        row = await self._fetch_one(
            select(Reservation).where(Reservation.id == reservation_id)
        )
        return _reservation_record(row) if row else None

    async def list_all(self) -> list[ReservationRecord]:
        rows = await self._fetch_all(select(Reservation).order_by(Reservation.id))
        return [_reservation_record(row) for row in rows]

    async def list_by_user(self, user_id: int) -> list[ReservationRecord]:
        rows = await self._fetch_all(
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.id)
        )
        return [_reservation_record(row) for row in rows]

    async def create(
        self,
        user_id: int,
        table_id: int,
        appointment_time: datetime,
        status: ReservationStatus = ReservationStatus.PENDING,
    ) -> ReservationRecord:
        row = await self._insert(Reservation(
            user_id=user_id,
            table_id=table_id,
            appointment_time=appointment_time,
            status=status,
        ))
        return _reservation_record(row)

    async def update(self, reservation: ReservationRecord) -> ReservationRecord:
        await self._update(
            update(Reservation)
            .where(Reservation.id == reservation.id)
            .values(
                table_id=reservation.table_id,
                appointment_time=reservation.appointment_time,
                status=reservation.status,
            )
        )
        return await self.get(reservation.id)


# =============================================================================
# FOOD CATALOG
# =============================================================================

class SqlAlchemyFoodCatalog(_SessionRepository, BaseFoodCatalog):

    async def get(self, food_id: int) -> Optional[FoodRecord]:
        row = await self._fetch_one(select(Food).where(Food.id == food_id))
        return _food_record(row) if row else None

    async def list_all(self) -> list[FoodRecord]:
        rows = await self._fetch_all(select(Food).order_by(Food.id))
        return [_food_record(row) for row in rows]

    async def create(
        self,
        name: str,
        price: Decimal,
        status: FoodStatus = FoodStatus.AVAILABLE,
        category: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> FoodRecord:
        row = await self._insert(Food(
            name=name,
            price=price,
            status=status,
            category=category,
            description=description,
            image_url=image_url,
        ))
        return _food_record(row)

    async def update(self, food: FoodRecord) -> FoodRecord:
        await self._update(
            update(Food)
            .where(Food.id == food.id)
            .values(
                name=food.name,
                price=food.price,
                status=food.status,
                category=food.category,
                description=food.description,
                image_url=food.image_url,
            )
        )
        return await self.get(food.id)


# =============================================================================
# INVENTORY
# =============================================================================

class SqlAlchemyInventoryRepository(_SessionRepository, BaseInventoryRepository):

    async def get_item(self, item_id: int, for_update: bool = False) -> Optional[StockItemRecord]:
        stmt = select(StockItem).where(StockItem.id == item_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = await self._fetch_one(stmt)
        return _stock_item_record(row) if row else None

    async def list_items(self) -> list[StockItemRecord]:
        rows = await self._fetch_all(select(StockItem).order_by(StockItem.id))
        return [_stock_item_record(row) for row in rows]

    async def create_item(self, name: str, unit: str) -> StockItemRecord:
        row = await self._insert(StockItem(name=name, unit=unit, quantity=Decimal("0")))
        return _stock_item_record(row)

    async def update_item(self, item: StockItemRecord) -> StockItemRecord:
        await self._update(
            update(StockItem)
            .where(StockItem.id == item.id)
            .values(name=item.name, unit=item.unit, quantity=item.quantity)
        )
        return await self.get_item(item.id)

    async def add_entry(
        self,
        stock_item_id: int,
        quantity: Decimal,
        cost: Optional[Decimal] = None,
        user_id: Optional[int] = None,
    ) -> StockEntryRecord:
        row = await self._insert(StockEntry(
            stock_item_id=stock_item_id,
            quantity=quantity,
            cost=cost,
            user_id=user_id,
        ))
        return _stock_entry_record(row)

    async def list_entries(self, stock_item_id: Optional[int] = None) -> list[StockEntryRecord]:
        stmt = select(StockEntry).order_by(StockEntry.id)
        if stock_item_id is not None:
            stmt = stmt.where(StockEntry.stock_item_id == stock_item_id)
        return [_stock_entry_record(row) for row in await self._fetch_all(stmt)]

    async def add_log(
        self,
        stock_item_id: int,
        change: Decimal,
        reason: str,
        user_id: Optional[int] = None,
    ) -> InventoryLogRecord:
        row = await self._insert(InventoryLog(
            stock_item_id=stock_item_id,
            change=change,
            reason=reason,
            user_id=user_id,
        ))
        return _inventory_log_record(row)

    async def list_logs(self, stock_item_id: Optional[int] = None) -> list[InventoryLogRecord]:
        stmt = select(InventoryLog).order_by(InventoryLog.id)
        if stock_item_id is not None:
            stmt = stmt.where(InventoryLog.stock_item_id == stock_item_id)
        return [_inventory_log_record(row) for row in await self._fetch_all(stmt)]
