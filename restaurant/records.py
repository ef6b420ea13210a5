"""
Domain Records

Plain, frozen data records passed between repositories and services.
Business rules work on these instead of ORM rows, so nothing outside the
repositories ever touches an active SQLAlchemy object.

Enums live here as well; the ORM models and the request schemas import
them from this module.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, enum.Enum):
    """User roles. STAFF and ADMIN are the elevated roles."""
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    USER = "USER"


ELEVATED_ROLES = frozenset({Role.ADMIN, Role.STAFF})


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderType(str, enum.Enum):
    DELIVERY = "DELIVERY"
    PICKUP = "PICKUP"
    DINE_IN = "DINE_IN"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    QRCODE = "QRCODE"


class OrderLineStatus(str, enum.Enum):
    """Line status, independent of the order status."""
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class FoodStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"


# =============================================================================
# ACTORS
# =============================================================================

@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an operation."""
    id: int
    role: Role

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


# =============================================================================
# ORDER AGGREGATE
# =============================================================================

@dataclass(frozen=True)
class OrderRecord:
    """
    An order row.

    ``version`` is the optimistic concurrency token; every write to the
    row must present the version it read and bumps it by one.
    """
    id: int
    user_id: int
    type: OrderType
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    table_id: Optional[int] = None
    address: Optional[str] = None
    accept: Optional[datetime] = None
    sum_price: Decimal = Decimal("0.00")
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class OrderLineRecord:
    """One add-to-order event. Price and description are snapshots."""
    id: int
    order_id: int
    food_id: int
    price: Decimal
    quantity: int
    description: Optional[str] = None
    status: OrderLineStatus = OrderLineStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderLineStatus.CANCELLED

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderAggregate:
    """An order together with all of its lines, oldest first."""
    order: OrderRecord
    lines: tuple[OrderLineRecord, ...] = field(default_factory=tuple)


# =============================================================================
# CATALOG / RESERVATIONS / INVENTORY
# =============================================================================

@dataclass(frozen=True)
class FoodRecord:
    id: int
    name: str
    price: Decimal
    status: FoodStatus = FoodStatus.AVAILABLE
    category: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def is_available(self) -> bool:
        return self.status == FoodStatus.AVAILABLE


@dataclass(frozen=True)
class ReservationRecord:
    id: int
    user_id: int
    table_id: int
    appointment_time: datetime
    status: ReservationStatus = ReservationStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class StockItemRecord:
    id: int
    name: str
    unit: str
    quantity: Decimal = Decimal("0")


@dataclass(frozen=True)
class StockEntryRecord:
    id: int
    stock_item_id: int
    quantity: Decimal
    cost: Optional[Decimal] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class InventoryLogRecord:
    id: int
    stock_item_id: int
    change: Decimal
    reason: str
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
