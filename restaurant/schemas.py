"""
Pydantic Schemas for Request/Response Validation

Requests are explicit command structs, one per operation. Unknown fields
are rejected (``extra="forbid"``), so clients cannot mass-assign derived
or server-owned fields such as ``sum_price`` or ``accept``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from restaurant.records import (
    FoodRecord,
    FoodStatus,
    InventoryLogRecord,
    OrderAggregate,
    OrderLineRecord,
    OrderLineStatus,
    OrderStatus,
    OrderType,
    PaymentMethod,
    ReservationRecord,
    ReservationStatus,
    StockEntryRecord,
    StockItemRecord,
)

T = TypeVar("T")


class Command(BaseModel):
    """Base for request bodies: unknown fields are an error."""
    model_config = ConfigDict(extra="forbid")


# =============================================================================
# ORDER COMMANDS
# =============================================================================

class OrderLineItem(Command):
    """A line placed together with a new order."""
    food_id: int = Field(..., examples=[1])
    quantity: int = Field(..., ge=1, le=999, examples=[2])
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)


class CreateOrderCommand(Command):
    """Place an order. ``user_id`` defaults to the caller."""
    user_id: Optional[int] = None
    table_id: Optional[int] = None
    address: Optional[str] = Field(None, max_length=255)
    type: OrderType = Field(..., examples=["DINE_IN"])
    payment_method: PaymentMethod = Field(..., examples=["CASH"])
    lines: List[OrderLineItem] = Field(default_factory=list)


class UpdateOrderStatusCommand(Command):
    """Move an order to a new status. ``accept`` is always server-generated."""
    status: OrderStatus = Field(..., examples=["IN_PROGRESS"])


class AddOrderLineCommand(Command):
    """Add one line to an existing order."""
    order_id: int
    food_id: int
    quantity: int = Field(..., ge=1, le=999)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = Field(None, max_length=500)
    status: Optional[OrderLineStatus] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: Optional[OrderLineStatus]) -> Optional[OrderLineStatus]:
        if v not in (None, OrderLineStatus.PENDING):
            raise ValueError("New order lines always start as PENDING")
        return v


class UpdateOrderLineCommand(Command):
    """Cancel and/or correct a line."""
    status: Optional[OrderLineStatus] = None
    quantity: Optional[int] = Field(None, ge=1, le=999)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)

    @model_validator(mode="after")
    def validate_not_empty(self) -> "UpdateOrderLineCommand":
        if self.status is None and self.quantity is None and self.price is None:
            raise ValueError("Nothing to update")
        return self


# =============================================================================
# RESERVATION COMMANDS
# =============================================================================

class CreateReservationCommand(Command):
    """Book a table. New reservations are always PENDING."""
    user_id: Optional[int] = None
    table_id: int
    appointment_time: datetime = Field(..., examples=["2025-04-01T19:00:00"])


class UpdateReservationCommand(Command):
    status: Optional[ReservationStatus] = None
    table_id: Optional[int] = None
    appointment_time: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_not_empty(self) -> "UpdateReservationCommand":
        if self.status is None and self.table_id is None and self.appointment_time is None:
            raise ValueError("Nothing to update")
        return self


# =============================================================================
# CATALOG / INVENTORY COMMANDS
# =============================================================================

class CreateFoodCommand(Command):
    name: str = Field(..., min_length=1, max_length=100, examples=["Pad Thai"])
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, examples=[99.00])
    status: FoodStatus = FoodStatus.AVAILABLE
    category: Optional[str] = Field(None, max_length=50, examples=["MAIN COURSE"])
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)


class UpdateFoodCommand(Command):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: Optional[FoodStatus] = None
    category: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    image_url: Optional[str] = Field(None, max_length=500)


class CreateStockItemCommand(Command):
    name: str = Field(..., min_length=1, max_length=100, examples=["Rice"])
    unit: str = Field(..., min_length=1, max_length=20, examples=["kg"])


class UpdateStockItemCommand(Command):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    unit: Optional[str] = Field(None, min_length=1, max_length=20)


class RecordStockEntryCommand(Command):
    stock_item_id: int
    quantity: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    cost: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderLineResponse(BaseModel):
    id: int
    order_id: int
    food_id: int
    description: Optional[str]
    price: Decimal
    quantity: int
    status: OrderLineStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, line: OrderLineRecord) -> "OrderLineResponse":
        return cls.model_validate(line)


class OrderResponse(BaseModel):
    """An order with its order lists."""
    id: int
    user_id: int
    table_id: Optional[int]
    address: Optional[str]
    accept: Optional[datetime]
    status: OrderStatus
    type: OrderType
    payment_method: PaymentMethod
    sum_price: Decimal
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    order_lists: List[OrderLineResponse] = []

    @classmethod
    def from_aggregate(cls, aggregate: OrderAggregate) -> "OrderResponse":
        order = aggregate.order
        return cls(
            id=order.id,
            user_id=order.user_id,
            table_id=order.table_id,
            address=order.address,
            accept=order.accept,
            status=order.status,
            type=order.type,
            payment_method=order.payment_method,
            sum_price=order.sum_price,
            created_at=order.created_at,
            updated_at=order.updated_at,
            order_lists=[OrderLineResponse.from_record(line) for line in aggregate.lines],
        )


class ReservationResponse(BaseModel):
    id: int
    user_id: int
    table_id: int
    appointment_time: datetime
    status: ReservationStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, reservation: ReservationRecord) -> "ReservationResponse":
        return cls.model_validate(reservation)


class FoodResponse(BaseModel):
    id: int
    name: str
    price: Decimal
    status: FoodStatus
    category: Optional[str]
    description: Optional[str]
    image_url: Optional[str]

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, food: FoodRecord) -> "FoodResponse":
        return cls.model_validate(food)


class StockItemResponse(BaseModel):
    id: int
    name: str
    unit: str
    quantity: Decimal

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, item: StockItemRecord) -> "StockItemResponse":
        return cls.model_validate(item)


class StockEntryResponse(BaseModel):
    id: int
    stock_item_id: int
    quantity: Decimal
    cost: Optional[Decimal]
    user_id: Optional[int]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, entry: StockEntryRecord) -> "StockEntryResponse":
        return cls.model_validate(entry)


class InventoryLogResponse(BaseModel):
    id: int
    stock_item_id: int
    change: Decimal
    reason: str
    user_id: Optional[int]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, log: InventoryLogRecord) -> "InventoryLogResponse":
        return cls.model_validate(log)


class Envelope(BaseModel, Generic[T]):
    """Single resource wrapped in ``data``."""
    data: T


class Collection(BaseModel, Generic[T]):
    """List of resources wrapped in ``data`` with a count."""
    total: int
    data: List[T]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    timestamp: datetime
