"""
SQLAlchemy Database Models

Tables for the restaurant backend:
- Users and dining tables (directory data consumed by the core)
- Orders and their order lists (line items)
- Reservations
- Food catalog
- Inventory: stock items, stock entries, inventory logs

Only the repositories import these classes; services work on the frozen
records from ``restaurant.records``.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    Text,
    Enum,
    ForeignKey,
)
from sqlalchemy.sql import func

from restaurant.database import Base
from restaurant.records import (
    Role,
    OrderStatus,
    OrderType,
    PaymentMethod,
    OrderLineStatus,
    ReservationStatus,
    FoodStatus,
)


class User(Base):
    """Application user. Issued and authenticated elsewhere."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(Enum(Role), default=Role.USER, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User #{self.id} - {self.role.value}>"


class DiningTable(Base):
    """A physical table for dine-in orders and reservations."""
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(50), nullable=False)
    seats = Column(Integer, nullable=False, default=4)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Food(Base):
    """Catalog entry. Order lines copy its price at add time."""
    __tablename__ = "foods"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(Enum(FoodStatus), default=FoodStatus.AVAILABLE, nullable=False)
    category = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Order(Base):
    """
    Order aggregate root.

    ``sum_price`` is derived from the order lists and ``version`` guards
    against lost updates when two callers mutate the same order.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=True)
    address = Column(String(255), nullable=True)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    accept = Column(DateTime(timezone=True), nullable=True)

    type = Column(Enum(OrderType), nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)

    # =========================================================================
    # PRICING
    # =========================================================================
    sum_price = Column(Numeric(10, 2), nullable=False, default=0)

    # =========================================================================
    # CONCURRENCY
    # =========================================================================
    version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Order #{self.id} - {self.type.value} - {self.status.value}>"


class OrderLine(Base):
    """One line of an order. Never deleted; cancellation is a status."""
    __tablename__ = "order_lists"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    food_id = Column(Integer, ForeignKey("foods.id"), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    status = Column(
        Enum(OrderLineStatus),
        default=OrderLineStatus.PENDING,
        nullable=False
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False)
    appointment_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        Enum(ReservationStatus),
        default=ReservationStatus.PENDING,
        nullable=False
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


# =============================================================================
# INVENTORY
# =============================================================================

class StockItem(Base):
    """An ingredient or supply tracked in stock."""
    __tablename__ = "stock_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    unit = Column(String(20), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class StockEntry(Base):
    """A delivery of stock. Raises the stock item quantity."""
    __tablename__ = "stock_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    stock_item_id = Column(Integer, ForeignKey("stock_items.id"), nullable=False, index=True)
    quantity = Column(Numeric(12, 3), nullable=False)
    cost = Column(Numeric(10, 2), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class InventoryLog(Base):
    """Append-only audit trail of stock quantity changes."""
    __tablename__ = "inventory_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    stock_item_id = Column(Integer, ForeignKey("stock_items.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    change = Column(Numeric(12, 3), nullable=False)
    reason = Column(String(255), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
