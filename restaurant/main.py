"""
FastAPI Application Entry Point

Restaurant Management Backend - thin HTTP adapter over the services.

Endpoints:
    - /api/orders, /api/users/{id}/orders: Order lifecycle
    - /api/order_lists: Order line items
    - /api/reservations, /api/users/{id}/reservations: Table bookings
    - /api/foods: Food catalog
    - /api/stock_items, /api/stock_entries, /api/inventory_logs: Inventory
    - GET /health: System health check

Error mapping:
    forbidden -> 403, not_found -> 404, invalid_* -> 422,
    conflict -> 409, anything else -> 500
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy (psycopg async needs a selector loop)
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from restaurant.core.config import get_settings, setup_logging
from restaurant.core.errors import ServiceError
from restaurant.database import engine, get_db, init_db
from restaurant.dependencies import (
    get_current_actor,
    get_food_service,
    get_inventory_service,
    get_order_service,
    get_reservation_service,
)
from restaurant.records import Actor
from restaurant.schemas import (
    AddOrderLineCommand,
    Collection,
    CreateFoodCommand,
    CreateOrderCommand,
    CreateReservationCommand,
    CreateStockItemCommand,
    Envelope,
    ErrorResponse,
    FoodResponse,
    HealthResponse,
    InventoryLogResponse,
    OrderLineResponse,
    OrderResponse,
    RecordStockEntryCommand,
    ReservationResponse,
    StockEntryResponse,
    StockItemResponse,
    UpdateFoodCommand,
    UpdateOrderLineCommand,
    UpdateOrderStatusCommand,
    UpdateReservationCommand,
    UpdateStockItemCommand,
)
from restaurant.services import (
    FoodService,
    InventoryService,
    OrderService,
    ReservationService,
)

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant management backend: orders and their line items, "
        "reservations, food catalog and inventory with role-based access."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict:
    """API root."""
    return {
        "success": True,
        "version": settings.app_version,
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Verify the database is reachable."""
    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    return HealthResponse(
        status="operational" if db_status == "healthy" else "degraded",
        database=db_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.get(
    "/api/orders",
    response_model=Collection[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def list_orders(
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """All orders. STAFF and ADMIN only."""
    aggregates = await service.list_all(actor)
    return Collection[OrderResponse](
        total=len(aggregates),
        data=[OrderResponse.from_aggregate(a) for a in aggregates],
    )


@app.post(
    "/api/orders",
    response_model=Envelope[OrderResponse],
    responses=ERROR_RESPONSES,
    status_code=201,
    tags=["Orders"],
)
async def create_order(
    command: CreateOrderCommand,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    aggregate = await service.create(actor, command)
    return Envelope[OrderResponse](data=OrderResponse.from_aggregate(aggregate))


@app.get(
    "/api/orders/{order_id}",
    response_model=Envelope[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    aggregate = await service.get(actor, order_id)
    return Envelope[OrderResponse](data=OrderResponse.from_aggregate(aggregate))


@app.put(
    "/api/orders/{order_id}",
    response_model=Envelope[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def update_order_status(
    order_id: int,
    command: UpdateOrderStatusCommand,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    aggregate = await service.update_status(actor, order_id, command)
    return Envelope[OrderResponse](data=OrderResponse.from_aggregate(aggregate))


@app.get(
    "/api/users/{user_id}/orders",
    response_model=Collection[OrderResponse],
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def list_user_orders(
    user_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    aggregates = await service.list_by_user(actor, user_id)
    return Collection[OrderResponse](
        total=len(aggregates),
        data=[OrderResponse.from_aggregate(a) for a in aggregates],
    )


# =============================================================================
# ORDER LIST ENDPOINTS
# =============================================================================

@app.post(
    "/api/order_lists",
    response_model=Envelope[OrderLineResponse],
    responses=ERROR_RESPONSES,
    status_code=201,
    tags=["Order Lists"],
)
async def add_order_line(
    command: AddOrderLineCommand,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """Add a line. The same food added twice gives two lines."""
    line = await service.add_line(actor, command)
    return Envelope[OrderLineResponse](data=OrderLineResponse.from_record(line))


@app.get(
    "/api/order_lists/{line_id}",
    response_model=Envelope[OrderLineResponse],
    responses=ERROR_RESPONSES,
    tags=["Order Lists"],
)
async def get_order_line(
    line_id: int,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    line = await service.get_line(actor, line_id)
    return Envelope[OrderLineResponse](data=OrderLineResponse.from_record(line))


@app.put(
    "/api/order_lists/{line_id}",
    response_model=Envelope[OrderLineResponse],
    responses=ERROR_RESPONSES,
    tags=["Order Lists"],
)
async def update_order_line(
    line_id: int,
    command: UpdateOrderLineCommand,
    actor: Actor = Depends(get_current_actor),
    service: OrderService = Depends(get_order_service),
):
    """Cancel or correct a line."""
    line = await service.update_line(actor, line_id, command)
    return Envelope[OrderLineResponse](data=OrderLineResponse.from_record(line))


# =============================================================================
# RESERVATION ENDPOINTS
# =============================================================================

@app.get(
    "/api/reservations",
    response_model=Collection[ReservationResponse],
    responses=ERROR_RESPONSES,
    tags=["Reservations"],
)
async def list_reservations(
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservations = await service.list_all(actor)
    return Collection[ReservationResponse](
        total=len(reservations),
        data=[ReservationResponse.from_record(r) for r in reservations],
    )


@app.post(
    "/api/reservations",
    response_model=Envelope[ReservationResponse],
    responses=ERROR_RESPONSES,
    status_code=201,
    tags=["Reservations"],
)
async def create_reservation(
    command: CreateReservationCommand,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = await service.create(actor, command)
    return Envelope[ReservationResponse](data=ReservationResponse.from_record(reservation))


@app.get(
    "/api/reservations/{reservation_id}",
    response_model=Envelope[ReservationResponse],
    responses=ERROR_RESPONSES,
    tags=["Reservations"],
)
async def get_reservation(
    reservation_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = await service.get(actor, reservation_id)
    return Envelope[ReservationResponse](data=ReservationResponse.from_record(reservation))


@app.put(
    "/api/reservations/{reservation_id}",
    response_model=Envelope[ReservationResponse],
    responses=ERROR_RESPONSES,
    tags=["Reservations"],
)
async def update_reservation(
    reservation_id: int,
    command: UpdateReservationCommand,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = await service.update(actor, reservation_id, command)
    return Envelope[ReservationResponse](data=ReservationResponse.from_record(reservation))


@app.get(
    "/api/users/{user_id}/reservations",
    response_model=Collection[ReservationResponse],
    responses=ERROR_RESPONSES,
    tags=["Reservations"],
)
async def list_user_reservations(
    user_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ReservationService = Depends(get_reservation_service),
):
    reservations = await service.list_by_user(actor, user_id)
    return Collection[ReservationResponse](
        total=len(reservations),
        data=[ReservationResponse.from_record(r) for r in reservations],
    )


# =============================================================================
# FOOD CATALOG ENDPOINTS
# =============================================================================

@app.get(
    "/api/foods",
    response_model=Collection[FoodResponse],
    tags=["Foods"],
)
async def list_foods(service: FoodService = Depends(get_food_service)):
    """The menu. No authentication needed."""
    foods = await service.list_all()
    return Collection[FoodResponse](
        total=len(foods),
        data=[FoodResponse.from_record(f) for f in foods],
    )


@app.get(
    "/api/foods/{food_id}",
    response_model=Envelope[FoodResponse],
    responses=ERROR_RESPONSES,
    tags=["Foods"],
)
async def get_food(food_id: int, service: FoodService = Depends(get_food_service)):
    food = await service.get(food_id)
    return Envelope[FoodResponse](data=FoodResponse.from_record(food))


@app.post(
    "/api/foods",
    response_model=Envelope[FoodResponse],
    responses=ERROR_RESPONSES,
    status_code=201,
    tags=["Foods"],
)
async def create_food(
    command: CreateFoodCommand,
    actor: Actor = Depends(get_current_actor),
    service: FoodService = Depends(get_food_service),
):
    food = await service.create(actor, command)
    return Envelope[FoodResponse](data=FoodResponse.from_record(food))


@app.put(
    "/api/foods/{food_id}",
    response_model=Envelope[FoodResponse],
    responses=ERROR_RESPONSES,
    tags=["Foods"],
)
async def update_food(
    food_id: int,
    command: UpdateFoodCommand,
    actor: Actor = Depends(get_current_actor),
    service: FoodService = Depends(get_food_service),
):
    food = await service.update(actor, food_id, command)
    return Envelope[FoodResponse](data=FoodResponse.from_record(food))


# =============================================================================
# INVENTORY ENDPOINTS
# =============================================================================

@app.get(
    "/api/stock_items",
    response_model=Collection[StockItemResponse],
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def list_stock_items(
    actor: Actor = Depends(get_current_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    items = await service.list_items(actor)
    return Collection[StockItemResponse](
        total=len(items),
        data=[StockItemResponse.from_record(i) for i in items],
    )


@app.post(
    "/api/stock_items",
    response_model=Envelope[StockItemResponse],
    responses=ERROR_RESPONSES,
    status_code=201,
    tags=["Inventory"],
)
async def create_stock_item(
    command: CreateStockItemCommand,
    actor: Actor = Depends(get_current_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    item = await service.create_item(actor, command)
    return Envelope[StockItemResponse](data=StockItemResponse.from_record(item))


@app.get(
    "/api/stock_items/{item_id}",
    response_model=Envelope[StockItemResponse],
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def get_stock_item(
    item_id: int,
    actor: Actor = Depends(get_current_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    item = await service.get_item(actor, item_id)
    return Envelope[StockItemResponse](data=StockItemResponse.from_record(item))


@app.put(
    "/api/stock_items/{item_id}",
    response_model=Envelope[StockItemResponse],
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def update_stock_item(
    item_id: int,
    command: UpdateStockItemCommand,
    actor: Actor = Depends(get_current_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    item = await service.update_item(actor, item_id, command)
    return Envelope[StockItemResponse](data=StockItemResponse.from_record(item))


@app.get(
    "/api/stock_entries",
    response_model=Collection[StockEntryResponse],
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def list_stock_entries(
    stock_item_id: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    entries = await service.list_entries(actor, stock_item_id)
    return Collection[StockEntryResponse](
        total=len(entries),
        data=[StockEntryResponse.from_record(e) for e in entries],
    )


@app.post(
    "/api/stock_entries",
    response_model=Envelope[StockEntryResponse],
    responses=ERROR_RESPONSES,
    status_code=201,
    tags=["Inventory"],
)
async def record_stock_entry(
    command: RecordStockEntryCommand,
    actor: Actor = Depends(get_current_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    entry = await service.record_entry(actor, command)
    return Envelope[StockEntryResponse](data=StockEntryResponse.from_record(entry))


@app.get(
    "/api/inventory_logs",
    response_model=Collection[InventoryLogResponse],
    responses=ERROR_RESPONSES,
    tags=["Inventory"],
)
async def list_inventory_logs(
    stock_item_id: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    service: InventoryService = Depends(get_inventory_service),
):
    logs = await service.list_logs(actor, stock_item_id)
    return Collection[InventoryLogResponse](
        total=len(logs),
        data=[InventoryLogResponse.from_record(log) for log in logs],
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map service error kinds onto their HTTP status codes."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
