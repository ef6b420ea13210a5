"""
Shared test fixtures.

Every test gets its own on-disk SQLite database seeded with a small
directory of users, one dining table and a three-item menu.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENV_MODE", "development")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from restaurant.core.config import get_settings
from restaurant.database import build_engine, build_session_maker, get_db, init_db
from restaurant.models import DiningTable, Food, User
from restaurant.records import Actor, FoodStatus, Role
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


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'restaurant.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def seed(session_maker) -> dict:
    """Ids of the seeded rows, keyed by a readable name."""
    async with session_maker() as session:
        rows = {
            "admin": User(name="Admin", email="admin@example.com", role=Role.ADMIN),
            "staff": User(name="Staff", email="staff@example.com", role=Role.STAFF),
            "alice": User(name="Alice", email="alice@example.com", role=Role.USER),
            "bob": User(name="Bob", email="bob@example.com", role=Role.USER),
            "table": DiningTable(name="T1", seats=4),
            "curry": Food(name="Green Curry", price=Decimal("10.50"), category="MAIN COURSE"),
            "noodles": Food(name="Pad Thai", price=Decimal("15.75"), category="MAIN COURSE"),
            "dessert": Food(
                name="Mango Sticky Rice",
                price=Decimal("5.00"),
                status=FoodStatus.UNAVAILABLE,
                category="DESSERT",
            ),
        }
        session.add_all(rows.values())
        await session.commit()
        return {name: row.id for name, row in rows.items()}


@pytest.fixture
def actors(seed) -> dict:
    return {
        "admin": Actor(id=seed["admin"], role=Role.ADMIN),
        "staff": Actor(id=seed["staff"], role=Role.STAFF),
        "alice": Actor(id=seed["alice"], role=Role.USER),
        "bob": Actor(id=seed["bob"], role=Role.USER),
    }


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def order_service(session) -> OrderService:
    return OrderService(
        orders=SqlAlchemyOrderRepository(session),
        users=SqlAlchemyUserDirectory(session),
        tables=SqlAlchemyTableDirectory(session),
        foods=SqlAlchemyFoodCatalog(session),
        tx=SessionTransaction(session),
        policy=AuthorizationPolicy(),
    )


@pytest.fixture
def reservation_service(session) -> ReservationService:
    return ReservationService(
        reservations=SqlAlchemyReservationRepository(session),
        users=SqlAlchemyUserDirectory(session),
        tables=SqlAlchemyTableDirectory(session),
        tx=SessionTransaction(session),
        policy=AuthorizationPolicy(),
    )


@pytest.fixture
def food_service(session) -> FoodService:
    return FoodService(
        foods=SqlAlchemyFoodCatalog(session),
        tx=SessionTransaction(session),
        policy=AuthorizationPolicy(),
    )


@pytest.fixture
def inventory_service(session) -> InventoryService:
    return InventoryService(
        inventory=SqlAlchemyInventoryRepository(session),
        tx=SessionTransaction(session),
        policy=AuthorizationPolicy(),
    )


# =============================================================================
# HTTP
# =============================================================================

def make_token(user_id: int, expires_in: timedelta = timedelta(minutes=30)) -> str:
    settings = get_settings()
    claims = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def auth(seed):
    """Build an Authorization header for one of the seeded users."""
    def header(name: str) -> dict:
        return {"Authorization": f"Bearer {make_token(seed[name])}"}
    return header


@pytest.fixture
async def client(session_maker, seed):
    from restaurant.main import app

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
