"""Shared fixtures: a SQLite store in a temp file and an in-memory read cache."""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from storefront.application.read_cache import ReadCache
from storefront.database import create_schema
from storefront.domain.models import Product, Role, User, new_id, utcnow
from storefront.infrastructure.cache import InMemoryCacheBackend
from storefront.infrastructure.unit_of_work import UnitOfWork


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront-test.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def uow(engine) -> UnitOfWork:
    return UnitOfWork(async_sessionmaker(engine, expire_on_commit=False, autoflush=False))


@pytest.fixture
def cache_backend() -> InMemoryCacheBackend:
    return InMemoryCacheBackend()


@pytest.fixture
def read_cache(cache_backend) -> ReadCache:
    return ReadCache(cache_backend, prefix="test:")


@pytest.fixture
def make_user(uow):
    async def _make(name: str = "Alice", email: str | None = None) -> User:
        user = User(
            id=new_id(),
            name=name,
            email=email or f"{name.lower()}-{new_id()[:6]}@example.com",
            password_hash="not-a-real-hash",
            role=Role.USER,
            created_at=utcnow(),
        )
        async with uow() as session:
            await session.users.create(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_product(uow):
    async def _make(
        name: str = "Widget",
        price: str = "10.00",
        stock: int = 5,
        category: str = "gadgets",
        active: bool = True,
    ) -> Product:
        now = utcnow()
        product = Product(
            id=new_id(),
            name=name,
            price=Decimal(price),
            stock=stock,
            active=active,
            category=category,
            created_at=now,
            updated_at=now,
        )
        async with uow() as session:
            await session.products.create(product)
            await session.commit()
        return product

    return _make


@pytest.fixture
def stock_of(uow):
    async def _stock(product_id: str) -> int:
        async with uow() as session:
            product = await session.products.get_by_id(product_id)
        return product.stock

    return _stock
