from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.infrastructure.repositories import (
    SQLAlchemyProductRepository,
    SQLAlchemyUserRepository,
    SQLAlchemyOrderRepository
)


class UnitOfWork:
    """One transaction per ``async with uow() as tx`` block.

    Writes become visible only through ``tx.commit()``. Leaving the block
    without committing, or with an exception, rolls everything back.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            try:
                yield _Transaction(session)
            except Exception:
                await session.rollback()
                raise
            if session.in_transaction():
                await session.rollback()


class _Transaction:
    def __init__(self, session: AsyncSession):
        self._session = session
        self.products = SQLAlchemyProductRepository(session)
        self.users = SQLAlchemyUserRepository(session)
        self.orders = SQLAlchemyOrderRepository(session)

    async def commit(self):
        await self._session.commit()

    async def rollback(self):
        await self._session.rollback()
