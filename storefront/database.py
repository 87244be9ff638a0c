from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from storefront.config import settings
from storefront.infrastructure.db_schema import metadata

engine = create_async_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def create_schema(target: AsyncEngine = engine) -> None:
    async with target.begin() as conn:
        await conn.run_sync(metadata.create_all)
