import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from storefront.config import settings
from storefront.database import engine, create_schema
from storefront.application.read_cache import ReadCache
from storefront.infrastructure.cache import RedisCacheBackend, InMemoryCacheBackend
from storefront.presentation.api import router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def build_cache_backend():
    if settings.CACHE_BACKEND == "memory":
        return InMemoryCacheBackend()
    if settings.CACHE_BACKEND == "redis":
        return RedisCacheBackend(settings.REDIS_URL)
    raise ValueError(f"Unknown CACHE_BACKEND: {settings.CACHE_BACKEND}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    # 1. Tables
    await create_schema(engine)
    logger.info("Database schema ready")

    # 2. Cache: entries from a previous run may not match the current schema
    backend = build_cache_backend()
    await backend.connect()
    app.state.read_cache = ReadCache(backend, settings.CACHE_PREFIX, settings.CACHE_TTL_SECONDS)
    await app.state.read_cache.clear()
    logger.info(f"Read cache ready ({settings.CACHE_BACKEND})")

    yield

    logger.info("Storefront shutting down...")
    await backend.close()
    await engine.dispose()


app = FastAPI(
    title="Storefront Order Service",
    description="Catalog, accounts and order lifecycle for a retail storefront",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": "Storefront Order Service is running"}


@app.get("/health")
async def health():
    return {"status": "healthy", "cache": settings.CACHE_BACKEND}
