import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")
    SQLITE_DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./storefront.db")

    # Cache
    CACHE_BACKEND: str = os.getenv("CACHE_BACKEND", "redis")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CACHE_PREFIX: str = os.getenv("CACHE_PREFIX", "storefront:")
    CACHE_TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def DATABASE_URL(self) -> str:
        """Async URL for the application engine"""
        if not self.POSTGRES_CONNECTION_STRING:
            return self.SQLITE_DATABASE_URL
        return self.POSTGRES_CONNECTION_STRING.replace("postgres://", "postgresql+asyncpg://")


settings = Settings()
