from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sugar.config import DATABASE_URL, LOG_LEVEL
from typing import AsyncGenerator


def async_database_url(url: str) -> str:
    """Point plain postgres URLs (incl. the legacy ``postgres://`` scheme) at asyncpg."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def engine_options(url: str) -> dict:
    options = {"echo": LOG_LEVEL == "DEBUG", "future": True}
    # sqlite has no server connection to go stale
    if not url.startswith("sqlite"):
        options["pool_pre_ping"] = True
    return options


_url = async_database_url(DATABASE_URL)
engine = create_async_engine(_url, **engine_options(_url))

AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()

# Dependency for FastAPI routes
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
