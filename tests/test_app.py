"""
Application wiring: database URL handling and the startup hook.
"""

import logging

from sugar.database import async_database_url, engine_options
from sugar.main import app, lifespan


class TestDatabaseUrl:

    def test_postgres_schemes_use_asyncpg(self):
        assert async_database_url("postgresql://u:p@db/forum") == "postgresql+asyncpg://u:p@db/forum"
        assert async_database_url("postgres://u:p@db/forum") == "postgresql+asyncpg://u:p@db/forum"

    def test_explicit_driver_untouched(self):
        assert async_database_url("sqlite+aiosqlite:///./sugar.db") == "sqlite+aiosqlite:///./sugar.db"
        assert async_database_url("postgresql+asyncpg://db/forum") == "postgresql+asyncpg://db/forum"

    def test_pre_ping_only_for_servers(self):
        assert engine_options("postgresql+asyncpg://db/forum")["pool_pre_ping"] is True
        assert "pool_pre_ping" not in engine_options("sqlite+aiosqlite://")


class TestLifespan:

    async def test_startup_creates_tables_without_errors(self, caplog):
        with caplog.at_level(logging.WARNING, logger="sugar"):
            async with lifespan(app):
                pass
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
