"""Tests for startup configuration and the service context lifecycle."""

import pytest
from sqlalchemy.pool import StaticPool

from merchantconnect.core.config import ConfigurationError, get_settings
from merchantconnect.core.context import ServiceContext
from merchantconnect.core.errors import ServiceNotInitializedError
from merchantconnect.database import build_database_url, get_engine


class TestSettings:
    def test_missing_required_value_is_fatal(self, monkeypatch):
        monkeypatch.delenv("ADMIN_EMAIL", raising=False)
        get_settings.cache_clear()
        try:
            with pytest.raises(ConfigurationError, match="ADMIN_EMAIL"):
                get_settings()
        finally:
            monkeypatch.undo()
            get_settings.cache_clear()

    def test_defaults(self):
        settings = get_settings()
        assert settings.ROWS_PER_BATCH == 2
        assert settings.MAX_SELECT_QUANTITY == 10
        assert settings.API_V1_STR == "/api/v1"


class TestDatabaseUrl:
    def test_postgres_gets_sslmode(self):
        assert build_database_url("postgresql://u@h/db") == "postgresql://u@h/db?sslmode=require"
        assert build_database_url("postgresql://u@h/db?x=1").endswith("&sslmode=require")

    def test_existing_sslmode_and_sqlite_untouched(self):
        assert build_database_url("postgresql://h/db?sslmode=disable").endswith("disable")
        assert build_database_url("sqlite://") == "sqlite://"


class TestServiceContext:
    @pytest.mark.asyncio
    async def test_lifecycle(self, blob_store):
        ctx = ServiceContext(get_settings(), blob_store=blob_store)
        assert not ctx.initialized

        ctx.init(poolclass=StaticPool, connect_args={"check_same_thread": False})
        assert ctx.initialized
        assert ctx.catalog_store.loaded
        assert get_engine() is ctx.engine

        await ctx.teardown()

        assert not ctx.initialized
        with pytest.raises(ServiceNotInitializedError):
            get_engine()
