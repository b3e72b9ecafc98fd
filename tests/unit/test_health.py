import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from seatguard.web.health import check_health


@pytest.mark.unit
class TestHealth:
    async def test_connected(self, async_engine: AsyncEngine) -> None:
        result = await check_health(async_engine)
        assert result["status"] == "healthy"
        assert result["dialect"] == "sqlite"

    async def test_unreachable_database_is_degraded(self, tmp_path) -> None:
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
        try:
            result = await check_health(engine)
        finally:
            await engine.dispose()
        assert result["status"] == "degraded"
        assert result["database"] == "unavailable"
