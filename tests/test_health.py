import pytest

from cafepos.services.engine import CafeEngine
from cafepos.storage.fallback import FallbackBackend
from cafepos.storage.kv_store import MemoryStore


@pytest.mark.asyncio
async def test_health_endpoint():
    """Test health endpoint"""
    from cafepos.main import app
    from fastapi.testclient import TestClient

    app.state.engine = CafeEngine(FallbackBackend(MemoryStore()))
    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["storage"] == "fallback"


@pytest.mark.asyncio
async def test_build_engine_falls_back(tmp_path):
    """An unusable database URL in auto mode leaves the engine on the key-value store."""
    from cafepos.core.bootstrap import build_engine

    engine = await build_engine(
        storage="auto",
        db_url="notadb://nowhere",
        fallback_dir=str(tmp_path / "fallback"),
        migrate=False,
    )
    assert engine.backend.name == "fallback"
    assert engine.migration is None
