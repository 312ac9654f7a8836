"""Integration test fixtures for LiveCut.

Provides an async HTTP client and a sync TestClient (for WebSocket) that
run against a throwaway SQLite database with real repository operations.
The offline detector is replaced by a mock so ffmpeg is never spawned.
"""

from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from src.api.app import create_app
from src.core.config import get_settings
from src.services import orchestrator
from src.services.storage import database


@pytest.fixture
def app():
    """Create a fresh FastAPI application instance."""
    return create_app()


@pytest.fixture(autouse=True)
def _patch_detector(mock_detector):
    """Sessions opened by the routes get the mock offline detector."""
    with patch("src.services.orchestrator.create_detector", return_value=mock_detector):
        yield


@pytest.fixture
async def async_client(app, db_engine):
    """AsyncClient backed by the test engine.

    Injects the test engine into the database module so that all routes
    use the same SQLite file with tables already created.
    """
    database._engine = db_engine
    database._session_factory = None
    orchestrator._active_session = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    await orchestrator.cleanup()
    database.reset_engine()


@pytest.fixture
def test_client(app, tmp_path, monkeypatch):
    """Synchronous TestClient for WebSocket tests.

    The app's lifespan creates the engine from ``DATABASE_URL`` inside the
    client's own event loop.
    """
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'ws.db'}")
    get_settings.cache_clear()
    database.reset_engine()
    orchestrator._active_session = None
    with TestClient(app) as c:
        yield c
    orchestrator._active_session = None
    database.reset_engine()
    get_settings.cache_clear()
