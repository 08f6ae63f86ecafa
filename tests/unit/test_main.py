"""Tests for the FastAPI application factory module."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from batch_export.core.config import Settings
from batch_export.main import create_app


def _settings() -> Settings:
    return Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:")  # type: ignore[call-arg]


class TestCreateApp:
    """Tests for create_app."""

    @pytest.fixture
    def app(self):
        with patch("batch_export.main.get_settings", return_value=_settings()):
            return create_app()

    def test_app_is_created(self, app) -> None:
        assert app is not None
        assert app.title == "Batch Export API"

    def test_app_has_openapi_schema(self, app) -> None:
        client = TestClient(app, raise_server_exceptions=False)
        response = client.get("/openapi.json")
        assert response.status_code == 200
        schema = response.json()
        assert schema["info"]["title"] == "Batch Export API"
        assert "/api/batch/export" in schema["paths"]
        assert "/api/batch/job/{job_id}" in schema["paths"]

    def test_custom_prefix(self) -> None:
        settings = _settings().model_copy(update={"api_prefix": "/batch"})
        with patch("batch_export.main.get_settings", return_value=settings):
            app = create_app()
        paths = {route.path for route in app.routes}
        assert "/batch/export" in paths


class TestAppLifespan:
    """Tests for lifespan management."""

    @pytest.mark.asyncio
    async def test_lifespan_init_and_dispose(self) -> None:
        """Lifespan initializes the engine and tracker, then disposes the engine."""
        from batch_export.main import lifespan

        mock_app = MagicMock()

        with (
            patch("batch_export.main.get_settings", return_value=_settings()),
            patch("batch_export.main.setup_logging") as mock_setup_logging,
            patch("batch_export.main.init_engine") as mock_init_engine,
            patch("batch_export.main.get_engine"),
            patch("batch_export.main.get_session_factory"),
            patch("batch_export.main.dispose_engine", new_callable=AsyncMock) as mock_dispose,
        ):
            async with lifespan(mock_app):
                mock_setup_logging.assert_called_once()
                mock_init_engine.assert_called_once()
                assert mock_app.state.job_tracker is not None

            mock_dispose.assert_awaited_once()
            assert mock_app.state.job_tracker is None

    @pytest.mark.asyncio
    async def test_lifespan_stops_jobs_before_dispose(self) -> None:
        """Running jobs are stopped before the engine goes away."""
        from batch_export.main import lifespan

        calls: list[str] = []
        tracker = MagicMock()
        tracker.shutdown = AsyncMock(side_effect=lambda: calls.append("shutdown"))

        async def dispose() -> None:
            calls.append("dispose")

        with (
            patch("batch_export.main.get_settings", return_value=_settings()),
            patch("batch_export.main.setup_logging"),
            patch("batch_export.main.init_engine"),
            patch("batch_export.main.get_engine"),
            patch("batch_export.main.get_session_factory"),
            patch("batch_export.main.JobExecutionTracker", return_value=tracker),
            patch("batch_export.main.dispose_engine", side_effect=dispose),
        ):
            async with lifespan(MagicMock()):
                pass

        assert calls == ["shutdown", "dispose"]
