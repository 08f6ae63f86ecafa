"""Tests for FastAPI dependency injection module."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException

from batch_export.core.dependencies import get_async_session, get_job_tracker


def _request(**state: object) -> MagicMock:
    request = MagicMock()
    request.app.state = SimpleNamespace(**state)
    return request


class TestGetJobTracker:
    """Tests for get_job_tracker."""

    def test_returns_tracker_from_app_state(self) -> None:
        tracker = MagicMock()
        assert get_job_tracker(_request(job_tracker=tracker)) is tracker

    def test_missing_tracker_raises_503(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            get_job_tracker(_request())
        assert exc_info.value.status_code == 503

    def test_cleared_tracker_raises_503(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            get_job_tracker(_request(job_tracker=None))
        assert exc_info.value.status_code == 503


class TestGetAsyncSession:
    """Tests for get_async_session."""

    @pytest.mark.asyncio
    async def test_yields_session_from_factory(self) -> None:
        session = MagicMock()
        context = MagicMock()
        context.__aenter__.return_value = session
        factory = MagicMock(return_value=context)

        with patch("batch_export.core.dependencies.get_session_factory", return_value=factory):
            gen = get_async_session()
            assert await gen.__anext__() is session
            with pytest.raises(StopAsyncIteration):
                await gen.__anext__()

        context.__aexit__.assert_awaited_once()
