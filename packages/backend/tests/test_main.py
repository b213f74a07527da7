"""App lifespan tests — startup when a dependency is missing or misconfigured."""

from unittest.mock import AsyncMock, MagicMock

import pytest

import hyperrecord.realtime.redis as redis_module
from hyperrecord import main


@pytest.fixture()
def startup_log(monkeypatch):
    log = MagicMock()
    monkeypatch.setattr(main, "logger", log)
    monkeypatch.setattr(main, "configure_logging", lambda *args: None)
    monkeypatch.setattr(redis_module, "close_redis", AsyncMock())
    return log


def _warnings(log) -> list[str]:
    return [c.args[0] for c in log.warning.call_args_list]


@pytest.mark.asyncio
async def test_pusher_without_credentials_is_not_a_redis_failure(startup_log, monkeypatch):
    monkeypatch.setattr(redis_module, "init_redis", AsyncMock(return_value=MagicMock()))
    monkeypatch.setattr(main.settings, "resource_transport", "pusher")
    monkeypatch.setattr(main.settings, "pusher_app_id", "")

    app = main.create_app()
    async with main.lifespan(app):
        assert app.state.pubsub is None

    assert _warnings(startup_log) == ["hyperrecord.pubsub_unavailable"]
    assert startup_log.warning.call_args.kwargs["transport"] == "pusher"


@pytest.mark.asyncio
async def test_redis_down_starts_degraded(startup_log, monkeypatch):
    monkeypatch.setattr(
        redis_module, "init_redis", AsyncMock(side_effect=ConnectionError("refused"))
    )

    app = main.create_app()
    async with main.lifespan(app):
        assert app.state.pubsub is None

    assert _warnings(startup_log) == ["hyperrecord.redis_unavailable"]
