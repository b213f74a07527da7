"""CLI tests — click commands against the app through ASGITransport."""

import httpx
import pytest
from click.testing import CliRunner

from conftest import HOUR
from hyperrecord.cli import main as cli
from hyperrecord.pubsub.service import PubSubService


@pytest.fixture()
def app_client(monkeypatch, store, transport, clock):
    """Point the CLI's HTTP client at the in-process app."""
    from hyperrecord.main import app

    app.state.pubsub = PubSubService(store, transport, clock=clock)

    def _client(session_id=None):
        headers = {"X-Session-ID": session_id} if session_id else {}
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://test",
            headers=headers,
        )

    monkeypatch.setattr(cli, "_client", _client)
    yield
    app.state.pubsub = None


def test_health(app_client):
    result = CliRunner().invoke(cli.main, ["health"])
    assert result.exit_code == 0, result.output
    assert "Transport: recording" in result.output


def test_touch_subscribes_and_publishes(app_client, store, transport):
    result = CliRunner().invoke(cli.main, ["touch", "Post", "42", "--session", "s1"])
    assert result.exit_code == 0, result.output
    assert "HRPS__Post__42" in result.output
    assert store.data["HRPS__Post__42"].keys() == {"s1"}
    assert transport.sessions() == {"s1"}


def test_touch_destroyed(app_client, store, clock):
    store.data["HRPS__Post__42"] = {"s1": str(clock())}
    result = CliRunner().invoke(cli.main, ["touch", "Post", "42", "--destroyed"])
    assert result.exit_code == 0, result.output
    assert "Key dropped" in result.output
    assert "HRPS__Post__42" not in store.data


def test_subscribers(app_client, store, clock):
    store.data["HRPS__Post__42__comments"] = {
        "fresh": str(clock()),
        "old": str(clock() - 30 * HOUR),
    }
    result = CliRunner().invoke(cli.main, ["subscribers", "Post", "42", "-r", "comments"])
    assert result.exit_code == 0, result.output
    assert "HRPS__Post__42__comments" in result.output
    assert "fresh" in result.output and "old" in result.output
    assert "stale" in result.output


def test_subscribers_requires_id_without_scope(app_client):
    result = CliRunner().invoke(cli.main, ["subscribers", "Post"])
    assert result.exit_code != 0
    assert "RECORD_ID is required" in result.output


def test_scope(app_client, store, transport):
    result = CliRunner().invoke(
        cli.main, ["scope", "Post", "published", "--member", "1", "--session", "s1"]
    )
    assert result.exit_code == 0, result.output
    assert "HRPS__Post__1" in store.data
    assert "HRPS__Post__scope__published" in store.data
