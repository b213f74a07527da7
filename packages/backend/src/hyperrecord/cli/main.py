"""HyperRecord CLI — inspect subscriptions and fire notifications by hand.

Usage:
    hyperrecord serve                                   # Run the API server
    hyperrecord health                                  # Server, Redis, transport
    hyperrecord subscribers Post 42                     # Who watches Post#42
    hyperrecord subscribers Post 42 --relation comments
    hyperrecord subscribers Post --scope published
    hyperrecord touch Post 42 --session s1              # pub_sub_record
    hyperrecord touch Post 42 --destroyed               # notify + drop the key
    hyperrecord scope Post published --member 1 --member 2
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("HYPERRECORD_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(session_id: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the HyperRecord server."""
    headers = {"X-Session-ID": session_id} if session_id else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running (e.g. the
    CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _record_id(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def _fail(resp: httpx.Response) -> None:
    click.secho(f"Error {resp.status_code}: {resp.text}", fg="red", err=True)
    sys.exit(1)


def _print_publish(data: dict) -> None:
    if not data.get("notified"):
        click.secho("Notification skipped (see server log)", fg="yellow")
        return
    click.echo(f"  Key:       {data['key']}")
    click.echo(f"  Live:      {data['live_sessions']}")
    click.echo(f"  Scrubbed:  {data['scrubbed_sessions']}")
    click.echo(f"  Batches:   {data['batches']}")
    if data.get("key_dropped"):
        click.secho("  Key dropped (record destroyed)", fg="magenta")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="hyperrecord")
def main():
    """HyperRecord — record change notifications."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: HYPERRECORD_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: HYPERRECORD_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HyperRecord API server."""
    import uvicorn

    from hyperrecord.config import settings

    uvicorn.run(
        "hyperrecord.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level,
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def health(as_json: bool):
    """Show server, Redis and transport status."""
    _run(_health_impl(as_json))


async def _health_impl(as_json: bool):
    async with _client() as c:
        r = await c.get("/api/v1/health")
        if r.status_code != 200:
            _fail(r)
        data = r.json()

    if as_json:
        click.echo(_pretty_json(data))
        return
    color = "green" if data["status"] == "healthy" else "yellow"
    click.secho(f"Status:    {data['status']}", fg=color, bold=True)
    click.echo(f"Version:   {data['version']}")
    click.echo(f"Transport: {data['transport']}")
    click.echo(f"Redis:     {data['redis']}")


@main.command()
@click.argument("record_type")
@click.argument("record_id", required=False)
@click.option("--relation", "-r", help="Relation name on the record")
@click.option("--scope", "-s", help="Scope name on the record type")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def subscribers(record_type: str, record_id: Optional[str], relation: Optional[str],
                scope: Optional[str], as_json: bool):
    """List sessions subscribed to a record, relation or scope."""
    if not scope and record_id is None:
        raise click.UsageError("RECORD_ID is required unless --scope is given")
    _run(_subscribers_impl(record_type, record_id, relation, scope, as_json))


async def _subscribers_impl(record_type, record_id, relation, scope, as_json):
    params = {"record_type": record_type}
    if record_id is not None:
        params["id"] = record_id
    if relation:
        params["relation"] = relation
    if scope:
        params["scope"] = scope

    async with _client() as c:
        r = await c.get("/api/v1/subscribers", params=params)
        if r.status_code != 200:
            _fail(r)
        data = r.json()

    if as_json:
        click.echo(_pretty_json(data))
        return

    click.secho(data["key"], bold=True)
    if not data["subscribers"]:
        click.echo("  (no subscribers)")
        return
    for sub in data["subscribers"]:
        state = click.style("stale", fg="red") if sub["stale"] else click.style("live", fg="green")
        click.echo(f"  {sub['session_id']:<40} {sub['last_refreshed']:>18.3f}  {state}")


@main.command()
@click.argument("record_type")
@click.argument("record_id")
@click.option("--session", "session_id", help="Subscribe this session before publishing")
@click.option("--destroyed", is_flag=True, help="Announce the record as destroyed")
def touch(record_type: str, record_id: str, session_id: Optional[str], destroyed: bool):
    """Notify subscribers of RECORD_TYPE#RECORD_ID (pub_sub_record)."""
    _run(_touch_impl(record_type, record_id, session_id, destroyed))


async def _touch_impl(record_type, record_id, session_id, destroyed):
    body = {
        "record": {
            "record_type": record_type,
            "id": _record_id(record_id),
            "destroyed": destroyed,
        }
    }
    async with _client(session_id) as c:
        r = await c.post("/api/v1/pubsub/record", json=body)
        if r.status_code != 200:
            _fail(r)
        _print_publish(r.json())


@main.command()
@click.argument("record_type")
@click.argument("scope_name")
@click.option("--member", "members", multiple=True, help="Member record id (repeatable)")
@click.option("--session", "session_id", help="Subscribe this session before publishing")
def scope(record_type: str, scope_name: str, members: tuple[str, ...],
          session_id: Optional[str]):
    """Notify subscribers of a scope (pub_sub_scope)."""
    _run(_scope_impl(record_type, scope_name, members, session_id))


async def _scope_impl(record_type, scope_name, members, session_id):
    body = {
        "record_type": record_type,
        "scope": scope_name,
        "members": [
            {"record_type": record_type, "id": _record_id(m)} for m in members
        ],
    }
    async with _client(session_id) as c:
        r = await c.post("/api/v1/pubsub/scope", json=body)
        if r.status_code != 200:
            _fail(r)
        _print_publish(r.json())


if __name__ == "__main__":
    main()
