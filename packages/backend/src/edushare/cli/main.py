"""EduShare CLI — run the server and poke at chat from a terminal.

Usage:
    edushare serve                              # Run the API + chat socket (uvicorn)
    edushare login alice secret-password        # Print an access token
    edushare users                              # Who you can chat with
    edushare history <user-id>                  # Conversation with a user
    edushare delete <message-id>                # Delete one of your messages
    edushare online                             # User ids with a live socket

Authenticated commands read the token from --token or EDUSHARE_TOKEN.
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

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("EDUSHARE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running
    (e.g. CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def _require_token(token: Optional[str]) -> str:
    tok = token or os.environ.get("EDUSHARE_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set EDUSHARE_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _check(resp: httpx.Response) -> dict | list | None:
    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except (ValueError, AttributeError):
            detail = resp.text
        click.secho(f"Error {resp.status_code}: {detail}", fg="red", err=True)
        sys.exit(1)
    if resp.status_code == 204 or not resp.content:
        return None
    return resp.json()


async def _get(path: str, token: str, **params):
    async with _client(token) as c:
        return _check(await c.get(f"/api/v1{path}", params=params or None))


token_option = click.option("--token", envvar="EDUSHARE_TOKEN", help="Access token.")


@click.group()
@click.version_option(package_name="edushare-connect")
def cli():
    """EduShare Connect — realtime messaging backend."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default from settings).")
@click.option("--port", default=None, type=int, help="Port (default from settings).")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes.")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP API and chat WebSocket."""
    import uvicorn

    from edushare.config import settings

    uvicorn.run(
        "edushare.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@cli.command()
@click.argument("login")
@click.argument("password")
def login(login: str, password: str):
    """Log in and print an access token."""

    async def _login():
        async with _client() as c:
            return _check(
                await c.post("/api/v1/auth/login", json={"login": login, "password": password})
            )

    tokens = _run(_login())
    click.echo(tokens["access_token"])
    click.secho(f"user id: {tokens['user_id']}", fg="green", err=True)


@cli.command()
@token_option
def users(token: Optional[str]):
    """List users you can chat with."""
    rows = _run(_get("/chat/users", _require_token(token)))
    for u in rows:
        click.echo(f"{u['id']}  {u['username']}")


@cli.command()
@click.argument("user_id")
@click.option("--limit", type=int, default=None, help="Only the latest N messages.")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON.")
@token_option
def history(user_id: str, limit: Optional[int], as_json: bool, token: Optional[str]):
    """Show the conversation with USER_ID, oldest first."""
    params = {"limit": limit} if limit else {}
    data = _run(_get(f"/chat/history/{user_id}", _require_token(token), **params))
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return
    click.secho(f"conversation {data['conversationId']}", bold=True)
    for m in data["messages"]:
        click.echo(f"[{m['createdAt']}] {m['sender']['username']}: {m['content']}")


@cli.command()
@click.argument("message_id")
@token_option
def delete(message_id: str, token: Optional[str]):
    """Delete one of your own messages."""
    tok = _require_token(token)

    async def _delete():
        async with _client(tok) as c:
            return _check(await c.delete(f"/api/v1/chat/messages/{message_id}"))

    _run(_delete())
    click.secho(f"deleted {message_id}", fg="green")


@cli.command()
@token_option
def online(token: Optional[str]):
    """List user ids that currently have a chat socket open."""
    for user_id in _run(_get("/chat/online", _require_token(token))):
        click.echo(user_id)


def main():
    cli()


if __name__ == "__main__":
    main()
