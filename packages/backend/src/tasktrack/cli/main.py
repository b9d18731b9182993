"""TaskTrack CLI — talk to a TaskTrack server from the terminal.

Usage:
    tasktrack register alice alice@x.com       # Create an account (prompts for password)
    tasktrack login alice                       # Get a token and save it locally
    tasktrack add "buy milk" -d "2 litres"      # Create a task
    tasktrack tasks                             # List your tasks
    tasktrack show 3                            # One task
    tasktrack done 3                            # Mark complete
    tasktrack edit 3 --title "buy oat milk"     # Partial update
    tasktrack rm 3                              # Delete
    tasktrack serve                             # Run the API server
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("TASKTRACK_API_URL", DEFAULT_API_URL).rstrip("/")


def _token_path() -> Path:
    return Path(os.environ.get("TASKTRACK_HOME", Path.home() / ".tasktrack")) / "token"


def _load_token() -> Optional[str]:
    """Token from TASKTRACK_TOKEN, else from the saved token file."""
    token = os.environ.get("TASKTRACK_TOKEN")
    if token:
        return token
    path = _token_path()
    if path.exists():
        return path.read_text().strip() or None
    return None


def _save_token(token: str) -> Path:
    path = _token_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(token)
    path.chmod(0o600)
    return path


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the TaskTrack server."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _require_token() -> str:
    token = _load_token()
    if not token:
        click.secho(
            "Error: not logged in. Run `tasktrack login` or set TASKTRACK_TOKEN.",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return token


def _check(r: httpx.Response) -> httpx.Response:
    """Exit with the server's error message on a non-2xx response."""
    if r.is_success:
        return r
    try:
        body = r.json()
        message = body.get("message") or r.text
        details = body.get("details") or []
    except ValueError:
        message, details = r.text, []
    click.secho(f"Error {r.status_code}: {message}", fg="red", err=True)
    for line in details:
        click.secho(f"  - {line}", fg="red", err=True)
    sys.exit(1)


def _print_task(task: dict) -> None:
    mark = click.style("x", fg="green") if task["completed"] else " "
    click.echo(f"  [{mark}] #{task['id']:<5} {task['title']}")
    if task.get("description"):
        click.echo(f"           {task['description']}")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="tasktrack")
def main():
    """TaskTrack — your private task list, from the terminal."""


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@main.command()
@click.argument("username")
@click.argument("email")
@click.password_option()
def register(username: str, email: str, password: str):
    """Create an account and save its token."""
    _run(_auth_impl("/auth/register", {
        "username": username,
        "email": email,
        "password": password,
    }))


@main.command()
@click.argument("username_or_email")
@click.option("--password", prompt=True, hide_input=True)
def login(username_or_email: str, password: str):
    """Log in with username or email and save the token."""
    _run(_auth_impl("/auth/login", {
        "usernameOrEmail": username_or_email,
        "password": password,
    }))


async def _auth_impl(path: str, body: dict):
    async with _client() as c:
        r = _check(await c.post(path, json=body))
    data = r.json()
    saved = _save_token(data["token"])
    click.secho(data["message"], fg="green")
    click.echo(f"Token saved to {saved}")


@main.command()
def whoami():
    """Show the logged-in user."""
    _run(_whoami_impl())


async def _whoami_impl():
    async with _client(_require_token()) as c:
        r = _check(await c.get("/auth/me"))
    me = r.json()
    click.echo(f"{me['username']} <{me['email']}>  id={me['id']}")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def tasks(as_json: bool):
    """List your tasks."""
    _run(_tasks_impl(as_json))


async def _tasks_impl(as_json: bool):
    async with _client(_require_token()) as c:
        r = _check(await c.get("/tasks"))
    items = r.json()
    if as_json:
        click.echo(json.dumps(items, indent=2))
        return
    if not items:
        click.echo("No tasks yet.")
        return
    click.secho(f"Tasks ({len(items)}):", bold=True)
    for task in items:
        _print_task(task)


@main.command()
@click.argument("title")
@click.option("--description", "-d", help="Longer description")
def add(title: str, description: Optional[str]):
    """Create a task."""
    _run(_add_impl(title, description))


async def _add_impl(title: str, description: Optional[str]):
    body: dict = {"title": title}
    if description:
        body["description"] = description
    async with _client(_require_token()) as c:
        r = _check(await c.post("/tasks", json=body))
    click.secho(f"Task #{r.json()['id']} created", fg="green")


@main.command()
@click.argument("task_id", type=int)
def show(task_id: int):
    """Show one task."""
    _run(_show_impl(task_id))


async def _show_impl(task_id: int):
    async with _client(_require_token()) as c:
        r = _check(await c.get(f"/tasks/{task_id}"))
    _print_task(r.json())


@main.command()
@click.argument("task_id", type=int)
@click.option("--undo", is_flag=True, help="Mark as not completed")
def done(task_id: int, undo: bool):
    """Mark a task completed (or not, with --undo)."""
    _run(_update_impl(task_id, {"completed": not undo}))


@main.command()
@click.argument("task_id", type=int)
@click.option("--title", help="New title")
@click.option("--description", "-d", help="New description")
def edit(task_id: int, title: Optional[str], description: Optional[str]):
    """Change a task's title and/or description."""
    body = {k: v for k, v in {"title": title, "description": description}.items() if v is not None}
    if not body:
        click.secho("Nothing to change: pass --title and/or --description", fg="yellow")
        return
    _run(_update_impl(task_id, body))


async def _update_impl(task_id: int, body: dict):
    async with _client(_require_token()) as c:
        r = _check(await c.put(f"/tasks/{task_id}", json=body))
    _print_task(r.json())


@main.command()
@click.argument("task_id", type=int)
def rm(task_id: int):
    """Delete a task."""
    _run(_rm_impl(task_id))


async def _rm_impl(task_id: int):
    async with _client(_require_token()) as c:
        _check(await c.delete(f"/tasks/{task_id}"))
    click.echo(f"Task #{task_id} deleted")


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server with uvicorn."""
    import uvicorn

    from tasktrack.config import settings

    uvicorn.run(
        "tasktrack.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
