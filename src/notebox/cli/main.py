"""Notebox CLI — keep notes from the terminal.

Usage:
    notebox register you@example.com          # Create an account, print a token
    notebox login you@example.com             # Print a session token
    export NOTEBOX_TOKEN=...                  # Use it for the commands below
    notebox notes                             # List your notes, newest first
    notebox add "Shopping" -b "milk" -t "food, errand"
    notebox edit <note-id> "Shopping" -t "food"
    notebox rm <note-id>
    notebox logout
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import os
import sys
from typing import Optional

import click
import httpx

from notebox import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("NOTEBOX_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the Notebox backend."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Inside an already-running loop (CliRunner under an async test) the
    coroutine is run on a worker thread instead.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _token(token: Optional[str]) -> str:
    tok = token or os.environ.get("NOTEBOX_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set NOTEBOX_TOKEN env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _check(r: httpx.Response) -> None:
    """Exit with the server's message on any error response."""
    if r.is_success:
        return
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error ({r.status_code}): {detail}", fg="red", err=True)
    sys.exit(1)


def _print_note(note: dict) -> None:
    tags = ", ".join(note.get("tags", [])) or "—"
    click.secho(f"{note['title']}", bold=True, nl=False)
    click.echo(f"  [{tags}]  {note['created_at'][:19]}  {note['id']}")
    if note.get("body"):
        for line in note["body"].splitlines():
            click.echo(f"    {line}")


token_option = click.option("--token", help="Session token (or set NOTEBOX_TOKEN)")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="notebox")
def main():
    """Notebox — personal notes behind a login."""


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.password_option()
def register(email: str, password: str):
    """Create a password account and print its session token."""
    _run(_login_impl("/api/v1/auth/register", email, password))


@main.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Log in and print a session token."""
    _run(_login_impl("/api/v1/auth/login", email, password))


async def _login_impl(path: str, email: str, password: str):
    async with _client() as c:
        r = await c.post(path, json={"email": email, "password": password})
        _check(r)
        click.echo(r.json()["access_token"])


@main.command()
@token_option
def logout(token: Optional[str]):
    """Revoke the session token."""
    _run(_logout_impl(_token(token)))


async def _logout_impl(token: str):
    async with _client(token) as c:
        r = await c.post("/api/v1/auth/logout")
        _check(r)
        click.secho("Logged out.", fg="green")


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


@main.command()
@token_option
def notes(token: Optional[str]):
    """List your notes, newest first."""
    _run(_notes_impl(_token(token)))


async def _notes_impl(token: str):
    async with _client(token) as c:
        r = await c.get("/api/v1/notes")
        _check(r)
        items = r.json()
        if not items:
            click.echo("No notes yet.")
            return
        for note in items:
            _print_note(note)


@main.command()
@click.argument("title")
@click.option("--body", "-b", default="", help="Note text")
@click.option("--tags", "-t", default="", help='Comma-separated, e.g. "food, errand"')
@token_option
def add(title: str, body: str, tags: str, token: Optional[str]):
    """Create a note."""
    _run(_add_impl(_token(token), title, body, tags))


async def _add_impl(token: str, title: str, body: str, tags: str):
    async with _client(token) as c:
        r = await c.post("/api/v1/notes", json={"title": title, "body": body, "tags": tags})
        _check(r)
        _print_note(r.json())


@main.command()
@click.argument("note_id")
@click.argument("title")
@click.option("--body", "-b", default="", help="New note text")
@click.option("--tags", "-t", default=None, help="Replace tags (omit to keep them)")
@token_option
def edit(note_id: str, title: str, body: str, tags: Optional[str], token: Optional[str]):
    """Change a note's title and text, optionally its tags."""
    _run(_edit_impl(_token(token), note_id, title, body, tags))


async def _edit_impl(token: str, note_id: str, title: str, body: str, tags: Optional[str]):
    payload: dict = {"title": title, "body": body}
    if tags is not None:
        payload["tags"] = tags
    async with _client(token) as c:
        r = await c.patch(f"/api/v1/notes/{note_id}", json=payload)
        _check(r)
        _print_note(r.json())


@main.command()
@click.argument("note_id")
@token_option
def rm(note_id: str, token: Optional[str]):
    """Delete a note."""
    _run(_rm_impl(_token(token), note_id))


async def _rm_impl(token: str, note_id: str):
    async with _client(token) as c:
        r = await c.delete(f"/api/v1/notes/{note_id}")
        _check(r)
        click.secho("Deleted.", fg="green")


if __name__ == "__main__":
    main()
