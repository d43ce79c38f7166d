"""authcore CLI — operator commands.

Usage:
    authcore init-db                                    # Create tables (dev only; use alembic in prod)
    authcore create-admin root root@example.com         # Bootstrap an enabled ADMIN account
    authcore issue-token alice@x.com --role PROPOSER    # Sign a session token locally
    authcore validate <token>                           # Ask a running server about a token
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys

import click
import httpx

from authcore import __version__

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("AUTHCORE_API_URL", DEFAULT_API_URL).rstrip("/")


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

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


@click.group()
@click.version_option(version=__version__, prog_name="authcore")
def main():
    """authcore — manage identities and session tokens."""


# ---------------------------------------------------------------------------
# authcore init-db
# ---------------------------------------------------------------------------


@main.command("init-db")
def init_db():
    """Create all tables on the configured database."""
    _run(_init_db_impl())
    click.secho("Tables created", fg="green")


async def _init_db_impl():
    from authcore.db.engine import engine
    from authcore.db.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


# ---------------------------------------------------------------------------
# authcore create-admin
# ---------------------------------------------------------------------------


@main.command("create-admin")
@click.argument("username")
@click.argument("email")
@click.password_option()
def create_admin(username: str, email: str, password: str):
    """Create an enabled ADMIN account directly in the database.

    Public registration refuses the ADMIN role unless
    AUTHCORE_ALLOW_ADMIN_REGISTRATION is set, so this is how the first
    administrator gets in.
    """
    from authcore.errors import ErrorKind

    result = _run(_create_admin_impl(username, email, password))
    if isinstance(result, ErrorKind):
        click.secho("Error: username or email already registered", fg="red", err=True)
        sys.exit(1)
    click.secho(f"Admin #{result} created ({email})", fg="green")


async def _create_admin_impl(username: str, email: str, password: str):
    from authcore.auth.context import Role
    from authcore.db.engine import async_session_factory, engine
    from authcore.errors import ErrorKind
    from authcore.services.identity_service import IdentityService

    async with async_session_factory() as db:
        result = await IdentityService(db).create_enabled_user(
            username, email, password, Role.ADMIN
        )
    await engine.dispose()
    return result if isinstance(result, ErrorKind) else result.id


# ---------------------------------------------------------------------------
# authcore issue-token
# ---------------------------------------------------------------------------


@main.command("issue-token")
@click.argument("email")
@click.option(
    "--role",
    type=click.Choice(["VISITOR", "PROPOSER", "ADMIN"], case_sensitive=False),
    default="VISITOR",
    show_default=True,
)
def issue_token(email: str, role: str):
    """Sign a session token with the configured secret (for debugging)."""
    from authcore.auth.context import Role
    from authcore.auth.dependencies import get_token_service

    click.echo(get_token_service().issue(email, Role.parse(role)))


# ---------------------------------------------------------------------------
# authcore validate
# ---------------------------------------------------------------------------


@main.command()
@click.argument("token")
def validate(token: str):
    """Validate a token against a running server's /auth/validate."""
    from authcore.config import settings

    data = _run(_validate_impl(f"{settings.api_prefix}/auth/validate", token))
    click.echo(json.dumps(data, indent=2))
    if not data.get("valid"):
        sys.exit(1)


async def _validate_impl(path: str, token: str) -> dict:
    async with httpx.AsyncClient(base_url=_api_url(), timeout=30.0) as c:
        r = await c.get(path, headers={"Authorization": f"Bearer {token}"})
        return r.json()


if __name__ == "__main__":
    main()
