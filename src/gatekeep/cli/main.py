"""Gatekeep CLI — operator commands for the credential service.

Usage:
    gatekeep init-db                               # Create users table + unique constraint
    gatekeep create-user alice -e a@x.com -r Admin  # Register a user (prompts for password)
    gatekeep verify-token eyJhbGciOi...            # Validate a token, print its claims
    gatekeep serve                                 # Run the API with uvicorn
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import sys

import click

from gatekeep import __version__
from gatekeep.config import settings
from gatekeep.log import configure_logging

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


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="gatekeep")
def main():
    """Gatekeep — register users and issue/validate bearer tokens."""
    configure_logging(settings)


# ---------------------------------------------------------------------------
# gatekeep init-db
# ---------------------------------------------------------------------------


@main.command("init-db")
def init_db():
    """Create the users table and its uniqueness constraint (idempotent)."""
    from gatekeep.db.engine import engine
    from gatekeep.store.credentials import CredentialStore

    async def _go():
        await CredentialStore.ensure_schema(engine)
        await engine.dispose()

    _run(_go())
    click.secho("Schema ready.", fg="green")


# ---------------------------------------------------------------------------
# gatekeep create-user
# ---------------------------------------------------------------------------


def _validate_email(ctx, param, value: str) -> str:
    from pydantic import EmailStr, TypeAdapter, ValidationError

    try:
        return str(TypeAdapter(EmailStr).validate_python(value))
    except ValidationError:
        raise click.BadParameter(f"'{value}' is not a valid email address")


@main.command("create-user")
@click.argument("username")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--roles", "-r", default="User", show_default=True,
              help="Comma-separated role labels")
@click.option("--email", "-e", required=True, callback=_validate_email,
              help="Contact address")
def create_user(username: str, password: str, roles: str, email: str):
    """Register a user directly against the store."""
    from gatekeep.auth.errors import AlreadyExists
    from gatekeep.db.engine import async_session_factory, engine
    from gatekeep.services.user_directory import UserDirectory

    async def _go():
        try:
            async with async_session_factory() as session:
                return await UserDirectory(session).register(
                    username, password, roles=roles, email=email
                )
        finally:
            await engine.dispose()

    try:
        user = _run(_go())
    except AlreadyExists:
        click.secho(f"Error: username '{username}' already exists", fg="red", err=True)
        sys.exit(1)
    except ValueError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    click.secho(f"Created {user.username} ({user.id}) roles={user.roles}", fg="green")


# ---------------------------------------------------------------------------
# gatekeep verify-token
# ---------------------------------------------------------------------------


@main.command("verify-token")
@click.argument("token")
def verify_token(token: str):
    """Validate a token against the configured secret, issuer and audience."""
    from gatekeep.auth.errors import InvalidToken, Misconfigured
    from gatekeep.auth.jwt import TokenVerifier

    verifier = TokenVerifier(settings.token_config())
    try:
        claims = verifier.validate(token)
    except InvalidToken as e:
        click.secho(f"Invalid token ({e.reason})", fg="red", err=True)
        sys.exit(1)
    except Misconfigured as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(2)

    click.echo(_pretty_json(claims.model_dump(mode="json")))


# ---------------------------------------------------------------------------
# gatekeep serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", default=None, type=int, help="Port (default from settings)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "gatekeep.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
