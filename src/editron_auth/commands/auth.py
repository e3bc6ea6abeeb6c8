"""Session commands -- log in, inspect and end the Editron session.

Each command resolves configuration, opens a :class:`BackendClient`, builds
the default orchestrator, restores the persisted session and runs one
operation under :func:`asyncio.run`.

Typical workflow::

    editron-auth login      # opens the browser
    editron-auth status     # exit 0 when signed in, 3 when not
    editron-auth profile
    editron-auth logout
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer

from editron_auth.auth import BackendClient, LoginOrchestrator, create_default_orchestrator
from editron_auth.config import load_app_config
from editron_auth.exceptions import EditronAuthError, PersistenceError
from editron_auth.exit_codes import EXIT_AUTH_FAILURE, EXIT_INVALID_USAGE
from editron_auth.models import AppConfig, CallbackTransport, UserProfile
from editron_auth.output import (
    debug,
    error,
    format_response,
    info,
    print_data,
    success,
    suggest,
    warning,
)

T = TypeVar("T")


def _load_config() -> AppConfig:
    try:
        return load_app_config()
    except EditronAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _run(
    operation: Callable[[LoginOrchestrator], Awaitable[T]],
    config: Optional[AppConfig] = None,
) -> T:
    """Run *operation* against a freshly restored orchestrator.

    A stored session that cannot be read is reported and treated as empty.

    Raises:
        typer.Exit: With the error's exit code on any ``EditronAuthError``.
    """
    if config is None:
        config = _load_config()
    debug(f"Backend API: {config.backend_api_url()}")

    async def _main() -> T:
        async with BackendClient(config) as backend:
            orchestrator = create_default_orchestrator(config, backend)
            try:
                await orchestrator.initialize()
            except PersistenceError as exc:
                warning(f"Ignoring stored session: {exc}")
            return await operation(orchestrator)

    try:
        return asyncio.run(_main())
    except EditronAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


def _profile_data(profile: UserProfile) -> dict[str, Any]:
    return profile.model_dump(mode="json", by_alias=True)


def login_command() -> None:
    """Sign in through the system browser.

    Example::

        editron-auth login
    """
    config = _load_config()
    if config.oauth.transport != CallbackTransport.LOOPBACK:
        error("The command line can only log in with the loopback transport.")
        suggest("Set EDITRON_OAUTH_TRANSPORT=loopback")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    info("Opening your browser to sign in...")
    server = _run(lambda orchestrator: orchestrator.start_login(), config)
    if server.profile is not None:
        success(f"Logged in as {server.profile.email}")
        format_response(_profile_data(server.profile))
    else:
        success("Logged in")


def status_command() -> None:
    """Check whether the stored session is still valid.

    Exits with code 3 when not logged in.
    """

    async def _status(orchestrator: LoginOrchestrator) -> dict[str, Any]:
        logged_in = await orchestrator.check_login()
        server = orchestrator.get_server()
        data: dict[str, Any] = {"server": orchestrator.server_id, "logged_in": logged_in}
        if logged_in and server is not None and server.profile is not None:
            data["email"] = server.profile.email
        return data

    data = _run(_status)
    format_response(data)
    if not data["logged_in"]:
        suggest("Log in: editron-auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)


def profile_command() -> None:
    """Show the profile of the signed-in user."""
    profile = _run(lambda orchestrator: orchestrator.get_profile())
    format_response(_profile_data(profile))


def token_command(
    reveal: bool = typer.Option(
        False, "--reveal", help="Print the full access token instead of a preview."
    ),
) -> None:
    """Print the stored access token.

    Example::

        curl -H "Authorization: Bearer $(editron-auth token --reveal)" ...
    """

    async def _token(orchestrator: LoginOrchestrator) -> str:
        return orchestrator.get_access_token()

    token = _run(_token)
    if reveal:
        print_data(token)
    else:
        print_data(token[:8] + "..." if len(token) > 8 else token)


def logout_command() -> None:
    """Forget the stored session."""
    _run(lambda orchestrator: orchestrator.logout())
    success("Logged out")
