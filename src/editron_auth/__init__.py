"""editron_auth -- browser-based OAuth2 login for the Editron desktop client.

This package signs a desktop user in against the Editron backend identity
provider. It opens the system browser at the provider's authorization page,
catches the redirect either on a transient loopback HTTP listener or through
an OS-delivered deep link, exchanges the authorization code for tokens,
fetches the user profile, and persists the resulting session.

Typical usage::

    async with BackendClient(config) as backend:
        orchestrator = create_default_orchestrator(config, backend)
        await orchestrator.initialize()
        server = await orchestrator.start_login()

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for sessions, tokens, profiles and config.
    config: XDG-aware configuration loading with environment overrides.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    auth: The login orchestrator and its collaborators.
"""

__version__ = "0.1.0"
