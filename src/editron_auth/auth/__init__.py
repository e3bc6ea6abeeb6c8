"""Browser-based login for the Editron backend.

The main entry points are:

- :class:`LoginOrchestrator` -- runs logins, session probes and logouts.
- :func:`create_default_orchestrator` -- builds an orchestrator backed by
  JSON files in the data directory, with the receiver chosen from config.
- :class:`BackendClient` -- async HTTP client the orchestrator talks through.

Typical usage::

    from editron_auth.auth import BackendClient, create_default_orchestrator

    async with BackendClient(config) as backend:
        orchestrator = create_default_orchestrator(config, backend)
        await orchestrator.initialize()
        server = await orchestrator.start_login()
"""

from editron_auth.auth.client import BackendClient
from editron_auth.auth.orchestrator import LoginOrchestrator, create_default_orchestrator
from editron_auth.auth.persistence import PersistenceBridge
from editron_auth.auth.registry import OAuthSession, SessionRegistry

__all__ = [
    "BackendClient",
    "LoginOrchestrator",
    "OAuthSession",
    "PersistenceBridge",
    "SessionRegistry",
    "create_default_orchestrator",
]
