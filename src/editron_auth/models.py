"""Canonical Pydantic models shared across all editron_auth modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration models** -- loaded from ``config.json`` and environment
variables by :func:`~editron_auth.config.load_app_config`:
    :class:`CallbackTransport`, :class:`BackendConfig`, :class:`OAuthConfig`,
    :class:`ServerConfig`, and :class:`AppConfig`.

**Session models** -- held by the
:class:`~editron_auth.auth.registry.SessionRegistry` and persisted by the
:class:`~editron_auth.auth.persistence.PersistenceBridge`:
    :class:`UserProfile`, :class:`Server`, and :class:`AccessToken`.

**Wire models** -- request/response bodies of the backend's auth endpoints:
    :class:`AuthUrlResponse`, :class:`TokenExchangeRequest`, and
    :class:`TokenPair`.

Session and wire models are frozen; updates go through ``model_copy``.
Backend field names are camelCase and are mapped with aliases, so
``populate_by_name`` lets Python code use the snake_case names.
"""

from __future__ import annotations

import enum
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

TOKEN_VALIDITY_SECONDS = 24 * 60 * 60
"""Lifetime stamped on every issued :class:`AccessToken`."""


# --- Configuration ---


class CallbackTransport(str, enum.Enum):
    """How the authorization callback gets back to the desktop client.

    ``LOOPBACK`` binds a transient HTTP listener on ``127.0.0.1`` and pairs
    with an anti-CSRF ``state`` value. ``DEEP_LINK`` waits for the OS to hand
    over an ``editron-app://`` URI and pairs with a PKCE verifier.
    """

    LOOPBACK = "loopback"
    DEEP_LINK = "deep_link"


class BackendConfig(BaseModel):
    """Where the Editron backend lives and how long to wait for it."""

    base_url: str = Field(default="http://localhost:5000", description="Backend origin")
    api_version: str = Field(default="v1", description="API version path segment")
    request_timeout: float = Field(
        default=30.0, gt=0, description="Per-request timeout in seconds"
    )


class OAuthConfig(BaseModel):
    """Callback transport settings for the browser login."""

    transport: CallbackTransport = CallbackTransport.LOOPBACK
    provider: str = Field(
        default="google-oauth2", description="Provider name sent to the exchange endpoint"
    )
    callback_host: str = Field(default="127.0.0.1", description="Loopback bind address")
    callback_port_start: int = Field(default=8080, ge=1, le=65535)
    callback_port_range: int = Field(
        default=100, ge=1, description="How many ports to try from the start port"
    )
    timeout_seconds: float = Field(
        default=300, gt=0, description="How long to wait for the loopback callback"
    )
    shutdown_grace_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before closing the listener so the browser gets its page",
    )
    deep_link_scheme: str = Field(default="editron-app", description="Custom URI scheme")


class ServerConfig(BaseModel):
    """Identity of the backend this client signs in to."""

    default_server_id: str = "backend_v1"


class AppConfig(BaseModel):
    """Effective configuration after defaults, ``config.json`` and environment.

    Also derives every backend endpoint URL so that no other module builds
    URLs by hand.
    """

    backend: BackendConfig = Field(default_factory=BackendConfig)
    oauth: OAuthConfig = Field(default_factory=OAuthConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    def backend_api_url(self) -> str:
        """Return ``{base_url}/api/{api_version}`` without a trailing slash."""
        base = self.backend.base_url.rstrip("/")
        return f"{base}/api/{self.backend.api_version}"

    def google_login_url(self) -> str:
        return f"{self.backend_api_url()}/auth/google/login"

    def user_profile_url(self) -> str:
        return f"{self.backend_api_url()}/auth/user"

    def token_exchange_url(self) -> str:
        return f"{self.backend_api_url()}/auth/token/exchange"

    def loopback_callback_url(self, port: int) -> str:
        """Return the redirect URI served by a loopback listener on *port*."""
        return f"http://{self.oauth.callback_host}:{port}/auth/callback"

    def deep_link_callback_url(self) -> str:
        """Return the redirect URI registered with the OS for deep links."""
        return f"{self.oauth.deep_link_scheme}://auth/callback"


# --- Session state ---


class UserProfile(BaseModel):
    """A user profile as returned by ``GET /auth/user``.

    Immutable; each successful fetch replaces the previous value wholesale.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    email: str
    name: str
    profile_picture: Optional[str] = Field(default=None, alias="profilePicture")
    auth_provider: str = Field(alias="authProvider")


class Server(BaseModel):
    """One configured backend identity endpoint.

    Servers are created on the first successful login and afterwards only
    updated, never deleted.

    Attributes:
        id: Configured server identifier (e.g. ``"backend_v1"``).
        profile: Profile of the signed-in user, if known.
        available: Whether a usable session exists for this server.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    profile: Optional[UserProfile] = None
    available: bool = False


class AccessToken(BaseModel):
    """Tokens issued for one server.

    Attributes:
        server_id: The :class:`Server` these tokens belong to.
        access_token: Bearer token for backend requests. Secret.
        refresh_token: Refresh token, stored but never used. Secret.
        expires_at: Epoch seconds; always issuance time plus
            :data:`TOKEN_VALIDITY_SECONDS`.
    """

    model_config = ConfigDict(frozen=True)

    server_id: str = Field(min_length=1)
    access_token: str = Field(min_length=1, repr=False)
    refresh_token: str = Field(min_length=1, repr=False)
    expires_at: int = Field(ge=0)

    @classmethod
    def issue(
        cls, server_id: str, tokens: TokenPair, now: Optional[float] = None
    ) -> AccessToken:
        """Stamp a freshly exchanged :class:`TokenPair` with its expiry.

        Args:
            server_id: Server the tokens were issued for.
            tokens: Tokens returned by the exchange endpoint.
            now: Issuance time in epoch seconds; defaults to the current time.
        """
        issued_at = int(time.time() if now is None else now)
        return cls(
            server_id=server_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=issued_at + TOKEN_VALIDITY_SECONDS,
        )


# --- Backend wire format ---


class AuthUrlResponse(BaseModel):
    """Body of ``GET /auth/google/login``."""

    url: str = Field(min_length=1)


class TokenExchangeRequest(BaseModel):
    """Body of ``POST /auth/token/exchange``.

    ``code_verifier`` is the raw PKCE verifier for deep-link logins and the
    empty string for state-based loopback logins.
    """

    model_config = ConfigDict(populate_by_name=True)

    code: str
    code_verifier: str = Field(default="", alias="codeVerifier")
    provider: str
    redirect_uri: str = Field(alias="tauriRedirectUri")


class TokenPair(BaseModel):
    """Body of a successful token exchange."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(min_length=1, alias="accessToken", repr=False)
    refresh_token: str = Field(min_length=1, alias="refreshToken", repr=False)
