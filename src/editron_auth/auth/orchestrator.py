"""Login orchestrator -- drives the browser-based OAuth2 authorization-code login.

The :class:`LoginOrchestrator` ties the pieces of the auth subsystem
together:

1. :mod:`~editron_auth.auth.correlation` generates single-use correlation
   material for the attempt.
2. A :class:`~editron_auth.auth.receivers.CallbackReceiver` is armed (for
   the loopback transport this binds the listener, so the real port is known
   before the authorization URL is requested).
3. The backend supplies the provider's authorization URL, which is opened
   in the system browser.
4. The callback's code goes to the
   :class:`~editron_auth.auth.exchange.TokenExchangeClient`; the resulting
   :class:`~editron_auth.models.AccessToken` is stored and flushed.
5. The :class:`~editron_auth.auth.profile.ProfileFetcher` hydrates the
   :class:`~editron_auth.models.Server`, which is stored and flushed too.

Every outcome is returned (or raised) to the caller and also broadcast on
the :class:`~editron_auth.events.EventBus`.

All state lives on the instance; independent orchestrators never share
anything.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from editron_auth.auth import correlation
from editron_auth.auth.client import BackendClient, parse_model
from editron_auth.auth.exchange import TokenExchangeClient
from editron_auth.auth.persistence import PersistenceBridge
from editron_auth.auth.profile import ProfileFetcher
from editron_auth.auth.receivers import (
    CallbackReceiver,
    DeepLinkReceiver,
    PendingReceipt,
    create_receiver,
)
from editron_auth.auth.registry import OAuthSession, SessionRegistry, SessionSlot
from editron_auth.browser import BrowserLauncher, SystemBrowser, with_query_params
from editron_auth.config import SERVERS_FILENAME, TOKENS_FILENAME, get_data_dir
from editron_auth.events import LOGIN_FAILED, LOGIN_SUCCESS, LOGOUT_SUCCESS, EventBus
from editron_auth.exceptions import (
    AuthorizationDeniedError,
    BackendRejectedError,
    NoActiveSessionError,
    NotAuthenticatedError,
    UnauthorizedError,
)
from editron_auth.models import (
    AccessToken,
    AppConfig,
    AuthUrlResponse,
    CallbackTransport,
    Server,
    UserProfile,
)
from editron_auth.output import debug, warning
from editron_auth.store import JsonFileStore

LOGIN_PATH = "/auth/google/login"


class LoginOrchestrator:
    """Runs logins, probes and logouts for the configured server.

    Args:
        config: Effective application configuration.
        backend: Open backend client.
        receiver: Callback transport.
        persistence: Bridge to durable storage.
        browser: Browser launcher; defaults to :class:`SystemBrowser`.
        events: Event bus; a private one is created when omitted.
        registry: Session registry; a fresh one is created when omitted.
    """

    def __init__(
        self,
        config: AppConfig,
        backend: BackendClient,
        receiver: CallbackReceiver,
        persistence: PersistenceBridge,
        browser: Optional[BrowserLauncher] = None,
        events: Optional[EventBus] = None,
        registry: Optional[SessionRegistry] = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._receiver = receiver
        self._persistence = persistence
        self._browser = browser or SystemBrowser()
        self._events = events or EventBus()
        self._registry = registry or SessionRegistry()
        self._sessions = SessionSlot()
        self._exchange = TokenExchangeClient(backend, config)
        self._profiles = ProfileFetcher(backend)

    @property
    def server_id(self) -> str:
        return self._config.server.default_server_id

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def active_session(self) -> Optional[OAuthSession]:
        """The in-flight login attempt, if any."""
        return self._sessions.peek()

    def get_server(self) -> Optional[Server]:
        return self._registry.get_server(self.server_id)

    async def initialize(self) -> None:
        """Restore persisted servers and tokens.

        Raises:
            PersistenceError: A persisted document is malformed.
        """
        await asyncio.to_thread(self._persistence.load, self._registry)

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    async def start_login(self) -> Server:
        """Run a complete browser login and return the signed-in server.

        Any earlier in-flight attempt is abandoned first. For the loopback
        transport this waits at most ``oauth.timeout_seconds`` for the
        callback; the deep-link transport waits until
        :meth:`handle_deep_link` delivers one. Cancelling the calling task
        gives up on the attempt: its session is dropped and its receiver
        released, without a ``login_failed`` event.

        Raises:
            NoPortAvailableError: No loopback port could be bound. Raised
                before the browser is opened.
            NetworkError: The backend could not be reached.
            AuthProviderError: The backend or provider refused the login.
            CallbackTimeoutError: No callback arrived in time.
            BrowserLaunchError: The system browser could not be opened.
            NoActiveSessionError: The attempt was replaced by a newer one or
                completed through :meth:`finalize`.
        """
        self._sessions.clear()
        session: Optional[OAuthSession] = None
        receipt: Optional[PendingReceipt] = None
        succeeded = False
        try:
            material = correlation.generate(self._receiver.transport)
            receipt = await self._receiver.begin(material)
            session = OAuthSession(
                material=material,
                redirect_uri=receipt.redirect_uri,
                port=receipt.port,
                deadline=receipt.deadline,
            )
            self._sessions.put(session)

            auth_url = await self._authorization_url(receipt)
            browser_url = with_query_params(auth_url, display="popup")
            if material.pkce_challenge:
                browser_url = with_query_params(
                    browser_url,
                    code_challenge=material.pkce_challenge,
                    code_challenge_method="S256",
                )
            await self._browser.open(browser_url)

            debug("Waiting for the authorization callback")
            callback = await self._receiver.wait(receipt)
            server = await self._finalize(callback.code, callback.state)
            succeeded = True
            return server
        except Exception as exc:
            self._report_failure(exc)
            raise
        finally:
            # also reached when the caller cancels the task
            if not succeeded:
                if session is not None:
                    self._sessions.discard(session)
                if receipt is not None:
                    await self._receiver.cancel(receipt)

    async def finalize(self, code: str, state: Optional[str] = None) -> Server:
        """Complete the in-flight attempt with a code delivered by the host.

        Consumes the active session exactly once; a second call for the same
        attempt raises :class:`NoActiveSessionError`.

        Raises:
            NoActiveSessionError: No login is in flight.
            AuthorizationDeniedError: *state* does not match the attempt.
            NetworkError, AuthProviderError: Exchange or profile fetch failed.
                The token stays stored when only the profile fetch failed.
            PersistenceError: The session could not be written.
        """
        try:
            return await self._finalize(code, state, release_receiver=True)
        except Exception as exc:
            self._report_failure(exc)
            raise

    async def _finalize(
        self, code: str, state: Optional[str], release_receiver: bool = False
    ) -> Server:
        session = self._sessions.take()
        if session is None:
            raise NoActiveSessionError("No login is in progress")
        if release_receiver:
            await self._receiver.close()
        if not session.material.matches_state(state):
            raise AuthorizationDeniedError("state_mismatch")

        tokens = await self._exchange.exchange(code, session.material, session.redirect_uri)
        token = AccessToken.issue(self.server_id, tokens)
        self._registry.save_token(token)
        await self._persistence.flush_tokens(self._registry)
        debug(f"Stored access token for {self.server_id}")

        # token stays stored if this fails; signed in with an unknown profile
        profile = await self._profiles.fetch(token.access_token)
        server = Server(id=self.server_id, profile=profile, available=True)
        self._registry.save_server(server)
        await self._persistence.flush_servers(self._registry)

        self._events.emit(LOGIN_SUCCESS, server)
        return server

    def handle_deep_link(self, uri: str) -> bool:
        """Offer an OS-delivered URI to the pending deep-link login.

        Returns:
            ``True`` if the URI completed the pending attempt's callback,
            ``False`` if it was ignored.
        """
        if not isinstance(self._receiver, DeepLinkReceiver):
            debug("Ignoring deep link: loopback transport in use")
            return False
        return self._receiver.handle_uri(uri)

    async def _authorization_url(self, receipt: PendingReceipt) -> str:
        params = None
        if self._receiver.transport == CallbackTransport.LOOPBACK:
            params = {"redirect_uri": receipt.redirect_uri}
        response = await self._backend.get(LOGIN_PATH, params=params)
        if not response.is_success:
            raise BackendRejectedError(
                f"Login URL request failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return parse_model(response, AuthUrlResponse).url

    def _report_failure(self, exc: Exception) -> None:
        if isinstance(exc, NoActiveSessionError):
            # the attempt is owned by whoever consumed or replaced it
            debug(f"Login attempt ended: {exc}")
            return
        debug(f"Login failed: {exc}")
        self._events.emit(LOGIN_FAILED, str(exc))

    # ------------------------------------------------------------------ #
    # Session queries
    # ------------------------------------------------------------------ #

    async def check_login(self) -> bool:
        """Probe whether the stored token is still accepted.

        Returns:
            ``False`` when no token is stored or the backend answers 401
            (the token is then dropped and the server marked unavailable),
            ``True`` when the profile fetch succeeds.

        Raises:
            NetworkError, AuthProviderError: The probe was inconclusive.
                The stored token is kept.
        """
        token = self._registry.get_token(self.server_id)
        if token is None:
            return False
        try:
            await self._profiles.fetch(token.access_token)
        except UnauthorizedError:
            warning("Stored session is no longer valid; removing it")
            await self._sign_out(clear_profile=False)
            return False
        return True

    async def get_profile(self) -> UserProfile:
        """Fetch the profile of the signed-in user.

        Raises:
            NotAuthenticatedError: No token is stored.
            UnauthorizedError: The backend rejected the token.
            NetworkError, AuthProviderError: The request failed.
        """
        return await self._profiles.fetch(self.get_access_token())

    def get_access_token(self) -> str:
        """Return the stored access token for the configured server.

        Raises:
            NotAuthenticatedError: No token is stored.
        """
        token = self._registry.get_token(self.server_id)
        if token is None:
            raise NotAuthenticatedError("Not logged in")
        return token.access_token

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    async def logout(self) -> None:
        """Forget the session for the configured server. Safe to repeat."""
        await self._sign_out(clear_profile=True)
        self._events.emit(LOGOUT_SUCCESS, self.server_id)

    async def _sign_out(self, clear_profile: bool) -> None:
        self._registry.remove_token(self.server_id)
        server = self._registry.get_server(self.server_id)
        if server is not None:
            update: dict[str, object] = {"available": False}
            if clear_profile:
                update["profile"] = None
            self._registry.save_server(server.model_copy(update=update))
        await self._persistence.flush(self._registry)


def create_default_orchestrator(
    config: AppConfig,
    backend: BackendClient,
    browser: Optional[BrowserLauncher] = None,
    events: Optional[EventBus] = None,
) -> LoginOrchestrator:
    """Build an orchestrator backed by JSON files in the data directory.

    The callback receiver follows ``config.oauth.transport``.
    """
    data_dir = get_data_dir()
    persistence = PersistenceBridge(
        JsonFileStore(data_dir / SERVERS_FILENAME),
        JsonFileStore(data_dir / TOKENS_FILENAME),
    )
    return LoginOrchestrator(
        config,
        backend,
        create_receiver(config),
        persistence,
        browser=browser,
        events=events,
    )
