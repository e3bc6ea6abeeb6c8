"""Authorization code to token exchange against the Editron backend."""

from __future__ import annotations

from editron_auth.auth.client import BackendClient, parse_model
from editron_auth.auth.correlation import CorrelationMaterial
from editron_auth.exceptions import BackendRejectedError
from editron_auth.models import AppConfig, TokenExchangeRequest, TokenPair
from editron_auth.output import debug

EXCHANGE_PATH = "/auth/token/exchange"


class TokenExchangeClient:
    """Swaps an authorization code for an access/refresh token pair.

    The backend talks to the identity provider; this client only posts the
    code, the provider name, the redirect target used for the attempt and,
    for PKCE logins, the raw verifier so the backend can check it against
    the challenge sent earlier. Expiry is not part of the response; the
    caller stamps it.

    Args:
        backend: Open :class:`BackendClient`.
        config: Supplies the provider name.
    """

    def __init__(self, backend: BackendClient, config: AppConfig) -> None:
        self._backend = backend
        self._config = config

    async def exchange(
        self, code: str, material: CorrelationMaterial, redirect_uri: str
    ) -> TokenPair:
        """Exchange *code* for tokens.

        Args:
            code: Authorization code from the callback.
            material: Correlation material of the attempt.
            redirect_uri: Redirect target the attempt registered.

        Raises:
            NetworkError: The backend could not be reached.
            BackendRejectedError: Non-2xx status; carries status and body.
            MalformedResponseError: 2xx status with an unusable body.
        """
        body = TokenExchangeRequest(
            code=code,
            code_verifier=material.code_verifier,
            provider=self._config.oauth.provider,
            redirect_uri=redirect_uri,
        )
        response = await self._backend.post(EXCHANGE_PATH, json=body.model_dump(by_alias=True))
        if not response.is_success:
            raise BackendRejectedError(
                f"Token exchange failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        tokens = parse_model(response, TokenPair)
        debug("Token exchange succeeded")
        return tokens
