"""Asynchronous HTTP client for the Editron backend's auth endpoints.

:class:`BackendClient` wraps :class:`httpx.AsyncClient` rooted at the
backend API URL (``{base_url}/api/{api_version}``). It returns raw
:class:`httpx.Response` objects and leaves status interpretation to the
caller, since each endpoint maps statuses to different errors. Transport
failures become :class:`~editron_auth.exceptions.NetworkError`; nothing is
retried.
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from editron_auth.exceptions import MalformedResponseError, NetworkError
from editron_auth.models import AppConfig
from editron_auth.output import debug


class BackendClient:
    """Async client for backend requests. Must be used as an async context manager.

    Args:
        config: Effective application configuration.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        async with BackendClient(config) as backend:
            response = await backend.get("/auth/user", headers={...})
    """

    def __init__(
        self,
        config: AppConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> BackendClient:
        self._client = httpx.AsyncClient(
            base_url=self._config.backend_api_url(),
            timeout=self._config.backend.request_timeout,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request relative to the backend API URL.

        Args:
            method: HTTP method.
            path: Path below the API root, e.g. ``"/auth/user"``.
            **kwargs: Forwarded to :meth:`httpx.AsyncClient.request`.

        Raises:
            NetworkError: On connection, timeout or protocol failures.
        """
        if self._client is None:
            raise RuntimeError("BackendClient must be used as an async context manager")
        debug(f"{method} {path}")
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise NetworkError(
                f"Cannot reach backend at {self._config.backend_api_url()}: {exc}"
            ) from exc
        debug(f"{method} {path} -> {response.status_code}")
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)


ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_model(response: httpx.Response, model: type[ModelT]) -> ModelT:
    """Validate a success response body as *model*.

    Raises:
        MalformedResponseError: If the body is not JSON or does not match.
    """
    path = response.request.url.path
    try:
        payload = response.json()
    except ValueError as exc:
        raise MalformedResponseError(
            f"Response from {path} is not valid JSON",
            status_code=response.status_code,
            body=response.text,
        ) from exc
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        # field names only; input values may be secrets
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "body" for err in exc.errors())
        raise MalformedResponseError(
            f"Unexpected response from {path}: invalid {fields}",
            status_code=response.status_code,
            body=response.text,
        ) from exc
