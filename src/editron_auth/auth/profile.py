"""User profile lookup, doubling as a liveness probe for stored tokens."""

from __future__ import annotations

from editron_auth.auth.client import BackendClient, parse_model
from editron_auth.exceptions import BackendRejectedError, UnauthorizedError
from editron_auth.models import UserProfile

PROFILE_PATH = "/auth/user"


class ProfileFetcher:
    """Fetches the signed-in user's profile with a bearer token.

    Never touches the session registry; callers decide what a 401 means.
    """

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def fetch(self, access_token: str) -> UserProfile:
        """Return the profile belonging to *access_token*.

        Raises:
            NetworkError: The backend could not be reached.
            UnauthorizedError: HTTP 401; the token is no longer accepted.
            BackendRejectedError: Any other non-2xx status.
            MalformedResponseError: 2xx status with an unusable body.
        """
        response = await self._backend.get(
            PROFILE_PATH, headers={"Authorization": f"Bearer {access_token}"}
        )
        if response.status_code == 401:
            raise UnauthorizedError("The backend rejected the stored access token")
        if not response.is_success:
            raise BackendRejectedError(
                f"Profile request failed with status {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return parse_model(response, UserProfile)
