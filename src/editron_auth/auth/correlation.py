"""Correlation material binding an authorization callback to its login attempt.

Loopback logins carry an anti-CSRF ``state`` value through the provider;
deep-link logins use a PKCE (:rfc:`7636`) verifier whose S256 challenge is
sent up front and whose raw value is sent with the code exchange.

Values come from :mod:`secrets` with 32 bytes (256 bits) of entropy and are
base64url-encoded without padding.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass, field
from typing import Optional

from editron_auth.models import CallbackTransport

ENTROPY_BYTES = 32


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_state() -> str:
    """Return a fresh opaque ``state`` token."""
    return _b64url(secrets.token_bytes(ENTROPY_BYTES))


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``. The verifier is 43
        characters, the minimum length allowed by RFC 7636.
    """
    code_verifier = _b64url(secrets.token_bytes(ENTROPY_BYTES))
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return code_verifier, _b64url(digest)


@dataclass(frozen=True)
class CorrelationMaterial:
    """Single-use material for one login attempt.

    Exactly one of ``state`` and ``pkce_verifier`` is set. ``repr`` hides the
    values so they never end up in logs.
    """

    state: Optional[str] = field(default=None, repr=False)
    pkce_verifier: Optional[str] = field(default=None, repr=False)
    pkce_challenge: Optional[str] = field(default=None, repr=False)

    @property
    def is_pkce(self) -> bool:
        return self.pkce_verifier is not None

    @property
    def code_verifier(self) -> str:
        """Value for the exchange body's ``codeVerifier``; empty for state logins."""
        return self.pkce_verifier or ""

    def matches_state(self, state: Optional[str]) -> bool:
        """Check a ``state`` echoed back by the provider.

        A callback without ``state`` is accepted, since the backend may not
        forward it. A present value must match exactly.
        """
        if state is None or self.state is None:
            return True
        return secrets.compare_digest(state, self.state)


def generate(transport: CallbackTransport) -> CorrelationMaterial:
    """Produce fresh correlation material suited to *transport*."""
    if transport == CallbackTransport.DEEP_LINK:
        verifier, challenge = generate_pkce_pair()
        return CorrelationMaterial(pkce_verifier=verifier, pkce_challenge=challenge)
    return CorrelationMaterial(state=generate_state())
