"""Authorization callback transports."""

from editron_auth.auth.receivers.base import (
    AuthorizationCallback,
    CallbackReceiver,
    PendingReceipt,
)
from editron_auth.auth.receivers.deeplink import DeepLinkReceiver
from editron_auth.auth.receivers.loopback import LoopbackReceiver
from editron_auth.models import AppConfig, CallbackTransport


def create_receiver(config: AppConfig) -> CallbackReceiver:
    """Return the receiver for the configured transport."""
    if config.oauth.transport == CallbackTransport.DEEP_LINK:
        return DeepLinkReceiver(config)
    return LoopbackReceiver(config)


__all__ = [
    "AuthorizationCallback",
    "CallbackReceiver",
    "DeepLinkReceiver",
    "LoopbackReceiver",
    "PendingReceipt",
    "create_receiver",
]
