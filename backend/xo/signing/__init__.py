"""Signing identity providers and their notification stream."""

from .base import (
    AccountChanged,
    NetworkChanged,
    NotificationHub,
    ProviderEvent,
    SigningProvider,
    Subscription,
)
from .local import LocalKeySigningProvider, address_from_key

__all__ = [
    "AccountChanged",
    "LocalKeySigningProvider",
    "NetworkChanged",
    "NotificationHub",
    "ProviderEvent",
    "SigningProvider",
    "Subscription",
    "address_from_key",
]
