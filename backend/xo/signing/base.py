"""Provider contracts for signing identities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Union

from loguru import logger


@dataclass(frozen=True, slots=True)
class AccountChanged:
    """The provider switched accounts; ``address`` is ``None`` when it locked or logged out."""

    address: str | None


@dataclass(frozen=True, slots=True)
class NetworkChanged:
    network: str


ProviderEvent = Union[AccountChanged, NetworkChanged]
ProviderListener = Callable[[ProviderEvent], None]


class Subscription:
    """Handle returned by ``subscribe``; closing it detaches the listener."""

    def __init__(self, detach: Callable[[], None]) -> None:
        self._detach: Callable[[], None] | None = detach

    @property
    def active(self) -> bool:
        return self._detach is not None

    def close(self) -> None:
        if self._detach is not None:
            detach, self._detach = self._detach, None
            detach()


class NotificationHub:
    """Fan-out of typed events to attached listeners."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[Any], None]] = []

    def subscribe(self, listener: Callable[[Any], None]) -> Subscription:
        self._listeners.append(listener)

        def detach() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(detach)

    def emit(self, event: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener {} failed handling {}", listener, event)

    def __len__(self) -> int:
        return len(self._listeners)


class SigningProvider(Protocol):
    """Interface implemented by signing identity adapters."""

    name: str

    async def is_ready(self) -> bool:
        """Return True once the provider has finished initialising."""

    async def request_accounts(self) -> list[str]:
        """Ask the user for account access.

        Raise :class:`~xo.errors.ConnectionRejected` when the user declines;
        any other exception is treated as a failed request.
        """

    async def default_address(self) -> str | None:
        """Return the usable address once the underlying client is ready."""

    async def sign_transaction(self, transaction: Mapping[str, Any]) -> dict[str, Any]:
        """Return ``transaction`` with its signature attached."""

    def subscribe(self, listener: ProviderListener) -> Subscription:
        """Attach ``listener`` to account/network change notifications."""


__all__ = [
    "AccountChanged",
    "NetworkChanged",
    "NotificationHub",
    "ProviderEvent",
    "ProviderListener",
    "SigningProvider",
    "Subscription",
]
