"""Error taxonomy shared by the session, ledger adapters, and action flows."""

from __future__ import annotations


class XOError(Exception):
    """Base class for every error raised by the client layer."""


class WalletConnectionError(XOError):
    """Raised when a signing identity cannot be attached to the session."""


class ProviderUnavailable(WalletConnectionError):
    """Raised when no signing provider is installed or reachable."""

    def __init__(self, message: str = "Signing provider not found. Install a provider or use simulated mode.") -> None:
        super().__init__(message)


class ConnectionRejected(WalletConnectionError):
    """Raised when the user explicitly declines account access."""

    def __init__(self, message: str = "Wallet connection was rejected by user.") -> None:
        super().__init__(message)


class ConnectionTimeout(WalletConnectionError):
    """Raised when a bounded readiness poll runs out of attempts."""


class ProviderRequestFailed(WalletConnectionError):
    """Raised when account access fails for any reason other than rejection."""


class SessionNotConnected(XOError):
    """Raised when an operation requires a connected, signing-capable identity."""

    def __init__(self, message: str = "Wallet not connected") -> None:
        super().__init__(message)


class InsufficientFunds(XOError):
    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient token balance: {available} available, {required} required"
        )


class AuthorizationInsufficient(XOError):
    """Raised when the spend authorization is still below the amount an action needs."""

    def __init__(self, required: int, current: int) -> None:
        self.required = required
        self.current = current
        super().__init__(
            f"Token authorization {current} is below the required {required}"
        )


class LedgerError(XOError):
    """Base class for failures talking to the remote ledger."""


class TransactionReverted(LedgerError):
    """The ledger rejected the call; ``message`` is the ledger's own text."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class LedgerConnectionError(LedgerError):
    """Raised when the ledger endpoint cannot be reached or answers garbage."""


class MalformedRecord(LedgerError, ValueError):
    """Raised when a ledger record violates the prediction data model."""


class ContractCallShapeError(LedgerError, TypeError):
    """Raised when call arguments do not match a method's typed binding."""


class PartialViewResolutionFailure(XOError):
    """One id in a view refresh could not be resolved; the id is dropped from the view."""

    def __init__(self, prediction_id: int, cause: BaseException) -> None:
        self.prediction_id = prediction_id
        self.cause = cause
        super().__init__(f"Prediction {prediction_id} could not be resolved: {cause}")


class ActionNotAllowed(XOError):
    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(reason)


class BetAmountOutOfRange(XOError, ValueError):
    pass


class InvalidExpiry(XOError, ValueError):
    pass


class TransactionInFlight(XOError):
    """Raised when the orchestrator slot already holds a pending transaction."""

    def __init__(self, message: str = "A transaction is already pending") -> None:
        super().__init__(message)


class SlotNotReset(XOError):
    """Raised when a terminal transaction state has not been acknowledged yet."""

    def __init__(self, message: str = "Acknowledge the previous transaction before submitting another") -> None:
        super().__init__(message)


__all__ = [
    "ActionNotAllowed",
    "AuthorizationInsufficient",
    "BetAmountOutOfRange",
    "ConnectionRejected",
    "ConnectionTimeout",
    "ContractCallShapeError",
    "InsufficientFunds",
    "InvalidExpiry",
    "LedgerConnectionError",
    "LedgerError",
    "MalformedRecord",
    "PartialViewResolutionFailure",
    "ProviderRequestFailed",
    "ProviderUnavailable",
    "SessionNotConnected",
    "SlotNotReset",
    "TransactionInFlight",
    "TransactionReverted",
    "WalletConnectionError",
    "XOError",
]
