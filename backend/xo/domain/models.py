"""Typed domain representations shared by the session, clients, and views."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum


class PredictionStatus(IntEnum):
    """Mirrors the settlement contract's status codes."""

    OPEN = 0
    MATCHED = 1
    RESOLVED = 2
    CANCELLED = 3
    CLAIMED = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def is_terminal(self) -> bool:
        return self in (PredictionStatus.CANCELLED, PredictionStatus.CLAIMED)


class PredictionOption(IntEnum):
    NONE = 0
    OPTION_A = 1
    OPTION_B = 2

    @property
    def opposite(self) -> "PredictionOption":
        if self is PredictionOption.OPTION_A:
            return PredictionOption.OPTION_B
        if self is PredictionOption.OPTION_B:
            return PredictionOption.OPTION_A
        raise ValueError("PredictionOption.NONE has no opposite side")


class ConnectionMode(str, Enum):
    DISCONNECTED = "disconnected"
    REAL = "real"
    SIMULATED = "simulated"


class SessionPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class TransactionStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class Action(str, Enum):
    JOIN = "join"
    CANCEL = "cancel"
    CLAIM = "claim"
    RESOLVE = "resolve"
    REFUND = "refund"


@dataclass(frozen=True, slots=True)
class Prediction:
    """Snapshot of one remote prediction record; the ledger owns the truth."""

    id: int
    creator: str
    opponent: str | None
    title: str
    description: str
    option_a: str
    option_b: str
    bet_amount: int
    creator_choice: PredictionOption
    opponent_choice: PredictionOption
    status: PredictionStatus
    winning_option: PredictionOption
    created_at: int
    expiry_time: int

    def option_text(self, option: PredictionOption) -> str:
        if option is PredictionOption.OPTION_A:
            return self.option_a
        if option is PredictionOption.OPTION_B:
            return self.option_b
        return ""


@dataclass(frozen=True, slots=True)
class Identity:
    """Who is asking: an address (absent when disconnected) and the privilege flag."""

    address: str | None = None
    privileged: bool = False

    @property
    def connected(self) -> bool:
        return self.address is not None


@dataclass(frozen=True, slots=True)
class WalletState:
    address: str | None = None
    native_balance: int = 0
    token_balance: int = 0
    is_admin: bool = False
    mode: ConnectionMode = ConnectionMode.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self.address is not None and self.mode is not ConnectionMode.DISCONNECTED

    @property
    def identity(self) -> Identity:
        return Identity(address=self.address, privileged=self.is_admin)


@dataclass(frozen=True, slots=True)
class TransactionState:
    status: TransactionStatus = TransactionStatus.IDLE
    reference: str | None = None
    error: str | None = None
    label: str | None = None

    @classmethod
    def pending(cls, label: str | None = None) -> "TransactionState":
        return cls(status=TransactionStatus.PENDING, label=label)

    @classmethod
    def succeeded(cls, reference: str, label: str | None = None) -> "TransactionState":
        return cls(status=TransactionStatus.SUCCESS, reference=reference, label=label)

    @classmethod
    def failed(cls, message: str, label: str | None = None) -> "TransactionState":
        return cls(status=TransactionStatus.ERROR, error=message, label=label)


@dataclass(frozen=True, slots=True)
class IdPage:
    """One page of record ids plus the ledger's total for that listing."""

    ids: list[int] = field(default_factory=list)
    total: int = 0


@dataclass(frozen=True, slots=True)
class TransactionReceipt:
    txid: str
    confirmed: bool
    succeeded: bool
    block_number: int | None = None
    fee: int | None = None
    message: str | None = None
