"""Domain models and pure rules for XO predictions."""

from .models import (
    Action,
    ConnectionMode,
    IdPage,
    Identity,
    Prediction,
    PredictionOption,
    PredictionStatus,
    SessionPhase,
    TransactionReceipt,
    TransactionState,
    TransactionStatus,
    WalletState,
)

__all__ = [
    "Action",
    "ConnectionMode",
    "IdPage",
    "Identity",
    "Prediction",
    "PredictionOption",
    "PredictionStatus",
    "SessionPhase",
    "TransactionReceipt",
    "TransactionState",
    "TransactionStatus",
    "WalletState",
]
