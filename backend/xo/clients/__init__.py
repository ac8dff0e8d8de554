"""Typed adapters for the remote settlement and token ledgers."""

from .bindings import PREDICTION_MARKET, TRC20, ContractInterface, ContractMethod
from .gateway import ContractGateway
from .ledger_client import LedgerClient
from .normalize import normalize_prediction
from .token_client import TokenClient

__all__ = [
    "ContractGateway",
    "ContractInterface",
    "ContractMethod",
    "LedgerClient",
    "PREDICTION_MARKET",
    "TRC20",
    "TokenClient",
    "normalize_prediction",
]
