"""Pydantic views of the TronGrid full-node HTTP API payloads."""

from __future__ import annotations

from typing import Any

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from pydantic import BaseModel, ConfigDict, Field

_ERROR_SELECTOR = "08c379a0"


def decode_message(value: str | None) -> str | None:
    """Decode the hex-encoded UTF-8 messages the node returns, falling back to raw text."""

    if not value:
        return None
    try:
        return bytes.fromhex(value).decode("utf-8", errors="replace")
    except ValueError:
        return value


def decode_revert_reason(data: str | None) -> str | None:
    """Extract the ``Error(string)`` reason from revert return data."""

    if not data:
        return None
    payload = data.removeprefix("0x")
    if payload.startswith(_ERROR_SELECTOR):
        try:
            (reason,) = decode(["string"], bytes.fromhex(payload[len(_ERROR_SELECTOR):]))
        except (DecodingError, ValueError):
            return None
        return str(reason)
    return None


class ApiResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: bool = False
    code: str | None = None
    message: str | None = None

    @property
    def decoded_message(self) -> str | None:
        return decode_message(self.message)


class TransactionRet(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ret: str | None = None
    contractRet: str | None = None


class UnsignedTransaction(BaseModel):
    model_config = ConfigDict(extra="allow")

    txID: str
    raw_data: dict[str, Any] = Field(default_factory=dict)
    raw_data_hex: str
    ret: list[TransactionRet] = Field(default_factory=list)


class ConstantCallResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: ApiResult = Field(default_factory=ApiResult)
    constant_result: list[str] = Field(default_factory=list)
    energy_used: int | None = None
    transaction: dict[str, Any] | None = None

    @property
    def reverted(self) -> bool:
        if not self.transaction:
            return False
        rets = self.transaction.get("ret") or []
        return any(
            (entry.get("ret") or entry.get("contractRet")) == "REVERT"
            for entry in rets
            if isinstance(entry, dict)
        )


class TriggerResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: ApiResult = Field(default_factory=ApiResult)
    transaction: UnsignedTransaction | None = None


class BroadcastResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: bool = False
    txid: str | None = None
    code: str | None = None
    message: str | None = None

    @property
    def decoded_message(self) -> str | None:
        return decode_message(self.message)


class AccountResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: str | None = None
    balance: int = 0


class TransactionInfoResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    fee: int | None = None
    blockNumber: int | None = None
    receipt: dict[str, Any] = Field(default_factory=dict)
    result: str | None = None
    resMessage: str | None = None
    contractResult: list[str] = Field(default_factory=list)

    @property
    def known(self) -> bool:
        return self.id is not None

    @property
    def succeeded(self) -> bool:
        if self.result == "FAILED":
            return False
        outcome = self.receipt.get("result")
        return outcome in (None, "SUCCESS")

    @property
    def failure_message(self) -> str | None:
        if self.succeeded:
            return None
        for data in self.contractResult:
            reason = decode_revert_reason(data)
            if reason:
                return reason
        return decode_message(self.resMessage) or self.receipt.get("result")
