from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from xo.core.config import Settings, settings as default_settings
from xo.domain.address import SENTINEL_BASE58
from xo.errors import LedgerConnectionError, TransactionReverted

from .schemas import (
    AccountResponse,
    BroadcastResponse,
    ConstantCallResponse,
    TransactionInfoResponse,
    TriggerResponse,
    UnsignedTransaction,
    decode_revert_reason,
)


class TronGridClient:
    """Thin async wrapper around the TronGrid full-node HTTP endpoints.

    Addresses are exchanged in base58 (``visible: true``). Every failure is
    mapped to either :class:`TransactionReverted` (the node or contract said
    no; its message is passed through untouched) or
    :class:`LedgerConnectionError` (we could not get an answer).
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        settings: Settings | None = None,
    ) -> None:
        config = settings or default_settings
        self.base_url = base_url or config.network_config.full_host
        self.timeout = timeout or config.request_timeout_seconds
        headers = {"Accept": "application/json"}
        key = api_key if api_key is not None else config.trongrid_api_key
        if key:
            headers["TRON-PRO-API-KEY"] = key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=headers,
            transport=transport,
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.debug("TronGrid POST {} payload={}", path, payload)
        try:
            response = await self.client.post(path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise LedgerConnectionError(f"TronGrid request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise LedgerConnectionError(f"TronGrid returned invalid JSON for {path}") from exc
        if not isinstance(data, dict):
            raise LedgerConnectionError(f"TronGrid returned an unexpected payload for {path}")
        if "Error" in data:
            raise TransactionReverted(str(data["Error"]))
        return data

    async def trigger_constant_contract(
        self,
        contract_address: str,
        function_selector: str,
        parameter: str,
        *,
        owner_address: str | None = None,
    ) -> str:
        """Run a read-only call and return the raw hex result."""

        data = await self._post(
            "/wallet/triggerconstantcontract",
            {
                "owner_address": owner_address or SENTINEL_BASE58,
                "contract_address": contract_address,
                "function_selector": function_selector,
                "parameter": parameter,
                "visible": True,
            },
        )
        response = _validate(ConstantCallResponse, data)
        if response.result.code or not response.result.result:
            raise TransactionReverted(
                response.result.decoded_message or response.result.code or "Call rejected"
            )
        if response.reverted:
            reason = next(
                (decode_revert_reason(value) for value in response.constant_result if value),
                None,
            )
            raise TransactionReverted(reason or "REVERT opcode executed")
        return response.constant_result[0] if response.constant_result else ""

    async def trigger_smart_contract(
        self,
        contract_address: str,
        function_selector: str,
        parameter: str,
        *,
        owner_address: str,
        fee_limit: int,
        call_value: int = 0,
    ) -> UnsignedTransaction:
        """Build an unsigned transaction for a mutating call."""

        data = await self._post(
            "/wallet/triggersmartcontract",
            {
                "owner_address": owner_address,
                "contract_address": contract_address,
                "function_selector": function_selector,
                "parameter": parameter,
                "fee_limit": fee_limit,
                "call_value": call_value,
                "visible": True,
            },
        )
        response = _validate(TriggerResponse, data)
        if response.result.code or not response.result.result or response.transaction is None:
            raise TransactionReverted(
                response.result.decoded_message or response.result.code or "Transaction rejected"
            )
        return response.transaction

    async def broadcast_transaction(self, signed_transaction: dict[str, Any]) -> str:
        data = await self._post("/wallet/broadcasttransaction", signed_transaction)
        response = _validate(BroadcastResponse, data)
        if not response.result:
            raise TransactionReverted(
                response.decoded_message or response.code or "Broadcast rejected"
            )
        txid = response.txid or signed_transaction.get("txID")
        if not txid:
            raise LedgerConnectionError("Broadcast accepted without a transaction id")
        logger.info("Broadcast transaction {}", txid)
        return str(txid)

    async def get_account_balance(self, address: str) -> int:
        data = await self._post("/wallet/getaccount", {"address": address, "visible": True})
        # Accounts that never received funds come back as an empty object.
        return _validate(AccountResponse, data).balance

    async def get_transaction_info(self, txid: str) -> TransactionInfoResponse:
        data = await self._post("/wallet/gettransactioninfobyid", {"value": txid})
        return _validate(TransactionInfoResponse, data)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "TronGridClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def _validate(model: Any, data: dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise LedgerConnectionError(f"Unexpected TronGrid payload: {exc}") from exc
