"""Typed adapter over the remote settlement contract."""

from __future__ import annotations

from typing import Any

from loguru import logger

from xo.domain import IdPage, Prediction, PredictionOption, TransactionReceipt
from xo.domain.address import participant_or_none

from .bindings import PREDICTION_MARKET, ContractInterface
from .gateway import ContractGateway
from .normalize import normalize_prediction


class LedgerClient:
    """Reads and writes against the prediction market contract.

    Reads never mutate remote state. Writes return the transaction id as soon
    as the ledger accepts the submission. Nothing here retries: reverts surface
    as :class:`~xo.errors.TransactionReverted` with the ledger's message and
    transport problems as :class:`~xo.errors.LedgerConnectionError`.
    """

    def __init__(
        self,
        gateway: ContractGateway,
        contract_address: str,
        *,
        interface: ContractInterface = PREDICTION_MARKET,
    ) -> None:
        self._gateway = gateway
        self.contract_address = contract_address
        self._interface = interface

    async def _call(self, name: str, *args: Any) -> tuple[Any, ...]:
        return await self._gateway.call(self.contract_address, self._interface.method(name), *args)

    async def _send(self, name: str, *args: Any, owner: str, fee_limit: int) -> str:
        txid = await self._gateway.send(
            self.contract_address,
            self._interface.method(name),
            *args,
            owner=owner,
            fee_limit=fee_limit,
        )
        logger.info("Submitted {} from {} (tx {})", name, owner, txid)
        return txid

    # ------------------------------------------------------------------
    # Reads

    async def get_prediction(self, prediction_id: int) -> Prediction:
        (raw,) = await self._call("getPrediction", prediction_id)
        return normalize_prediction(raw)

    async def get_open_predictions(self, offset: int = 0, limit: int = 10) -> IdPage:
        ids, total = await self._call("getOpenPredictions", offset, limit)
        return IdPage(ids=[int(value) for value in ids], total=int(total))

    async def get_matched_predictions(self, offset: int = 0, limit: int = 10) -> IdPage:
        ids, total = await self._call("getMatchedPredictions", offset, limit)
        return IdPage(ids=[int(value) for value in ids], total=int(total))

    async def get_user_predictions(self, address: str) -> list[int]:
        (ids,) = await self._call("getUserPredictions", address)
        return [int(value) for value in ids]

    async def get_winner(self, prediction_id: int) -> str | None:
        (address,) = await self._call("getWinner", prediction_id)
        return participant_or_none(address)

    async def get_admin(self) -> str | None:
        (address,) = await self._call("admin")
        return participant_or_none(address)

    async def get_platform_fee_percent(self) -> int:
        (percent,) = await self._call("platformFeePercent")
        return int(percent)

    async def get_prediction_count(self) -> int:
        (count,) = await self._call("predictionCounter")
        return int(count)

    async def is_paused(self) -> bool:
        (paused,) = await self._call("paused")
        return bool(paused)

    async def get_accumulated_fees(self) -> int:
        (fees,) = await self._call("accumulatedFees")
        return int(fees)

    async def get_native_balance(self, address: str) -> int:
        return await self._gateway.native_balance(address)

    async def get_receipt(self, txid: str) -> TransactionReceipt | None:
        return await self._gateway.receipt(txid)

    # ------------------------------------------------------------------
    # Writes

    async def create_prediction(
        self,
        *,
        owner: str,
        title: str,
        description: str,
        option_a: str,
        option_b: str,
        bet_amount: int,
        creator_choice: PredictionOption,
        expiry_time: int,
        fee_limit: int,
    ) -> str:
        return await self._send(
            "createPrediction",
            title,
            description,
            option_a,
            option_b,
            bet_amount,
            creator_choice,
            expiry_time,
            owner=owner,
            fee_limit=fee_limit,
        )

    async def join_prediction(
        self, prediction_id: int, choice: PredictionOption, *, owner: str, fee_limit: int
    ) -> str:
        return await self._send(
            "joinPrediction", prediction_id, choice, owner=owner, fee_limit=fee_limit
        )

    async def resolve_prediction(
        self, prediction_id: int, winning_option: PredictionOption, *, owner: str, fee_limit: int
    ) -> str:
        return await self._send(
            "resolvePrediction", prediction_id, winning_option, owner=owner, fee_limit=fee_limit
        )

    async def claim_winnings(self, prediction_id: int, *, owner: str, fee_limit: int) -> str:
        return await self._send("claimWinnings", prediction_id, owner=owner, fee_limit=fee_limit)

    async def cancel_prediction(self, prediction_id: int, *, owner: str, fee_limit: int) -> str:
        return await self._send("cancelPrediction", prediction_id, owner=owner, fee_limit=fee_limit)

    async def emergency_refund(self, prediction_id: int, *, owner: str, fee_limit: int) -> str:
        return await self._send("emergencyRefund", prediction_id, owner=owner, fee_limit=fee_limit)

    async def withdraw_fees(self, recipient: str, *, owner: str, fee_limit: int) -> str:
        return await self._send("withdrawFees", recipient, owner=owner, fee_limit=fee_limit)

    async def pause(self, *, owner: str, fee_limit: int) -> str:
        return await self._send("pause", owner=owner, fee_limit=fee_limit)

    async def unpause(self, *, owner: str, fee_limit: int) -> str:
        return await self._send("unpause", owner=owner, fee_limit=fee_limit)
