"""Action facade: eligibility gate, funds check, authorization, single-slot submit, refetch."""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable

from loguru import logger
from pydantic import BaseModel, Field, field_validator

from xo.clients import LedgerClient, TokenClient
from xo.core.config import Settings, settings as default_settings
from xo.domain import Action, Prediction, PredictionOption, TransactionReceipt, TransactionState
from xo.domain.address import is_valid_address
from xo.domain.eligibility import (
    NOT_PRIVILEGED,
    displayed_pot,
    ensure_allowed,
    fee_rate_from_percent,
    net_payout,
    opponent_required_choice,
)
from xo.domain.units import parse_token_amount
from xo.errors import ActionNotAllowed, BetAmountOutOfRange, InsufficientFunds, InvalidExpiry
from xo.repositories import PredictionRepository, ViewName

from .allowance_gate import AllowanceGate
from .transaction_orchestrator import TransactionOrchestrator
from .wallet_session import WalletSession

SECONDS_PER_HOUR = 3600


class CreatePredictionRequest(BaseModel):
    title: str = Field(..., max_length=200)
    description: str = Field(default="", max_length=2000)
    option_a: str = Field(..., max_length=100)
    option_b: str = Field(..., max_length=100)
    bet_amount: Decimal = Field(..., description="Stake in whole token units")
    creator_choice: PredictionOption
    expiry_hours: int = Field(..., gt=0)

    @field_validator("title", "option_a", "option_b")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        return value.strip()

    @field_validator("creator_choice")
    @classmethod
    def _require_side(cls, value: PredictionOption) -> PredictionOption:
        if value is PredictionOption.NONE:
            raise ValueError("creator must pick option A or option B")
        return value


@dataclass(frozen=True, slots=True)
class PayoutQuote:
    pot: int
    fee_percent: Decimal
    net_payout: int

    @property
    def fee(self) -> int:
        return self.pot - self.net_payout


class PredictionService:
    """Run user actions through the gate, authorize, submit, refresh pipeline.

    Every action re-reads the record from the ledger before deciding whether
    it is allowed; cached views are only ever refreshed afterwards, never
    patched.
    """

    def __init__(
        self,
        *,
        ledger: LedgerClient,
        tokens: TokenClient,
        session: WalletSession,
        gate: AllowanceGate,
        orchestrator: TransactionOrchestrator,
        repository: PredictionRepository,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._tokens = tokens
        self._session = session
        self._gate = gate
        self._orchestrator = orchestrator
        self._repository = repository
        self._settings = settings or default_settings
        self._clock = clock

    @property
    def transaction_state(self) -> TransactionState:
        return self._orchestrator.state

    def reset_transaction(self) -> None:
        self._orchestrator.reset()

    def now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Validation helpers

    def validate_bet_amount(self, amount: Decimal | str | int) -> int:
        """Check ``amount`` (whole token units) against the bounds; return minor units."""

        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise BetAmountOutOfRange(f"Invalid bet amount: {amount!r}") from exc
        low, high = self._settings.min_bet_amount, self._settings.max_bet_amount
        if not value.is_finite() or value < low or value > high:
            raise BetAmountOutOfRange(f"Bet amount must be between {low} and {high}")
        return parse_token_amount(value)

    def expiry_time_for(self, hours: int) -> int:
        if hours not in self._settings.expiry_options_hours:
            options = ", ".join(str(option) for option in self._settings.expiry_options_hours)
            raise InvalidExpiry(f"Expiry must be one of: {options} hours")
        return self.now() + hours * SECONDS_PER_HOUR

    # ------------------------------------------------------------------
    # Quotes

    async def quote_payout(self, record: Prediction) -> PayoutQuote:
        """Quote the winner's take using the live platform fee."""

        percent = Decimal(await self._ledger.get_platform_fee_percent())
        return PayoutQuote(
            pot=displayed_pot(record),
            fee_percent=percent,
            net_payout=net_payout(record, fee_rate_from_percent(percent)),
        )

    def estimate_payout(self, record: Prediction) -> PayoutQuote:
        """Display-only estimate from the configured default fee."""

        return PayoutQuote(
            pot=displayed_pot(record),
            fee_percent=self._settings.platform_fee_percent,
            net_payout=net_payout(record, self._settings.fee_rate),
        )

    async def receipt(self, txid: str) -> TransactionReceipt | None:
        return await self._ledger.get_receipt(txid)

    # ------------------------------------------------------------------
    # Actions

    async def create_prediction(self, request: CreatePredictionRequest) -> str:
        owner = self._session.require_signer()
        self._orchestrator.ensure_available()
        bet_amount = self.validate_bet_amount(request.bet_amount)
        expiry_time = self.expiry_time_for(request.expiry_hours)
        await self._ensure_funds(owner, bet_amount)

        async def submit() -> str:
            return await self._gate.run_gated_action(
                bet_amount,
                lambda: self._ledger.create_prediction(
                    owner=owner,
                    title=request.title,
                    description=request.description,
                    option_a=request.option_a,
                    option_b=request.option_b,
                    bet_amount=bet_amount,
                    creator_choice=request.creator_choice,
                    expiry_time=expiry_time,
                    fee_limit=self._settings.fee_limit,
                ),
            )

        txid = await self._orchestrator.submit(submit, label="create")
        await self._refresh_views([ViewName.OPEN, ViewName.OWNED])
        return txid

    async def join_prediction(self, prediction_id: int) -> str:
        owner = self._session.require_signer()
        self._orchestrator.ensure_available()
        record = await self._checked_record(Action.JOIN, prediction_id)
        choice = opponent_required_choice(record)
        await self._ensure_funds(owner, record.bet_amount)

        async def submit() -> str:
            return await self._gate.run_gated_action(
                record.bet_amount,
                lambda: self._ledger.join_prediction(
                    record.id, choice, owner=owner, fee_limit=self._settings.fee_limit
                ),
            )

        txid = await self._orchestrator.submit(submit, label=f"join #{record.id}")
        await self._refresh_views([ViewName.OPEN, ViewName.OWNED])
        return txid

    async def cancel_prediction(self, prediction_id: int) -> str:
        owner = self._session.require_signer()
        self._orchestrator.ensure_available()
        record = await self._checked_record(Action.CANCEL, prediction_id)
        txid = await self._orchestrator.submit(
            lambda: self._ledger.cancel_prediction(
                record.id, owner=owner, fee_limit=self._settings.fee_limit
            ),
            label=f"cancel #{record.id}",
        )
        await self._refresh_views([ViewName.OPEN, ViewName.OWNED])
        return txid

    async def claim_winnings(self, prediction_id: int) -> str:
        owner = self._session.require_signer()
        self._orchestrator.ensure_available()
        record = await self._checked_record(Action.CLAIM, prediction_id)
        txid = await self._orchestrator.submit(
            lambda: self._ledger.claim_winnings(
                record.id, owner=owner, fee_limit=self._settings.fee_limit
            ),
            label=f"claim #{record.id}",
        )
        await self._refresh_views([ViewName.OWNED])
        return txid

    async def resolve_prediction(self, prediction_id: int, winning_option: PredictionOption) -> str:
        if winning_option is PredictionOption.NONE:
            raise ValueError("winning option must be option A or option B")
        owner = self._session.require_signer()
        self._orchestrator.ensure_available()
        record = await self._checked_record(Action.RESOLVE, prediction_id)
        txid = await self._orchestrator.submit(
            lambda: self._ledger.resolve_prediction(
                record.id, winning_option, owner=owner, fee_limit=self._settings.fee_limit
            ),
            label=f"resolve #{record.id}",
        )
        await self._refresh_views([ViewName.MATCHED, ViewName.OWNED])
        return txid

    async def emergency_refund(self, prediction_id: int) -> str:
        owner = self._session.require_signer()
        self._orchestrator.ensure_available()
        record = await self._checked_record(Action.REFUND, prediction_id)
        txid = await self._orchestrator.submit(
            lambda: self._ledger.emergency_refund(
                record.id, owner=owner, fee_limit=self._settings.fee_limit
            ),
            label=f"refund #{record.id}",
        )
        await self._refresh_views([ViewName.MATCHED, ViewName.OWNED])
        return txid

    async def withdraw_fees(self, recipient: str | None = None) -> str:
        owner = self._require_privileged("withdraw_fees")
        target = recipient or owner
        if not is_valid_address(target):
            raise ValueError(f"Invalid recipient address: {target}")
        return await self._orchestrator.submit(
            lambda: self._ledger.withdraw_fees(
                target, owner=owner, fee_limit=self._settings.fee_limit
            ),
            label="withdraw fees",
        )

    async def pause(self) -> str:
        owner = self._require_privileged("pause")
        return await self._orchestrator.submit(
            lambda: self._ledger.pause(owner=owner, fee_limit=self._settings.fee_limit),
            label="pause",
        )

    async def unpause(self) -> str:
        owner = self._require_privileged("unpause")
        return await self._orchestrator.submit(
            lambda: self._ledger.unpause(owner=owner, fee_limit=self._settings.fee_limit),
            label="unpause",
        )

    async def faucet(self) -> str:
        owner = self._session.require_signer()
        return await self._orchestrator.submit(
            lambda: self._tokens.faucet(owner=owner, fee_limit=self._settings.fee_limit),
            label="faucet",
        )

    # ------------------------------------------------------------------
    # Internals

    async def _checked_record(self, action: Action, prediction_id: int) -> Prediction:
        record = await self._repository.fetch(prediction_id)
        ensure_allowed(action, record, self._session.state.identity, self.now())
        return record

    def _require_privileged(self, action: str) -> str:
        owner = self._session.require_signer()
        self._orchestrator.ensure_available()
        if not self._session.state.is_admin:
            raise ActionNotAllowed(action, NOT_PRIVILEGED)
        return owner

    async def _ensure_funds(self, owner: str, required: int) -> None:
        available = await self._tokens.balance_of(owner)
        if available < required:
            raise InsufficientFunds(required, available)

    async def _refresh_views(self, views: Iterable[ViewName]) -> None:
        snapshots = await self._repository.refresh(views)
        for name, snapshot in snapshots.items():
            if snapshot.error:
                logger.warning("Post-action refresh of {} view failed: {}", name.value, snapshot.error)
