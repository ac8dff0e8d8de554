from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from fake_chain import ADMIN, ALICE, BOB, MARKET, FakeSigningProvider
from xo.context import build_client_context
from xo.domain import PredictionOption, PredictionStatus, TransactionStatus
from xo.domain.eligibility import CANNOT_JOIN_OWN, NOT_PRIVILEGED, NOT_WINNER, PREDICTION_EXPIRED
from xo.errors import (
    ActionNotAllowed,
    BetAmountOutOfRange,
    InsufficientFunds,
    InvalidExpiry,
    SessionNotConnected,
    SlotNotReset,
    TransactionReverted,
)
from xo.services.prediction_service import CreatePredictionRequest


async def _connect(test_settings, chain, clock, address):
    context = build_client_context(test_settings, chain, FakeSigningProvider(address), clock=clock)
    await context.session.connect_real()
    await context.session.wait_idle()
    return context


def _request(**overrides) -> CreatePredictionRequest:
    fields = dict(
        title="  Will BTC close above 100k?  ",
        description="Daily close on Friday",
        option_a="Yes",
        option_b="No",
        bet_amount="50",
        creator_choice=PredictionOption.OPTION_A,
        expiry_hours=24,
    )
    fields.update(overrides)
    return CreatePredictionRequest(**fields)


def _matched_fields(**overrides):
    fields = dict(
        opponent=BOB,
        opponent_choice=PredictionOption.OPTION_B,
        status=PredictionStatus.MATCHED,
    )
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
async def test_create_approves_then_submits_and_refreshes_views(test_settings, chain, clock):
    context = await _connect(test_settings, chain, clock, ALICE)

    txid = await context.service.create_prediction(_request())

    assert chain.sent_names() == ["approve", "createPrediction"]
    (_, (spender, amount)) = chain.approvals()[0]
    assert spender == MARKET
    assert amount == 500_000000
    record = chain.predictions[1]
    assert record.creator == ALICE
    assert record.title == "Will BTC close above 100k?"
    assert record.bet_amount == 50_000000
    assert record.expiry_time == int(clock()) + 24 * 3600
    assert context.service.transaction_state.status is TransactionStatus.SUCCESS
    assert context.service.transaction_state.reference == txid
    assert context.repository.owned.ids == (1,)
    assert context.repository.open.ids == (1,)
    assert context.session.state.token_balance == 950_000000
    await context.session.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0.5", "10001"])
async def test_create_rejects_bets_outside_bounds(test_settings, chain, clock, amount):
    context = await _connect(test_settings, chain, clock, ALICE)

    with pytest.raises(BetAmountOutOfRange):
        await context.service.create_prediction(_request(bet_amount=amount))
    assert chain.sent == []
    assert context.service.transaction_state.status is TransactionStatus.IDLE
    await context.session.close()


@pytest.mark.asyncio
async def test_create_rejects_unlisted_expiry(test_settings, chain, clock):
    context = await _connect(test_settings, chain, clock, ALICE)

    with pytest.raises(InvalidExpiry):
        await context.service.create_prediction(_request(expiry_hours=5))
    assert chain.sent == []
    await context.session.close()


def test_create_request_validation():
    with pytest.raises(ValidationError):
        _request(title="   ")
    with pytest.raises(ValidationError):
        _request(option_b="")
    with pytest.raises(ValidationError):
        _request(creator_choice=PredictionOption.NONE)
    assert _request(bet_amount="12.5").bet_amount == Decimal("12.5")


@pytest.mark.asyncio
async def test_insufficient_balance_stops_before_any_approval(test_settings, chain, clock):
    chain.balances[ALICE] = 10_000000
    context = await _connect(test_settings, chain, clock, ALICE)

    with pytest.raises(InsufficientFunds) as excinfo:
        await context.service.create_prediction(_request())
    assert excinfo.value.required == 50_000000
    assert excinfo.value.available == 10_000000
    assert chain.sent == []
    await context.session.close()


@pytest.mark.asyncio
async def test_join_takes_the_opposite_side(test_settings, chain, clock):
    record = chain.seed(creator=ALICE, creator_choice=PredictionOption.OPTION_B)
    context = await _connect(test_settings, chain, clock, BOB)

    await context.service.join_prediction(record.id)

    joined = chain.predictions[record.id]
    assert joined.status is PredictionStatus.MATCHED
    assert joined.opponent == BOB
    assert joined.opponent_choice is PredictionOption.OPTION_A
    assert chain.sent_names() == ["approve", "joinPrediction"]
    assert chain.sent[-1][2] == (record.id, PredictionOption.OPTION_A)
    assert context.repository.open.records == ()
    assert context.repository.owned.ids == (record.id,)
    await context.session.close()


@pytest.mark.asyncio
async def test_join_own_prediction_is_refused_before_submission(test_settings, chain, clock):
    record = chain.seed(creator=ALICE)
    context = await _connect(test_settings, chain, clock, ALICE)

    with pytest.raises(ActionNotAllowed) as excinfo:
        await context.service.join_prediction(record.id)
    assert excinfo.value.reason == CANNOT_JOIN_OWN
    assert chain.sent == []
    await context.session.close()


@pytest.mark.asyncio
async def test_join_after_expiry_is_refused(test_settings, chain, clock):
    record = chain.seed(creator=ALICE)
    context = await _connect(test_settings, chain, clock, BOB)
    clock.advance(3601)

    with pytest.raises(ActionNotAllowed) as excinfo:
        await context.service.join_prediction(record.id)
    assert excinfo.value.reason == PREDICTION_EXPIRED
    await context.session.close()


@pytest.mark.asyncio
async def test_ledger_revert_is_kept_until_reset(test_settings, chain, clock):
    record = chain.seed(creator=ALICE)
    context = await _connect(test_settings, chain, clock, BOB)
    chain.paused = True

    with pytest.raises(TransactionReverted):
        await context.service.join_prediction(record.id)

    state = context.service.transaction_state
    assert state.status is TransactionStatus.ERROR
    assert state.error == "Contract is paused"
    with pytest.raises(SlotNotReset):
        await context.service.join_prediction(record.id)

    chain.paused = False
    context.service.reset_transaction()
    await context.service.join_prediction(record.id)
    assert chain.sent_names().count("approve") == 1
    await context.session.close()


@pytest.mark.asyncio
async def test_creator_cancels_open_prediction(test_settings, chain, clock):
    context = await _connect(test_settings, chain, clock, ALICE)
    await context.service.create_prediction(_request())
    context.service.reset_transaction()

    await context.service.cancel_prediction(1)

    assert chain.predictions[1].status is PredictionStatus.CANCELLED
    assert chain.balances[ALICE] == 1_000_000000
    assert context.repository.open.records == ()
    assert context.repository.owned.get(1).status is PredictionStatus.CANCELLED
    await context.session.close()


@pytest.mark.asyncio
async def test_winner_claims_pot_minus_fee(test_settings, chain, clock):
    record = chain.seed(
        **_matched_fields(status=PredictionStatus.RESOLVED, winning_option=PredictionOption.OPTION_A)
    )
    loser = await _connect(test_settings, chain, clock, BOB)
    with pytest.raises(ActionNotAllowed) as excinfo:
        await loser.service.claim_winnings(record.id)
    assert excinfo.value.reason == NOT_WINNER
    await loser.session.close()

    winner = await _connect(test_settings, chain, clock, ALICE)
    await winner.service.claim_winnings(record.id)

    assert chain.predictions[record.id].status is PredictionStatus.CLAIMED
    assert chain.balances[ALICE] == 1_000_000000 + 196_000000
    assert winner.session.state.token_balance == chain.balances[ALICE]
    await winner.session.close()


@pytest.mark.asyncio
async def test_admin_resolves_matched_prediction(test_settings, chain, clock):
    record = chain.seed(**_matched_fields())
    context = await _connect(test_settings, chain, clock, ADMIN)
    assert context.session.state.is_admin

    await context.service.resolve_prediction(record.id, PredictionOption.OPTION_B)

    resolved = chain.predictions[record.id]
    assert resolved.status is PredictionStatus.RESOLVED
    assert resolved.winning_option is PredictionOption.OPTION_B
    assert context.repository.matched.records == ()
    await context.session.close()


@pytest.mark.asyncio
async def test_resolve_requires_a_side(test_settings, chain, clock):
    record = chain.seed(**_matched_fields())
    context = await _connect(test_settings, chain, clock, ADMIN)

    with pytest.raises(ValueError):
        await context.service.resolve_prediction(record.id, PredictionOption.NONE)
    assert chain.sent == []
    await context.session.close()


@pytest.mark.asyncio
async def test_non_admin_cannot_resolve_or_refund(test_settings, chain, clock):
    record = chain.seed(**_matched_fields())
    context = await _connect(test_settings, chain, clock, ALICE)

    with pytest.raises(ActionNotAllowed) as excinfo:
        await context.service.resolve_prediction(record.id, PredictionOption.OPTION_A)
    assert excinfo.value.reason == NOT_PRIVILEGED
    with pytest.raises(ActionNotAllowed):
        await context.service.emergency_refund(record.id)
    with pytest.raises(ActionNotAllowed):
        await context.service.pause()
    assert chain.sent == []
    await context.session.close()


@pytest.mark.asyncio
async def test_admin_refund_returns_both_stakes(test_settings, chain, clock):
    record = chain.seed(**_matched_fields())
    context = await _connect(test_settings, chain, clock, ADMIN)

    await context.service.emergency_refund(record.id)

    assert chain.predictions[record.id].status is PredictionStatus.CANCELLED
    assert chain.balances[ALICE] == 1_000_000000 + record.bet_amount
    assert chain.balances[BOB] == 1_000_000000 + record.bet_amount
    await context.session.close()


@pytest.mark.asyncio
async def test_admin_housekeeping(test_settings, chain, clock):
    chain.accumulated_fees = 4_000000
    context = await _connect(test_settings, chain, clock, ADMIN)

    await context.service.pause()
    assert chain.paused
    context.service.reset_transaction()
    await context.service.unpause()
    assert not chain.paused
    context.service.reset_transaction()
    await context.service.withdraw_fees()
    assert chain.balances[ADMIN] == 4_000000
    assert chain.accumulated_fees == 0
    await context.session.close()


@pytest.mark.asyncio
async def test_payout_quote_uses_live_fee(test_settings, chain, clock):
    record = chain.seed(**_matched_fields())
    context = build_client_context(test_settings, chain, None, clock=clock)
    chain.fee_percent = 5

    quote = await context.service.quote_payout(record)
    assert quote.pot == 200_000000
    assert quote.fee_percent == 5
    assert quote.net_payout == 190_000000
    assert quote.fee == 10_000000

    estimate = context.service.estimate_payout(record)
    assert estimate.net_payout == 196_000000


@pytest.mark.asyncio
async def test_faucet_and_receipt(test_settings, chain, clock):
    context = await _connect(test_settings, chain, clock, BOB)

    txid = await context.service.faucet()

    assert chain.balances[BOB] == 2_000_000000
    receipt = await context.service.receipt(txid)
    assert receipt is not None and receipt.succeeded
    await context.session.close()


@pytest.mark.asyncio
async def test_simulated_session_cannot_submit(context, chain):
    record = chain.seed(creator=BOB)
    await context.session.connect_simulated()

    with pytest.raises(SessionNotConnected):
        await context.service.join_prediction(record.id)
    with pytest.raises(SessionNotConnected):
        await context.service.create_prediction(_request())
    assert chain.sent == []
