from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from fake_chain import ALICE, MARKET
from xo.errors import AuthorizationInsufficient, SessionNotConnected, TransactionReverted


async def _connected(context):
    await context.session.connect_real()
    await context.session.wait_idle()
    return context.gate


@pytest.mark.asyncio
async def test_missing_authorization_triggers_one_oversized_approval(context, chain):
    gate = await _connected(context)
    order: list[str] = []

    async def join() -> str:
        order.append("join")
        assert chain.allowances[(ALICE, MARKET)] >= 50_000000
        return "tx-join"

    result = await gate.run_gated_action(50_000000, join)

    assert result == "tx-join"
    approvals = chain.approvals()
    assert len(approvals) == 1
    owner, (spender, amount) = approvals[0]
    assert owner == ALICE
    assert spender == MARKET
    assert amount >= 500_000000
    assert order == ["join"]
    await context.session.close()


@pytest.mark.asyncio
async def test_second_call_finds_authorization_sufficient(context, chain):
    gate = await _connected(context)

    assert await gate.ensure_authorized(50_000000) is True
    assert await gate.ensure_authorized(50_000000) is False
    assert await gate.ensure_authorized(20_000000) is False
    assert len(chain.approvals()) == 1
    await context.session.close()


@pytest.mark.asyncio
async def test_existing_authorization_skips_approval(context, chain):
    gate = await _connected(context)
    chain.allowances[(ALICE, MARKET)] = 100_000000
    action = AsyncMock(return_value="tx")

    assert await gate.run_gated_action(100_000000, action) == "tx"
    action.assert_awaited_once()
    assert chain.approvals() == []
    await context.session.close()


@pytest.mark.asyncio
async def test_failed_approval_never_runs_the_action(context, chain):
    gate = await _connected(context)
    chain.send_failures["approve"] = TransactionReverted("Approval rejected")
    action = AsyncMock(return_value="tx")

    with pytest.raises(TransactionReverted, match="Approval rejected"):
        await gate.run_gated_action(10_000000, action)
    action.assert_not_awaited()
    await context.session.close()


@pytest.mark.asyncio
async def test_approval_that_never_lands_is_insufficient(context, chain, test_settings):
    gate = await _connected(context)
    chain.approvals_visible = False
    action = AsyncMock(return_value="tx")

    with pytest.raises(AuthorizationInsufficient) as excinfo:
        await gate.run_gated_action(10_000000, action)

    assert excinfo.value.required == 10_000000
    assert excinfo.value.current == 0
    action.assert_not_awaited()
    allowance_reads = [name for name, _ in chain.calls if name == "allowance"]
    assert len(allowance_reads) == 1 + test_settings.approval_visibility_attempts
    await context.session.close()


@pytest.mark.asyncio
async def test_zero_requirement_needs_no_authorization(context, chain):
    gate = await _connected(context)
    assert await gate.ensure_authorized(0) is False
    assert not [name for name, _ in chain.calls if name == "allowance"]
    await context.session.close()


@pytest.mark.asyncio
async def test_simulated_session_cannot_approve(context, chain):
    await context.session.connect_simulated()
    with pytest.raises(SessionNotConnected):
        await context.gate.ensure_authorized(1)
    assert chain.sent == []
