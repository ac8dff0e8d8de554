from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
sys.path.insert(0, str(Path(__file__).resolve().parent))

import pytest

from fake_chain import ADMIN, ALICE, BOB, MARKET, TOKEN, FakeChain, FakeSigningProvider, ManualClock
from xo.context import ClientContext, build_client_context
from xo.core.config import Settings


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    settings = Settings(
        network="shasta",
        prediction_market_address=MARKET,
        token_address=TOKEN,
        private_key=None,
        provider_ready_interval_seconds=0,
        wallet_ready_interval_seconds=0,
        initial_balance_refresh_delay_seconds=0,
        approval_poll_interval_seconds=0,
        approval_visibility_attempts=3,
        balance_refresh_interval_seconds=3600,
        open_refresh_interval_seconds=3600,
    )
    monkeypatch.setattr("xo.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("xo.core.config.settings", settings)
    return settings


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def chain(clock) -> FakeChain:
    chain = FakeChain(admin=ADMIN, clock=clock)
    chain.fund(ALICE, 1_000_000000, native=50_000000)
    chain.fund(BOB, 1_000_000000, native=50_000000)
    chain.fund(ADMIN, 0, native=10_000000)
    return chain


@pytest.fixture
def provider() -> FakeSigningProvider:
    return FakeSigningProvider(ALICE)


@pytest.fixture
def context(test_settings, chain, provider, clock) -> ClientContext:
    return build_client_context(test_settings, chain, provider, clock=clock)
