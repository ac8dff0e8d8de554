from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable

import httpx
from loguru import logger

from tron.client import TronGridClient
from tron.gateway import TronContractGateway
from xo.clients import ContractGateway, LedgerClient, TokenClient
from xo.core.config import Settings, get_settings
from xo.repositories import PredictionRepository
from xo.services.allowance_gate import AllowanceGate
from xo.services.prediction_service import PredictionService
from xo.services.transaction_orchestrator import TransactionOrchestrator
from xo.services.wallet_session import WalletSession
from xo.signing import LocalKeySigningProvider, SigningProvider


@dataclass(slots=True)
class ClientContext:
    """Object graph shared by every consumer for the lifetime of one process."""

    settings: Settings
    gateway: ContractGateway
    ledger: LedgerClient
    tokens: TokenClient
    session: WalletSession
    gate: AllowanceGate
    orchestrator: TransactionOrchestrator
    repository: PredictionRepository
    service: PredictionService


def build_client_context(
    settings: Settings,
    gateway: ContractGateway,
    provider: SigningProvider | None = None,
    *,
    clock: Callable[[], float] = time.time,
) -> ClientContext:
    market_address = settings.prediction_market_address
    if not market_address:
        raise ValueError("PREDICTION_MARKET_ADDRESS is not configured")
    token_address = settings.resolved_token_address
    if not token_address:
        raise ValueError(f"TOKEN_ADDRESS is not configured for network {settings.network}")

    ledger = LedgerClient(gateway, market_address)
    tokens = TokenClient(gateway, token_address)
    session = WalletSession(ledger=ledger, tokens=tokens, provider=provider, settings=settings)
    gate = AllowanceGate(
        session,
        tokens,
        spender=market_address,
        fee_limit=settings.fee_limit,
        multiple=settings.over_authorization_multiple,
        visibility_attempts=settings.approval_visibility_attempts,
        poll_interval=settings.approval_poll_interval_seconds,
    )
    orchestrator = TransactionOrchestrator(session)
    repository = PredictionRepository(
        ledger,
        session,
        page_size=settings.predictions_page_size,
        concurrency=settings.view_fetch_concurrency,
        open_interval=settings.open_refresh_interval_seconds,
        clock=clock,
    )
    service = PredictionService(
        ledger=ledger,
        tokens=tokens,
        session=session,
        gate=gate,
        orchestrator=orchestrator,
        repository=repository,
        settings=settings,
        clock=clock,
    )
    return ClientContext(
        settings=settings,
        gateway=gateway,
        ledger=ledger,
        tokens=tokens,
        session=session,
        gate=gate,
        orchestrator=orchestrator,
        repository=repository,
        service=service,
    )


@asynccontextmanager
async def open_client_context(
    settings: Settings | None = None,
    *,
    provider: SigningProvider | None = None,
    gateway: ContractGateway | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[ClientContext]:
    """Build the client stack, start the repository, and tear everything down on exit.

    Without an explicit ``gateway`` a TronGrid client is opened for the
    configured network; without an explicit ``provider`` the configured
    private key (if any) backs a :class:`LocalKeySigningProvider`.
    """

    config = settings or get_settings()
    if provider is None and config.private_key:
        provider = LocalKeySigningProvider(config.private_key, network=config.network)

    client: TronGridClient | None = None
    if gateway is None:
        client = TronGridClient(settings=config, transport=transport)
        gateway = TronContractGateway(client, provider)

    try:
        context = build_client_context(config, gateway, provider)
        context.repository.start()
        logger.debug("Client context ready on {}", config.network_config.name)
        try:
            yield context
        finally:
            await context.repository.close()
            await context.session.close()
    finally:
        if client is not None:
            await client.close()
