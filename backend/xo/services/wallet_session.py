"""Process-wide owner of the connected signing identity and its balances."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Any, Callable, Coroutine

from loguru import logger

from xo.clients import LedgerClient, TokenClient
from xo.core.config import Settings, settings as default_settings
from xo.domain import ConnectionMode, SessionPhase, WalletState
from xo.domain.address import is_valid_address, same_address, to_base58
from xo.errors import (
    ConnectionRejected,
    ConnectionTimeout,
    ProviderRequestFailed,
    ProviderUnavailable,
    SessionNotConnected,
    WalletConnectionError,
)
from xo.signing import AccountChanged, NetworkChanged, NotificationHub, ProviderEvent, SigningProvider, Subscription

from .polling import PeriodicTask

SIMULATED_ADDRESS = "TJCnKsPa7y5okkXvQAidZBzqx3QyQ6sxMW"
SIMULATED_NATIVE_BALANCE = 1_000_000_000
SIMULATED_TOKEN_BALANCE = 10_000_000_000


@dataclass(frozen=True, slots=True)
class SessionChange:
    previous: WalletState
    current: WalletState

    @property
    def identity_changed(self) -> bool:
        return self.previous.address != self.current.address

    @property
    def privilege_changed(self) -> bool:
        return self.previous.is_admin != self.current.is_admin

    @property
    def connection_changed(self) -> bool:
        return self.previous.is_connected != self.current.is_connected


class WalletSession:
    """Single active identity for the process.

    Lifecycle: ``uninitialized -> connecting -> connected -> disconnected``.
    Consumers read :attr:`state` and subscribe to :class:`SessionChange`
    notifications; only the session's own operations write state.
    """

    def __init__(
        self,
        *,
        ledger: LedgerClient,
        tokens: TokenClient,
        provider: SigningProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._ledger = ledger
        self._tokens = tokens
        self._provider = provider
        self._settings = settings or default_settings
        self._state = WalletState()
        self._phase = SessionPhase.UNINITIALIZED
        self._changes = NotificationHub()
        self._provider_subscription: Subscription | None = None
        self._balance_poller = PeriodicTask(
            "balance-refresh",
            self.refresh_balances,
            self._settings.balance_refresh_interval_seconds,
            run_immediately=False,
        )
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Read access

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def provider(self) -> SigningProvider | None:
        return self._provider

    def subscribe(self, listener: Callable[[SessionChange], None]) -> Subscription:
        return self._changes.subscribe(listener)

    def require_address(self) -> str:
        if not self._state.is_connected or self._state.address is None:
            raise SessionNotConnected()
        return self._state.address

    def require_signer(self) -> str:
        """Return the address of a session that can sign mutating calls."""

        address = self.require_address()
        if self._state.mode is not ConnectionMode.REAL:
            raise SessionNotConnected("Simulated sessions cannot sign transactions")
        return address

    # ------------------------------------------------------------------
    # Lifecycle

    async def connect_real(self) -> WalletState:
        if self._phase is SessionPhase.CONNECTING:
            raise WalletConnectionError("A connection attempt is already in progress")
        if self._provider is None:
            raise ProviderUnavailable()
        if self._state.is_connected:
            await self.disconnect()

        self._phase = SessionPhase.CONNECTING
        try:
            await self._wait_for_provider()
            await self._request_accounts()
            address = await self._wait_for_address()
        except BaseException:
            self._phase = SessionPhase.DISCONNECTED
            raise

        self._attach(address)
        logger.info("Connected wallet {} via {}", self._state.address, self._provider.name)
        return self._state

    async def resume(self) -> bool:
        """Adopt an account the provider already exposes, without prompting."""

        if self._provider is None or self._state.is_connected:
            return False
        if self._phase is SessionPhase.CONNECTING:
            return False
        if not await self._provider_ready():
            return False
        address = await self._provider.default_address()
        if not is_valid_address(address):
            return False
        self._attach(address)  # type: ignore[arg-type]
        logger.info("Resumed wallet session for {}", self._state.address)
        return True

    async def connect_simulated(self) -> WalletState:
        if self._state.is_connected:
            await self.disconnect()
        self._phase = SessionPhase.CONNECTED
        self._set_state(
            WalletState(
                address=SIMULATED_ADDRESS,
                native_balance=SIMULATED_NATIVE_BALANCE,
                token_balance=SIMULATED_TOKEN_BALANCE,
                is_admin=True,
                mode=ConnectionMode.SIMULATED,
            )
        )
        logger.info("Connected simulated wallet {}", SIMULATED_ADDRESS)
        return self._state

    async def disconnect(self) -> None:
        if self._provider_subscription is not None:
            self._provider_subscription.close()
            self._provider_subscription = None
        await self._balance_poller.stop()
        current = asyncio.current_task()
        for task in list(self._background):
            if task is not current:
                task.cancel()
        was_connected = self._state.is_connected
        self._phase = SessionPhase.DISCONNECTED
        self._set_state(WalletState())
        if was_connected:
            logger.info("Wallet disconnected")

    async def close(self) -> None:
        await self.disconnect()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait for scheduled background refreshes to finish."""

        current = asyncio.current_task()
        pending = [task for task in self._background if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Balances

    async def refresh_balances(self) -> WalletState:
        state = self._state
        if state.mode is not ConnectionMode.REAL or state.address is None:
            return state

        address = state.address
        native, token, admin = await asyncio.gather(
            self._ledger.get_native_balance(address),
            self._tokens.balance_of(address),
            self._ledger.get_admin(),
            return_exceptions=True,
        )
        for result in (native, token, admin):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        if self._state.address != address or self._state.mode is not ConnectionMode.REAL:
            logger.debug("Discarding balance refresh for {}; identity changed", address)
            return self._state

        updates: dict[str, Any] = {}
        if isinstance(native, Exception):
            logger.warning("Could not read native balance for {}: {}", address, native)
        else:
            updates["native_balance"] = int(native)
        if isinstance(token, Exception):
            logger.warning("Could not read token balance for {}: {}", address, token)
        else:
            updates["token_balance"] = int(token)
        if isinstance(admin, Exception):
            logger.warning("Could not read ledger admin: {}", admin)
            updates["is_admin"] = False
        else:
            updates["is_admin"] = same_address(admin, address)

        self._set_state(replace(self._state, **updates))
        return self._state

    # ------------------------------------------------------------------
    # Internals

    async def _wait_for_provider(self) -> None:
        assert self._provider is not None
        attempts = self._settings.provider_ready_attempts
        for attempt in range(1, attempts + 1):
            if await self._provider_ready():
                return
            logger.debug("Provider not ready (attempt {}/{})", attempt, attempts)
            if attempt < attempts:
                await asyncio.sleep(self._settings.provider_ready_interval_seconds)
        raise ConnectionTimeout("Signing provider did not become ready")

    async def _provider_ready(self) -> bool:
        assert self._provider is not None
        try:
            return bool(await self._provider.is_ready())
        except WalletConnectionError:
            raise
        except Exception as exc:
            raise ProviderRequestFailed("Signing provider readiness check failed") from exc

    async def _request_accounts(self) -> list[str]:
        assert self._provider is not None
        try:
            accounts = await self._provider.request_accounts()
        except WalletConnectionError:
            raise
        except Exception as exc:
            raise ProviderRequestFailed(
                "Provider request failed. Make sure the wallet is unlocked and try again."
            ) from exc
        if not accounts:
            raise ConnectionRejected()
        return accounts

    async def _wait_for_address(self) -> str:
        assert self._provider is not None
        attempts = self._settings.wallet_ready_attempts
        for attempt in range(1, attempts + 1):
            address = await self._provider.default_address()
            if is_valid_address(address):
                return address  # type: ignore[return-value]
            logger.debug("Wallet address not ready (attempt {}/{})", attempt, attempts)
            if attempt < attempts:
                await asyncio.sleep(self._settings.wallet_ready_interval_seconds)
        raise ConnectionTimeout(
            "Provider connected but wallet not ready. Unlock the wallet and try again."
        )

    def _attach(self, address: str) -> None:
        assert self._provider is not None
        self._phase = SessionPhase.CONNECTED
        self._set_state(WalletState(address=to_base58(address), mode=ConnectionMode.REAL))
        self._provider_subscription = self._provider.subscribe(self._on_provider_event)
        self._balance_poller.start()
        self._schedule(self._delayed_refresh())

    async def _delayed_refresh(self) -> None:
        await asyncio.sleep(self._settings.initial_balance_refresh_delay_seconds)
        await self.refresh_balances()

    def _on_provider_event(self, event: ProviderEvent) -> None:
        if self._state.mode is not ConnectionMode.REAL:
            return
        if isinstance(event, AccountChanged):
            if event.address is None:
                logger.info("Provider account became unavailable; disconnecting")
                self._schedule(self.disconnect())
                return
            if not is_valid_address(event.address):
                logger.warning("Ignoring account change to invalid address {}", event.address)
                return
            address = to_base58(event.address)
            if address == self._state.address:
                return
            logger.info("Provider switched account to {}", address)
            self._set_state(WalletState(address=address, mode=ConnectionMode.REAL))
            self._schedule(self.refresh_balances())
        elif isinstance(event, NetworkChanged):
            logger.info("Provider switched network to {}", event.network)
            self._schedule(self.refresh_balances())

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Background session task failed")

    def _set_state(self, new_state: WalletState) -> None:
        previous = self._state
        self._state = new_state
        if previous != new_state:
            self._changes.emit(SessionChange(previous=previous, current=new_state))
