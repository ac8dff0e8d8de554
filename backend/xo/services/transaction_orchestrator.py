"""Single-slot lifecycle of one user-initiated mutating action."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from xo.domain import TransactionState, TransactionStatus
from xo.errors import SlotNotReset, TransactionInFlight, TransactionReverted, XOError
from xo.signing import NotificationHub, Subscription

from .wallet_session import WalletSession


def error_message(exc: BaseException) -> str:
    """Normalise an exception into the text shown in the error state."""

    if isinstance(exc, TransactionReverted):
        return exc.message
    if isinstance(exc, XOError):
        return str(exc) or exc.__class__.__name__
    text = str(exc)
    return f"{exc.__class__.__name__}: {text}" if text else exc.__class__.__name__


class TransactionOrchestrator:
    """``idle -> pending -> success | error``; terminal states stay until ``reset()``.

    A successful submission refreshes the session's balances before
    :meth:`submit` returns.
    """

    def __init__(self, session: WalletSession | None = None) -> None:
        self._session = session
        self._state = TransactionState()
        self._changes = NotificationHub()

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state.status is TransactionStatus.PENDING

    def subscribe(self, listener: Callable[[TransactionState], None]) -> Subscription:
        return self._changes.subscribe(listener)

    def ensure_available(self) -> None:
        status = self._state.status
        if status is TransactionStatus.PENDING:
            raise TransactionInFlight()
        if status is not TransactionStatus.IDLE:
            raise SlotNotReset()

    async def submit(self, action: Callable[[], Awaitable[str]], *, label: str | None = None) -> str:
        self.ensure_available()
        self._set_state(TransactionState.pending(label))
        try:
            reference = await action()
        except asyncio.CancelledError:
            self._set_state(TransactionState.failed("Submission was cancelled", label))
            raise
        except Exception as exc:
            message = error_message(exc)
            logger.warning("Transaction {} failed: {}", label or "action", message)
            self._set_state(TransactionState.failed(message, label))
            raise

        self._set_state(TransactionState.succeeded(reference, label))
        logger.info("Transaction {} accepted: {}", label or "action", reference)
        if self._session is not None:
            await self._session.refresh_balances()
        return reference

    def reset(self) -> None:
        if self.busy:
            raise TransactionInFlight("Cannot reset while a transaction is pending")
        self._set_state(TransactionState())

    def _set_state(self, state: TransactionState) -> None:
        self._state = state
        self._changes.emit(state)
