"""Two-phase authorize-then-act workflow over the stake token."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from xo.clients import TokenClient
from xo.errors import AuthorizationInsufficient

from .wallet_session import WalletSession

T = TypeVar("T")


class AllowanceGate:
    """Make sure the settlement contract may pull ``required`` tokens before acting.

    At most one ``approve`` is issued per call, for ``required * multiple``.
    After the approval is accepted the gate re-reads the authorization until
    it covers ``required`` (bounded by ``visibility_attempts``) so the
    dependent call never runs against a stale allowance.
    """

    def __init__(
        self,
        session: WalletSession,
        tokens: TokenClient,
        *,
        spender: str,
        fee_limit: int,
        multiple: int = 10,
        visibility_attempts: int = 20,
        poll_interval: float = 1.0,
    ) -> None:
        if multiple < 1:
            raise ValueError("multiple must be at least 1")
        self._session = session
        self._tokens = tokens
        self.spender = spender
        self.fee_limit = fee_limit
        self.multiple = multiple
        self.visibility_attempts = max(1, visibility_attempts)
        self.poll_interval = poll_interval

    async def current_authorization(self) -> int:
        owner = self._session.require_address()
        return await self._tokens.allowance(owner, self.spender)

    async def ensure_authorized(self, required: int) -> bool:
        """Return ``True`` when an approval had to be submitted."""

        if required <= 0:
            return False
        owner = self._session.require_signer()
        current = await self._tokens.allowance(owner, self.spender)
        if current >= required:
            logger.debug("Authorization {} already covers {}", current, required)
            return False

        target = required * self.multiple
        logger.info(
            "Authorization {} below {}; approving {} for {}", current, required, target, self.spender
        )
        await self._tokens.approve(self.spender, target, owner=owner, fee_limit=self.fee_limit)
        await self._wait_until_visible(owner, required)
        return True

    async def run_gated_action(self, required: int, action: Callable[[], Awaitable[T]]) -> T:
        await self.ensure_authorized(required)
        return await action()

    async def _wait_until_visible(self, owner: str, required: int) -> None:
        current = 0
        for attempt in range(1, self.visibility_attempts + 1):
            current = await self._tokens.allowance(owner, self.spender)
            if current >= required:
                logger.info("Approval visible after {} check(s)", attempt)
                return
            logger.debug(
                "Approval not visible yet ({} < {}, attempt {}/{})",
                current,
                required,
                attempt,
                self.visibility_attempts,
            )
            if attempt < self.visibility_attempts:
                await asyncio.sleep(self.poll_interval)
        raise AuthorizationInsufficient(required, current)
