"""Typed adapter over the TRC-20 stake token."""

from __future__ import annotations

from loguru import logger

from xo.errors import ContractCallShapeError

from .bindings import TRC20, UINT256_MAX, ContractInterface
from .gateway import ContractGateway


class TokenClient:
    def __init__(
        self,
        gateway: ContractGateway,
        token_address: str,
        *,
        interface: ContractInterface = TRC20,
    ) -> None:
        self._gateway = gateway
        self.token_address = token_address
        self._interface = interface

    async def balance_of(self, address: str) -> int:
        (balance,) = await self._gateway.call(
            self.token_address, self._interface.method("balanceOf"), address
        )
        return int(balance)

    async def allowance(self, owner: str, spender: str) -> int:
        (amount,) = await self._gateway.call(
            self.token_address, self._interface.method("allowance"), owner, spender
        )
        return int(amount)

    async def approve(self, spender: str, amount: int, *, owner: str, fee_limit: int) -> str:
        """Set ``spender``'s authorization to exactly ``amount`` (it replaces, never adds)."""

        if amount < 0 or amount > UINT256_MAX:
            raise ContractCallShapeError(f"Approval amount out of range: {amount}")
        txid = await self._gateway.send(
            self.token_address,
            self._interface.method("approve"),
            spender,
            amount,
            owner=owner,
            fee_limit=fee_limit,
        )
        logger.info("Submitted approval of {} for {} from {} (tx {})", amount, spender, owner, txid)
        return txid

    async def decimals(self) -> int:
        (value,) = await self._gateway.call(self.token_address, self._interface.method("decimals"))
        return int(value)

    async def symbol(self) -> str:
        (value,) = await self._gateway.call(self.token_address, self._interface.method("symbol"))
        return str(value)

    async def faucet(self, *, owner: str, fee_limit: int) -> str:
        """Request test tokens from a testnet mock token."""

        txid = await self._gateway.send(
            self.token_address,
            self._interface.method("faucet"),
            owner=owner,
            fee_limit=fee_limit,
        )
        logger.info("Submitted faucet request for {} (tx {})", owner, txid)
        return txid
