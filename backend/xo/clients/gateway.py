"""Contract for the transport that executes typed calls against the ledger."""

from __future__ import annotations

from typing import Any, Protocol

from xo.domain import TransactionReceipt

from .bindings import ContractMethod


class ContractGateway(Protocol):
    """Interface implemented by ledger transports (TronGrid, in-memory fakes)."""

    async def call(self, contract: str, method: ContractMethod, *args: Any) -> tuple[Any, ...]:
        """Execute a read-only method and return its decoded outputs."""

    async def send(
        self,
        contract: str,
        method: ContractMethod,
        *args: Any,
        owner: str,
        fee_limit: int,
    ) -> str:
        """Submit a mutating method signed by ``owner`` and return the transaction id.

        Returns as soon as the ledger accepts the submission; confirmation is
        observed later through :meth:`receipt`.
        """

    async def native_balance(self, address: str) -> int:
        """Return the native balance of ``address`` in minor units."""

    async def receipt(self, txid: str) -> TransactionReceipt | None:
        """Return execution info for ``txid`` or ``None`` while it is unknown."""


__all__ = ["ContractGateway"]
