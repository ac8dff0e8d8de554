"""ContractGateway implementation over TronGrid plus a signing provider."""

from __future__ import annotations

from typing import Any

from loguru import logger

from xo.clients.bindings import ContractMethod
from xo.domain import TransactionReceipt
from xo.errors import ContractCallShapeError, ProviderUnavailable
from xo.signing import SigningProvider

from .client import TronGridClient


class TronContractGateway:
    """Encode typed calls, build transactions, sign them, and broadcast.

    ``signer`` may be ``None`` for read-only use; any ``send`` then raises
    :class:`ProviderUnavailable`.
    """

    def __init__(self, client: TronGridClient, signer: SigningProvider | None = None) -> None:
        self._client = client
        self._signer = signer

    @property
    def signer(self) -> SigningProvider | None:
        return self._signer

    async def call(self, contract: str, method: ContractMethod, *args: Any) -> tuple[Any, ...]:
        if method.mutating:
            raise ContractCallShapeError(f"{method.signature} mutates state; use send()")
        parameter = method.encode_arguments(args)
        result = await self._client.trigger_constant_contract(
            contract, method.signature, parameter
        )
        return method.decode_result(result)

    async def send(
        self,
        contract: str,
        method: ContractMethod,
        *args: Any,
        owner: str,
        fee_limit: int,
    ) -> str:
        if not method.mutating:
            raise ContractCallShapeError(f"{method.signature} is read-only; use call()")
        if self._signer is None:
            raise ProviderUnavailable("No signing provider is attached to this gateway")
        parameter = method.encode_arguments(args)
        unsigned = await self._client.trigger_smart_contract(
            contract,
            method.signature,
            parameter,
            owner_address=owner,
            fee_limit=fee_limit,
        )
        signed = await self._signer.sign_transaction(unsigned.model_dump(exclude_unset=True))
        logger.debug("Broadcasting {} for {}", method.signature, owner)
        return await self._client.broadcast_transaction(signed)

    async def native_balance(self, address: str) -> int:
        return await self._client.get_account_balance(address)

    async def receipt(self, txid: str) -> TransactionReceipt | None:
        info = await self._client.get_transaction_info(txid)
        if not info.known:
            return None
        return TransactionReceipt(
            txid=txid,
            confirmed=info.blockNumber is not None,
            succeeded=info.succeeded,
            block_number=info.blockNumber,
            fee=info.fee,
            message=info.failure_message,
        )
