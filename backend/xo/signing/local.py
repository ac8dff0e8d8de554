"""Signing provider backed by a private key held in process."""

from __future__ import annotations

import hashlib
from typing import Any, Mapping

from eth_account import Account
from loguru import logger

from xo.domain.address import to_base58

from .base import AccountChanged, NetworkChanged, NotificationHub, ProviderListener, Subscription


def address_from_key(private_key: str) -> str:
    account = Account.from_key(private_key)
    return to_base58(account.address)


class LocalKeySigningProvider:
    """Sign TRON transactions with a configured secp256k1 key.

    The provider is always ready and never prompts, so ``request_accounts``
    cannot be rejected. ``switch_key`` and ``switch_network`` emit the same
    notifications a browser extension would.
    """

    name = "local"

    def __init__(self, private_key: str, *, network: str | None = None) -> None:
        self._account = Account.from_key(private_key)
        self._network = network
        self._hub = NotificationHub()

    @property
    def address(self) -> str:
        return to_base58(self._account.address)

    async def is_ready(self) -> bool:
        return True

    async def request_accounts(self) -> list[str]:
        return [self.address]

    async def default_address(self) -> str | None:
        return self.address

    async def sign_transaction(self, transaction: Mapping[str, Any]) -> dict[str, Any]:
        txid = transaction.get("txID")
        raw_data_hex = transaction.get("raw_data_hex")
        if not txid or not raw_data_hex:
            raise ValueError("Transaction is missing txID or raw_data_hex")
        digest = hashlib.sha256(bytes.fromhex(raw_data_hex)).hexdigest()
        if digest != str(txid).lower():
            raise ValueError(f"Transaction id {txid} does not match its raw data")

        signed = self._account.unsafe_sign_hash(bytes.fromhex(digest))
        signature = bytes(signed.signature).hex()
        signed_tx = dict(transaction)
        signed_tx["signature"] = [*transaction.get("signature", []), signature]
        logger.debug("Signed transaction {} as {}", txid, self.address)
        return signed_tx

    def subscribe(self, listener: ProviderListener) -> Subscription:
        return self._hub.subscribe(listener)

    def switch_key(self, private_key: str | None) -> None:
        if private_key is None:
            self._hub.emit(AccountChanged(address=None))
            return
        self._account = Account.from_key(private_key)
        self._hub.emit(AccountChanged(address=self.address))

    def switch_network(self, network: str) -> None:
        self._network = network
        self._hub.emit(NetworkChanged(network=network))
