"""TRON address codec and sentinel handling."""

from __future__ import annotations

import base58

ADDRESS_PREFIX = 0x41
SENTINEL_HEX = "41" + "00" * 20


def to_hex(address: str) -> str:
    """Return the 21-byte hex form (``41…``) of a base58 or hex address."""

    value = address.strip()
    if value.startswith("T"):
        try:
            raw = base58.b58decode_check(value)
        except ValueError as exc:
            raise ValueError(f"Invalid TRON address: {address!r}") from exc
    else:
        if value.lower().startswith("0x"):
            value = "41" + value[2:]
        try:
            raw = bytes.fromhex(value)
        except ValueError as exc:
            raise ValueError(f"Invalid TRON address: {address!r}") from exc
    if len(raw) != 21 or raw[0] != ADDRESS_PREFIX:
        raise ValueError(f"Invalid TRON address: {address!r}")
    return raw.hex()


def to_base58(address: str) -> str:
    """Return the base58check form of a hex (``41…`` or ``0x…``) or base58 address."""

    return base58.b58encode_check(bytes.fromhex(to_hex(address))).decode("ascii")


def to_evm_hex(address: str) -> str:
    """Return the 20-byte ``0x`` form used inside ABI payloads."""

    return "0x" + to_hex(address)[2:]


def is_valid_address(address: str | None) -> bool:
    if not address:
        return False
    try:
        to_hex(address)
    except ValueError:
        return False
    return True


SENTINEL_BASE58 = to_base58(SENTINEL_HEX)


def is_sentinel(address: str | None) -> bool:
    if not address:
        return True
    try:
        return to_hex(address) == SENTINEL_HEX
    except ValueError:
        return False


def participant_or_none(address: str | None) -> str | None:
    """Map the ledger's reserved zero address to ``None``."""

    if is_sentinel(address):
        return None
    return to_base58(address)  # type: ignore[arg-type]


def same_address(left: str | None, right: str | None) -> bool:
    """Compare two addresses in any accepted form (base58, ``41...`` or ``0x...``)."""

    if not left or not right:
        return False
    try:
        return to_hex(left) == to_hex(right)
    except ValueError:
        return False


def short_address(address: str | None) -> str:
    if not address:
        return ""
    return f"{address[:6]}...{address[-4:]}"
