"""Token amount conversions and display helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal, InvalidOperation

TOKEN_DECIMALS = 6
NATIVE_DECIMALS = 6


def format_token_amount(amount: int | str, decimals: int = TOKEN_DECIMALS) -> str:
    """Render minor units as a two-decimal string (``12_345678`` becomes ``"12.34"``)."""

    scaled = Decimal(int(amount)) / (Decimal(10) ** decimals)
    return str(scaled.quantize(Decimal("0.01"), rounding=ROUND_DOWN))


def parse_token_amount(amount: str | int | float | Decimal, decimals: int = TOKEN_DECIMALS) -> int:
    """Convert whole token units to minor units, truncating sub-unit dust."""

    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid token amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Invalid token amount: {amount!r}")
    minor = (value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
    return int(minor)


def format_timestamp(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def explorer_transaction_url(explorer_url: str, txid: str) -> str:
    return f"{explorer_url.rstrip('/')}/#/transaction/{txid}"
