from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from .types import NormalizedTradeRecord

GOLDEN_SETUP_USD = Decimal("50000")


def format_usd(value: Decimal | float) -> str:
    amount = float(value)
    if amount < 0:
        return f"-{format_usd(-amount)}"
    if amount >= 1_000_000_000:
        return f"${amount / 1_000_000_000:.2f}B"
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.2f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return f"${amount:.2f}"


def format_price(price: Decimal | float) -> str:
    value = float(price)
    if value >= 1000:
        return f"{value:,.2f}"
    if value >= 1:
        return f"{value:.4f}"
    return f"{value:.6f}"


def short_address(address: str | None, chars: int = 4) -> str:
    if not address:
        return "Unknown"
    addr = address.strip()
    if len(addr) <= chars * 2 + 4:
        return addr
    return f"{addr[:chars + 2]}...{addr[-chars:]}"


def trade_time_iso(ts_ms: int) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_trade_link(explorer_base: str, tx_hash: str | None) -> str | None:
    if not tx_hash:
        return None
    return f"{explorer_base.rstrip('/')}/tx/{tx_hash}"


def build_address_link(explorer_base: str, address: str | None) -> str | None:
    if not address:
        return None
    return f"{explorer_base.rstrip('/')}/address/{address}"


def is_golden_setup(record: NormalizedTradeRecord) -> bool:
    return record.is_tracked and record.notional > GOLDEN_SETUP_USD


def format_trade_line(record: NormalizedTradeRecord, explorer_base: str | None = None) -> str:
    tags: list[str] = []
    if is_golden_setup(record):
        tags.append("GOLDEN")
    if record.is_tracked:
        tags.append("TRACKED")
    if record.is_large:
        tags.append("LARGE")

    who = short_address(record.wallet_address)
    if record.label:
        who = f"{record.label} ({who})"

    line = (
        f"{trade_time_iso(record.timestamp)} {record.side.value.upper()} {record.ticker} "
        f"{format_usd(record.notional)} @ {format_price(record.price)} by {who}"
    )
    if tags:
        line += f" [{' '.join(tags)}]"
    link = build_trade_link(explorer_base, record.tx_hash) if explorer_base else None
    if link:
        line += f" {link}"
    return line
