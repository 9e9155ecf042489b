from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from decimal import Decimal, DecimalException

from .types import NormalizedTradeRecord, RawTradeEvent, TrackedWalletEntry, TradeSide
from .wallets import WalletDirectory

logger = logging.getLogger(__name__)

LARGE_NOTIONAL_USD = Decimal("100000")
NOISE_NOTIONAL_USD = Decimal("1000")
LARGE_LABEL = "Large"


class TradeParseError(ValueError):
    """Raised when a raw trade carries an unusable price, size or side."""


@dataclass(frozen=True)
class Thresholds:
    large_notional: Decimal = LARGE_NOTIONAL_USD
    noise_notional: Decimal = NOISE_NOTIONAL_USD
    noise_filter_enabled: bool = True


@dataclass
class ProcessorStats:
    processed: int = 0
    filtered: int = 0
    enriched: int = 0


def trade_record_id(tid: int, tx_hash: str) -> str:
    return f"{tid}-{tx_hash[:8]}"


def _parse_decimal(name: str, raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except (DecimalException, TypeError) as exc:
        raise TradeParseError(f"{name} is not numeric: {raw!r}") from exc
    if not value.is_finite():
        raise TradeParseError(f"{name} is not finite: {raw!r}")
    return value


def build_record(
    event: RawTradeEvent,
    table: Mapping[str, TrackedWalletEntry],
    thresholds: Thresholds,
) -> NormalizedTradeRecord | None:
    """Classify one raw trade and build its display record.

    Returns ``None`` when the noise filter discards the trade. Raises
    ``TradeParseError`` for a non-numeric price/size, an unknown side
    or a notional outside the decimal range.
    """
    price = _parse_decimal("px", event.px)
    size = _parse_decimal("sz", event.sz)
    try:
        side = TradeSide.from_raw(event.side)
    except ValueError as exc:
        raise TradeParseError(str(exc)) from exc
    try:
        notional = price * size
    except DecimalException as exc:
        raise TradeParseError(f"notional out of range: {event.px} x {event.sz}") from exc

    maker, taker = event.users
    maker_entry = table.get(maker.lower())
    taker_entry = table.get(taker.lower())

    is_tracked = maker_entry is not None or taker_entry is not None
    is_large = notional >= thresholds.large_notional

    if (
        thresholds.noise_filter_enabled
        and not is_tracked
        and not is_large
        and notional < thresholds.noise_notional
    ):
        return None

    label: str | None
    if maker_entry is not None:
        wallet, label = maker, maker_entry.primary_label
    elif taker_entry is not None:
        wallet, label = taker, taker_entry.primary_label
    elif is_large:
        wallet, label = taker, LARGE_LABEL
    else:
        wallet, label = maker, None

    return NormalizedTradeRecord(
        id=trade_record_id(event.tid, event.hash),
        timestamp=event.time,
        ticker=event.coin,
        side=side,
        price=price,
        notional=notional,
        wallet_address=wallet,
        label=label,
        is_large=is_large,
        is_tracked=is_tracked,
        tx_hash=event.hash,
    )


class TradeProcessor:
    def __init__(self, directory: WalletDirectory, thresholds: Thresholds | None = None) -> None:
        self.directory = directory
        self.thresholds = thresholds or Thresholds()
        self._stats = ProcessorStats()

    @property
    def stats(self) -> ProcessorStats:
        return replace(self._stats)

    def reset_stats(self) -> None:
        self._stats = ProcessorStats()

    def process(self, event: RawTradeEvent) -> NormalizedTradeRecord | None:
        self._stats.processed += 1
        # One table reference per trade; a refresh swaps it, never mutates it.
        table = self.directory.table
        try:
            record = build_record(event, table, self.thresholds)
        except TradeParseError as exc:
            logger.debug("Discarding trade tid=%s: %s", event.tid, exc)
            record = None

        if record is None:
            self._stats.filtered += 1
            return None

        if record.is_tracked:
            self._stats.enriched += 1
        return record
