from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import replace
from decimal import Decimal
from typing import Any

from .projection import FeedFilters, project
from .types import ConnectionStatus, FeedStats, NormalizedTradeRecord

DEFAULT_MAX_TRADES = 100


class FeedState:
    """Process-wide feed state shared by the stream connector and the buffer.

    Readers get snapshots (``trades``, ``stats``); only the named mutation
    methods change anything, and each of them runs without suspending.
    """

    def __init__(self, max_trades: int = DEFAULT_MAX_TRADES) -> None:
        if max_trades <= 0:
            raise ValueError("max_trades must be positive")
        self.max_trades = max_trades
        # Newest first; keys double as the dedup index.
        self._trades: OrderedDict[str, NormalizedTradeRecord] = OrderedDict()
        self._stats = FeedStats()
        self._filters = FeedFilters()
        self._connection_status = ConnectionStatus.DISCONNECTED
        self._error_message: str | None = None
        self._last_message_time: float | None = None
        self._message_count = 0

    @property
    def trades(self) -> tuple[NormalizedTradeRecord, ...]:
        return tuple(self._trades.values())

    @property
    def stats(self) -> FeedStats:
        return self._stats

    @property
    def filters(self) -> FeedFilters:
        return self._filters

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._connection_status

    @property
    def error_message(self) -> str | None:
        return self._error_message

    @property
    def last_message_time(self) -> float | None:
        return self._last_message_time

    @property
    def message_count(self) -> int:
        return self._message_count

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._trades

    def add_batch(self, records: Iterable[NormalizedTradeRecord]) -> list[NormalizedTradeRecord]:
        """Merge a flushed batch and return the records that were admitted."""
        admitted: list[NormalizedTradeRecord] = []
        for record in records:
            if record.id in self._trades:
                continue
            self._trades[record.id] = record
            self._trades.move_to_end(record.id, last=False)
            admitted.append(record)

        while len(self._trades) > self.max_trades:
            self._trades.popitem(last=True)

        if admitted:
            stats = self._stats
            self._stats = FeedStats(
                total_trades=stats.total_trades + len(admitted),
                tracked_trades=stats.tracked_trades + sum(1 for r in admitted if r.is_tracked),
                large_trades=stats.large_trades + sum(1 for r in admitted if r.is_large),
                total_volume=stats.total_volume + sum((r.notional for r in admitted), Decimal(0)),
            )
        return admitted

    def clear(self) -> None:
        self._trades.clear()
        self._stats = FeedStats()

    def set_connection_status(self, status: ConnectionStatus) -> None:
        self._connection_status = status

    def set_error_message(self, message: str | None) -> None:
        self._error_message = message

    def record_message(self) -> None:
        self._message_count += 1
        self._last_message_time = time.time()

    def set_filters(self, **changes: Any) -> FeedFilters:
        if "tickers" in changes:
            changes["tickers"] = frozenset(changes["tickers"])
        self._filters = replace(self._filters, **changes)
        return self._filters

    def reset_filters(self) -> None:
        self._filters = FeedFilters()

    def filtered_trades(self) -> list[NormalizedTradeRecord]:
        return list(project(self._trades.values(), self._filters))
