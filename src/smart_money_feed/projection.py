from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal

from .types import NormalizedTradeRecord


@dataclass(frozen=True)
class FeedFilters:
    tracked_only: bool = False
    large_only: bool = False
    min_notional: Decimal = Decimal(0)
    tickers: frozenset[str] = field(default_factory=frozenset)


def matches(record: NormalizedTradeRecord, filters: FeedFilters) -> bool:
    if filters.tracked_only and not record.is_tracked:
        return False
    if filters.large_only and not record.is_large:
        return False
    if record.notional < filters.min_notional:
        return False
    if filters.tickers and record.ticker not in filters.tickers:
        return False
    return True


def project(
    records: Iterable[NormalizedTradeRecord], filters: FeedFilters
) -> Iterator[NormalizedTradeRecord]:
    return (record for record in records if matches(record, filters))
