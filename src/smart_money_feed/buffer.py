from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .state import FeedState
from .types import NormalizedTradeRecord

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_INTERVAL = 0.1  # seconds

FlushListener = Callable[[list[NormalizedTradeRecord]], None]


class TradeBuffer:
    """Collects enriched trades and merges them into the feed on a timer.

    ``submit`` only queues; at most one flush timer is pending at a time, so
    the feed is updated at most once per interval however bursty the stream.
    """

    def __init__(
        self,
        state: FeedState,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        on_flush: FlushListener | None = None,
    ) -> None:
        self.state = state
        self.flush_interval = flush_interval
        self._on_flush = on_flush
        self._pending: list[NormalizedTradeRecord] = []
        self._timer: asyncio.TimerHandle | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def scheduled(self) -> bool:
        return self._timer is not None

    def submit(self, record: NormalizedTradeRecord) -> None:
        self._pending.append(record)
        if self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.flush_interval, self.flush)

    def flush(self) -> list[NormalizedTradeRecord]:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        pending, self._pending = self._pending, []
        if not pending:
            return []

        admitted = self.state.add_batch(pending)
        if len(admitted) < len(pending):
            logger.debug("Dropped %d duplicate trades", len(pending) - len(admitted))
        if admitted and self._on_flush:
            try:
                self._on_flush(admitted)
            except Exception:
                logger.exception("Error in flush listener")
        return admitted

    def clear(self) -> None:
        self.state.clear()

    def close(self) -> None:
        self.flush()
