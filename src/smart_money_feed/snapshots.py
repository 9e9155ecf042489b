from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from .types import WalletStats

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8
DEFAULT_CHUNK_DELAY = 0.3  # seconds
DEFAULT_CACHE_TTL = 300  # seconds

ProgressCallback = Callable[[int, int], None]

# WalletStats field -> accepted response keys, snake_case first.
_FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "pnl_1d": ("pnl_1d", "pnl1d"),
    "pnl_7d": ("pnl_7d", "pnl7d"),
    "pnl_30d": ("pnl_30d", "pnl30d"),
    "win_rate_7d": ("win_rate_7d", "winRate7d"),
    "win_rate_30d": ("win_rate_30d", "winRate30d"),
    "volume_7d": ("volume_7d", "volume7d"),
    "volume_30d": ("volume_30d", "volume30d"),
    "twap": ("twap",),
    "long_position": ("long_position", "longPosition"),
    "short_position": ("short_position", "shortPosition"),
}


class WalletStatsClient:
    """Pulls per-wallet performance aggregates in rate-limited chunks.

    Every failure is folded into an ``error=True`` row so one bad wallet
    never sinks a whole snapshot.
    """

    def __init__(
        self,
        api_base: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_delay: float = DEFAULT_CHUNK_DELAY,
        cache_ttl: float = DEFAULT_CACHE_TTL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.api_base = api_base.rstrip("/")
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self.cache_ttl = cache_ttl
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._cache: dict[tuple[str, ...], tuple[float, list[WalletStats]]] = {}

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch(self, address: str) -> WalletStats:
        try:
            resp = await self._client.get(
                f"{self.api_base}/wallet/{address}/stats",
                headers={"Accept": "application/json"},
            )
            resp.raise_for_status()
            data = resp.json()
        except Exception as exc:
            logger.warning("Failed to fetch stats for %s: %s", address, exc)
            return WalletStats.failed(address)

        if not isinstance(data, dict):
            logger.warning("Unexpected stats payload for %s: %r", address, type(data).__name__)
            return WalletStats.failed(address)
        return parse_wallet_stats(address, data)

    async def fetch_many(
        self,
        addresses: Sequence[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[WalletStats]:
        key = tuple(addr.lower() for addr in addresses)
        cached = self._cache.get(key)
        if cached is not None and time.monotonic() - cached[0] < self.cache_ttl:
            return list(cached[1])

        results: list[WalletStats] = []
        total = len(key)
        for start in range(0, total, self.chunk_size):
            chunk = key[start : start + self.chunk_size]
            results.extend(await asyncio.gather(*(self.fetch(addr) for addr in chunk)))
            if on_progress:
                on_progress(len(results), total)
            if start + self.chunk_size < total:
                await asyncio.sleep(self.chunk_delay)

        now = time.monotonic()
        for stale in [k for k, (stored, _) in self._cache.items() if now - stored >= self.cache_ttl]:
            del self._cache[stale]
        self._cache[key] = (now, results)
        return list(results)


def parse_wallet_stats(address: str, data: dict[str, Any]) -> WalletStats:
    values: dict[str, float] = {}
    for field_name, keys in _FIELD_KEYS.items():
        values[field_name] = _first_number(data, keys)
    return WalletStats(address=address.lower(), error=False, **values)


def _first_number(data: dict[str, Any], keys: tuple[str, ...]) -> float:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return 0.0
