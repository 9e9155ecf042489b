from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

import httpx

from .types import TrackedWalletEntry, WalletTier

logger = logging.getLogger(__name__)

MANUAL_LIST_LABEL = "Manual Smart List"


class WalletDirectoryError(RuntimeError):
    """Raised when a wallet directory source cannot be loaded."""


@dataclass(frozen=True)
class DirectoryMetadata:
    last_updated: float | None
    wallet_count: int
    source: str


class WalletDirectory:
    """Read-mostly lookup of tracked wallets keyed by lowercased address.

    The table is never mutated in place. ``replace`` builds a new mapping and
    swaps the reference, so a reader holding ``table`` keeps a consistent
    snapshot for as long as it needs one.
    """

    def __init__(
        self,
        entries: Mapping[str, TrackedWalletEntry] | None = None,
        source: str = "empty",
    ) -> None:
        self._table: Mapping[str, TrackedWalletEntry] = MappingProxyType({})
        self._metadata = DirectoryMetadata(last_updated=None, wallet_count=0, source=source)
        if entries:
            self.replace(entries, source)

    @property
    def table(self) -> Mapping[str, TrackedWalletEntry]:
        return self._table

    @property
    def metadata(self) -> DirectoryMetadata:
        return self._metadata

    def get(self, address: str) -> TrackedWalletEntry | None:
        return self._table.get(address.lower())

    def replace(self, entries: Mapping[str, TrackedWalletEntry], source: str) -> None:
        table = MappingProxyType({addr.strip().lower(): entry for addr, entry in entries.items()})
        self._table = table
        self._metadata = DirectoryMetadata(
            last_updated=time.time(),
            wallet_count=len(table),
            source=source,
        )
        logger.info("Wallet directory loaded: %d wallets from %s", len(table), source)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and address.lower() in self._table

    def __len__(self) -> int:
        return len(self._table)


def normalize_addresses(lines: Iterable[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for line in lines:
        addr = line.strip().lower()
        if not addr.startswith("0x") or addr in seen:
            continue
        seen.add(addr)
        out.append(addr)
    return out


def entries_from_addresses(
    addresses: Iterable[str], label: str = MANUAL_LIST_LABEL
) -> dict[str, TrackedWalletEntry]:
    entry = TrackedWalletEntry(labels=(label,), tier=WalletTier.TRACKED)
    return {addr: entry for addr in normalize_addresses(addresses)}


def parse_wallet_map(payload: Any) -> dict[str, TrackedWalletEntry]:
    # The directory endpoint wraps the map as {"success": ..., "data": {...}}.
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        if payload.get("success") is False:
            raise WalletDirectoryError(f"Wallet source reported failure: {payload.get('error')}")
        payload = payload["data"]
    if not isinstance(payload, dict):
        raise WalletDirectoryError("Wallet map must be a JSON object")

    entries: dict[str, TrackedWalletEntry] = {}
    for address, raw in payload.items():
        addr = str(address).strip().lower()
        if not addr:
            continue
        if not isinstance(raw, dict):
            logger.warning("Skipping wallet %s: entry is not an object", addr)
            continue
        try:
            entries[addr] = TrackedWalletEntry.from_dict(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping wallet %s: %s", addr, exc)
    return entries


def load_wallet_file(path: str | Path) -> dict[str, TrackedWalletEntry]:
    file_path = Path(path)
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise WalletDirectoryError(f"Cannot read wallet file {file_path}: {exc}") from exc

    if file_path.suffix.lower() == ".json":
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise WalletDirectoryError(f"Invalid JSON in {file_path}: {exc}") from exc
        return parse_wallet_map(payload)

    # Anything else is a plain address list, one per line.
    return entries_from_addresses(text.splitlines())


class WalletDirectoryLoader:
    def __init__(
        self,
        file_path: str | None = None,
        url: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.file_path = file_path
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.file_path or self.url)

    async def close(self) -> None:
        await self._client.aclose()

    async def load(self) -> tuple[dict[str, TrackedWalletEntry], str]:
        if self.url:
            return await self._fetch(self.url), "url"
        if self.file_path:
            entries = await asyncio.to_thread(load_wallet_file, self.file_path)
            return entries, "file"
        raise WalletDirectoryError("No wallet directory source configured")

    async def _fetch(self, url: str) -> dict[str, TrackedWalletEntry]:
        try:
            resp = await self._client.get(url, headers={"Accept": "application/json"})
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise WalletDirectoryError(f"Wallet directory request to {url} failed: {exc}") from exc
        return parse_wallet_map(payload)
