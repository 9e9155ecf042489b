from __future__ import annotations

import asyncio
import logging

from .buffer import TradeBuffer
from .config import Settings
from .formatting import build_address_link, format_trade_line, format_usd
from .hyperliquid_stream import HyperliquidTradeStream
from .processor import Thresholds, TradeProcessor
from .snapshots import WalletStatsClient
from .state import FeedState
from .types import ConnectionStatus, NormalizedTradeRecord, RawTradeEvent, WalletStats
from .wallets import WalletDirectory, WalletDirectoryError, WalletDirectoryLoader

logger = logging.getLogger(__name__)


class FeedService:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.state = FeedState(max_trades=settings.max_trades)
        self.directory = WalletDirectory()
        self.processor = TradeProcessor(
            self.directory,
            Thresholds(
                large_notional=settings.large_notional_usd,
                noise_notional=settings.noise_notional_usd,
                noise_filter_enabled=settings.noise_filter_enabled,
            ),
        )
        self.buffer = TradeBuffer(
            self.state,
            flush_interval=settings.batch_interval_ms / 1000,
            on_flush=self._log_flush,
        )
        self.stream = HyperliquidTradeStream(
            ws_url=settings.hl_ws_url,
            state=self.state,
            coins=settings.hl_coins,
            heartbeat_interval=settings.heartbeat_interval_seconds,
            reconnect_base_delay=settings.reconnect_base_delay_seconds,
            max_reconnect_attempts=settings.max_reconnect_attempts,
        )
        self.loader = WalletDirectoryLoader(file_path=settings.wallets_file, url=settings.wallets_url)
        self.wallet_stats = WalletStatsClient(settings.wallet_stats_api_base)

    async def run(self) -> ConnectionStatus:
        await self.load_directory()
        tasks = [asyncio.create_task(self._health_loop())]
        if self.loader.configured and self.settings.wallets_refresh_seconds > 0:
            tasks.append(asyncio.create_task(self._refresh_loop()))
        if self.settings.wallet_stats_interval_seconds > 0:
            tasks.append(asyncio.create_task(self._snapshot_loop()))

        try:
            self.stream.start(self.handle_trade)
            status = await self.stream.wait_stopped()
            if status == ConnectionStatus.ERROR:
                logger.error("Trade stream stopped: %s", self.state.error_message)
            return status
        finally:
            await self.stream.stop()
            self.buffer.close()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self.loader.close()
            await self.wallet_stats.close()

    def handle_trade(self, event: RawTradeEvent) -> None:
        record = self.processor.process(event)
        if record is not None:
            self.buffer.submit(record)

    def clear(self) -> None:
        self.buffer.clear()
        self.processor.reset_stats()

    async def load_directory(self) -> bool:
        if not self.loader.configured:
            logger.info("No wallet directory configured; only large trades will be tagged")
            return False
        try:
            entries, source = await self.loader.load()
        except WalletDirectoryError as exc:
            # Keep whatever table we had; the feed still works without labels.
            logger.warning("Wallet directory load failed: %s", exc)
            return False
        self.directory.replace(entries, source)
        return True

    async def wallet_snapshots(self) -> list[WalletStats]:
        addresses = sorted(self.directory.table)
        if not addresses:
            return []
        return await self.wallet_stats.fetch_many(
            addresses,
            on_progress=lambda done, total: logger.debug("Wallet stats %d/%d", done, total),
        )

    def _log_flush(self, admitted: list[NormalizedTradeRecord]) -> None:
        for record in reversed(admitted):
            if record.is_tracked or record.is_large:
                logger.info("%s", format_trade_line(record, self.settings.explorer_base))

    async def _refresh_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.wallets_refresh_seconds)
            await self.load_directory()

    async def _snapshot_loop(self) -> None:
        while True:
            self._log_snapshots(await self.wallet_snapshots())
            await asyncio.sleep(self.settings.wallet_stats_interval_seconds)

    def _log_snapshots(self, snapshots: list[WalletStats]) -> None:
        ok = [s for s in snapshots if not s.error]
        if ok:
            best = max(ok, key=lambda s: s.pnl_7d)
            logger.info(
                "wallet snapshot wallets=%d failed=%d best_7d=%s pnl_7d=%s",
                len(snapshots),
                len(snapshots) - len(ok),
                build_address_link(self.settings.explorer_base, best.address),
                format_usd(best.pnl_7d),
            )
        elif snapshots:
            logger.warning("wallet snapshot failed for all %d wallets", len(snapshots))

    async def _health_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.health_log_interval_seconds)
            proc = self.processor.stats
            stats = self.state.stats
            logger.info(
                (
                    "health status=%s ws_messages=%d processed=%d filtered=%d enriched=%d "
                    "trades=%d tracked=%d large=%d volume=%s wallets=%d"
                ),
                self.state.connection_status.value,
                self.state.message_count,
                proc.processed,
                proc.filtered,
                proc.enriched,
                stats.total_trades,
                stats.tracked_trades,
                stats.large_trades,
                format_usd(stats.total_volume),
                len(self.directory),
            )
