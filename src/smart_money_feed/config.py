from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    hl_ws_url: str
    hl_coins: tuple[str, ...]
    heartbeat_interval_seconds: float
    reconnect_base_delay_seconds: float
    max_reconnect_attempts: int
    batch_interval_ms: int
    max_trades: int
    large_notional_usd: Decimal
    noise_notional_usd: Decimal
    noise_filter_enabled: bool
    wallets_file: str | None
    wallets_url: str | None
    wallets_refresh_seconds: int
    wallet_stats_api_base: str
    wallet_stats_interval_seconds: int
    explorer_base: str
    health_log_interval_seconds: int
    log_level: str


def _optional_str(name: str) -> str | None:
    return os.getenv(name, "").strip() or None


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _optional_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _optional_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return Decimal(default)
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"{name} must be a non-negative number, got {raw!r}")
    return value


def _optional_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    text = raw.strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _optional_list(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_settings() -> Settings:
    load_dotenv()
    settings = Settings(
        hl_ws_url=os.getenv("HL_WS_URL", "wss://api.hyperliquid.xyz/ws").strip(),
        hl_coins=_optional_list("HL_COINS"),
        heartbeat_interval_seconds=_optional_float("HEARTBEAT_INTERVAL_SECONDS", 30.0),
        reconnect_base_delay_seconds=_optional_float("RECONNECT_BASE_DELAY_SECONDS", 3.0),
        max_reconnect_attempts=_optional_int("MAX_RECONNECT_ATTEMPTS", 5),
        batch_interval_ms=_optional_int("BATCH_INTERVAL_MS", 100),
        max_trades=_optional_int("MAX_TRADES", 100),
        large_notional_usd=_optional_decimal("LARGE_NOTIONAL_USD", "100000"),
        noise_notional_usd=_optional_decimal("NOISE_NOTIONAL_USD", "1000"),
        noise_filter_enabled=_optional_bool("NOISE_FILTER_ENABLED", True),
        wallets_file=_optional_str("WALLETS_FILE"),
        wallets_url=_optional_str("WALLETS_URL"),
        wallets_refresh_seconds=_optional_int("WALLETS_REFRESH_SECONDS", 86400),
        wallet_stats_api_base=os.getenv(
            "WALLET_STATS_API_BASE", "https://hypurrscan.io/api"
        ).strip(),
        wallet_stats_interval_seconds=_optional_int("WALLET_STATS_INTERVAL_SECONDS", 0),
        explorer_base=os.getenv("EXPLORER_BASE", "https://hypurrscan.io").strip(),
        health_log_interval_seconds=_optional_int("HEALTH_LOG_INTERVAL_SECONDS", 60),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
    if settings.max_trades <= 0:
        raise ValueError("MAX_TRADES must be positive")
    if settings.batch_interval_ms <= 0:
        raise ValueError("BATCH_INTERVAL_MS must be positive")
    return settings
