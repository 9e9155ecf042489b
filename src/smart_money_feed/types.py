from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any


class ConnectionStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class TradeSide(Enum):
    LONG = "Long"
    SHORT = "Short"

    @classmethod
    def from_raw(cls, raw: str) -> TradeSide:
        # "B" = bid = buy, "A" = ask = sell
        if raw == "B":
            return cls.LONG
        if raw == "A":
            return cls.SHORT
        raise ValueError(f"Unknown trade side: {raw!r}")


class WalletTier(Enum):
    TRACKED = "tracked"
    LARGE_NOTIONAL = "large_notional"
    INSTITUTIONAL = "institutional"

    @classmethod
    def parse(cls, raw: Any) -> WalletTier:
        text = str(raw or "").strip().lower().replace("-", "_")
        tier = _TIER_ALIASES.get(text)
        if tier is None:
            raise ValueError(f"Unknown wallet tier: {raw!r}")
        return tier


_TIER_ALIASES = {
    "tracked": WalletTier.TRACKED,
    "smart": WalletTier.TRACKED,
    "large_notional": WalletTier.LARGE_NOTIONAL,
    "whale": WalletTier.LARGE_NOTIONAL,
    "institutional": WalletTier.INSTITUTIONAL,
    "institution": WalletTier.INSTITUTIONAL,
}


@dataclass(frozen=True)
class RawTradeEvent:
    coin: str
    side: str
    px: str
    sz: str
    time: int
    hash: str
    tid: int
    users: tuple[str, str]

    @property
    def maker(self) -> str:
        return self.users[0]

    @property
    def taker(self) -> str:
        return self.users[1]

    @classmethod
    def from_message(cls, data: dict[str, Any]) -> RawTradeEvent:
        """Extract a trade from one element of a ``trades`` frame.

        Only the shape is checked here. Price, size and side are kept as the
        raw strings so the processor decides what counts as a valid trade.
        """
        users = data["users"]
        if not isinstance(users, (list, tuple)) or len(users) != 2:
            raise ValueError(f"Expected [maker, taker] users, got {users!r}")
        maker, taker = (str(u).strip() for u in users)
        if not maker or not taker:
            raise ValueError("Trade is missing a participant address")

        return cls(
            coin=str(data["coin"]),
            side=str(data["side"]),
            px=str(data["px"]),
            sz=str(data["sz"]),
            time=int(data["time"]),
            hash=str(data["hash"]),
            tid=int(data["tid"]),
            users=(maker, taker),
        )


@dataclass(frozen=True)
class TrackedWalletEntry:
    labels: tuple[str, ...]
    tier: WalletTier

    def __post_init__(self) -> None:
        if not self.labels:
            raise ValueError("A tracked wallet needs at least one label")

    @property
    def primary_label(self) -> str:
        return self.labels[0]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrackedWalletEntry:
        raw_labels = data.get("labels") or []
        if isinstance(raw_labels, str):
            raw_labels = [raw_labels]
        labels = tuple(str(label).strip() for label in raw_labels if str(label).strip())
        return cls(labels=labels, tier=WalletTier.parse(data.get("tier", "tracked")))


@dataclass(frozen=True)
class NormalizedTradeRecord:
    id: str
    timestamp: int
    ticker: str
    side: TradeSide
    price: Decimal
    notional: Decimal
    wallet_address: str
    label: str | None
    is_large: bool
    is_tracked: bool
    tx_hash: str


@dataclass(frozen=True)
class FeedStats:
    total_trades: int = 0
    tracked_trades: int = 0
    large_trades: int = 0
    total_volume: Decimal = Decimal(0)


@dataclass(frozen=True)
class WalletStats:
    address: str
    pnl_1d: float
    pnl_7d: float
    pnl_30d: float
    win_rate_7d: float
    win_rate_30d: float
    volume_7d: float
    volume_30d: float
    twap: float
    long_position: float
    short_position: float
    error: bool = False

    @classmethod
    def failed(cls, address: str) -> WalletStats:
        return cls(
            address=address.lower(),
            pnl_1d=0.0,
            pnl_7d=0.0,
            pnl_30d=0.0,
            win_rate_7d=0.0,
            win_rate_30d=0.0,
            volume_7d=0.0,
            volume_30d=0.0,
            twap=0.0,
            long_position=0.0,
            short_position=0.0,
            error=True,
        )
