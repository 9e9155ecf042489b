import pytest

from smart_money_feed.types import (
    RawTradeEvent,
    TrackedWalletEntry,
    TradeSide,
    WalletTier,
)


def test_side_mapping() -> None:
    assert TradeSide.from_raw("B") is TradeSide.LONG
    assert TradeSide.from_raw("A") is TradeSide.SHORT
    with pytest.raises(ValueError):
        TradeSide.from_raw("X")
    with pytest.raises(ValueError):
        TradeSide.from_raw("b")


def test_raw_event_from_message_keeps_strings() -> None:
    event = RawTradeEvent.from_message(
        {
            "coin": "ETH",
            "side": "A",
            "px": "2500.5",
            "sz": "1.25",
            "time": 1730000000000,
            "hash": "0xfeed",
            "tid": 42,
            "users": ["0xMaker", "0xTaker"],
        }
    )

    assert event.px == "2500.5"
    assert event.sz == "1.25"
    assert event.maker == "0xMaker"
    assert event.taker == "0xTaker"
    assert event.tid == 42


def test_raw_event_rejects_bad_users() -> None:
    base = {"coin": "ETH", "side": "A", "px": "1", "sz": "1", "time": 1, "hash": "0x", "tid": 1}
    with pytest.raises(ValueError):
        RawTradeEvent.from_message({**base, "users": ["0xonly"]})
    with pytest.raises(KeyError):
        RawTradeEvent.from_message(base)


def test_wallet_tier_accepts_feed_aliases() -> None:
    assert WalletTier.parse("tracked") is WalletTier.TRACKED
    assert WalletTier.parse("smart") is WalletTier.TRACKED
    assert WalletTier.parse("whale") is WalletTier.LARGE_NOTIONAL
    assert WalletTier.parse("large-notional") is WalletTier.LARGE_NOTIONAL
    assert WalletTier.parse("Institution") is WalletTier.INSTITUTIONAL
    with pytest.raises(ValueError):
        WalletTier.parse("retail")


def test_tracked_wallet_entry_requires_labels() -> None:
    entry = TrackedWalletEntry.from_dict({"labels": ["Fund", "Smart DEX Trader"], "tier": "tracked"})
    assert entry.primary_label == "Fund"

    with pytest.raises(ValueError):
        TrackedWalletEntry.from_dict({"labels": [], "tier": "tracked"})


def test_tracked_wallet_entry_is_frozen() -> None:
    entry = TrackedWalletEntry(labels=("Fund",), tier=WalletTier.TRACKED)
    with pytest.raises(AttributeError):
        entry.tier = WalletTier.INSTITUTIONAL  # type: ignore[misc]
