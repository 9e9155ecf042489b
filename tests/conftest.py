"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import pytest

from smart_money_feed.types import NormalizedTradeRecord, RawTradeEvent, TradeSide


def make_event(**overrides: Any) -> RawTradeEvent:
    fields: dict[str, Any] = {
        "coin": "BTC",
        "side": "B",
        "px": "50000",
        "sz": "2",
        "time": 1000,
        "hash": "0xdeadbeefcafebabe",
        "tid": 1,
        "users": ("0xAAA", "0xBBB"),
    }
    fields.update(overrides)
    return RawTradeEvent(**fields)


def make_record(record_id: str, **overrides: Any) -> NormalizedTradeRecord:
    fields: dict[str, Any] = {
        "id": record_id,
        "timestamp": 1000,
        "ticker": "ETH",
        "side": TradeSide.LONG,
        "price": Decimal("2500"),
        "notional": Decimal("5000"),
        "wallet_address": "0xAAA",
        "label": None,
        "is_large": False,
        "is_tracked": False,
        "tx_hash": "0xabc",
    }
    fields.update(overrides)
    return NormalizedTradeRecord(**fields)


@pytest.fixture
def event_factory() -> Callable[..., RawTradeEvent]:
    return make_event


@pytest.fixture
def record_factory() -> Callable[..., NormalizedTradeRecord]:
    return make_record
