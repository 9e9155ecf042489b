from decimal import Decimal

from smart_money_feed.projection import FeedFilters, project
from smart_money_feed.state import FeedState


def test_project_preserves_order_and_applies_all_filters(record_factory) -> None:
    records = [
        record_factory("4", ticker="BTC", is_tracked=True, notional=Decimal("200000"), is_large=True),
        record_factory("3", ticker="ETH", is_tracked=True, notional=Decimal("5000")),
        record_factory("2", ticker="BTC", notional=Decimal("150000"), is_large=True),
        record_factory("1", ticker="SOL", is_tracked=True, notional=Decimal("60000")),
    ]

    assert [r.id for r in project(records, FeedFilters())] == ["4", "3", "2", "1"]
    assert [r.id for r in project(records, FeedFilters(tracked_only=True))] == ["4", "3", "1"]
    assert [r.id for r in project(records, FeedFilters(large_only=True))] == ["4", "2"]
    assert [r.id for r in project(records, FeedFilters(min_notional=Decimal("60000")))] == ["4", "2", "1"]
    assert [r.id for r in project(records, FeedFilters(tickers=frozenset({"BTC", "SOL"})))] == ["4", "2", "1"]
    assert [
        r.id
        for r in project(
            records,
            FeedFilters(tracked_only=True, large_only=True, tickers=frozenset({"BTC"})),
        )
    ] == ["4"]


def test_project_is_lazy(record_factory) -> None:
    seen: list[str] = []

    def source():
        for i in range(3):
            seen.append(str(i))
            yield record_factory(str(i))

    result = project(source(), FeedFilters())
    assert seen == []
    assert next(result).id == "0"
    assert seen == ["0"]


def test_state_filters_roundtrip(record_factory) -> None:
    state = FeedState()
    state.add_batch(
        [
            record_factory("1", ticker="ETH"),
            record_factory("2", ticker="BTC", is_tracked=True),
        ]
    )

    filters = state.set_filters(tracked_only=True, tickers=["BTC"])
    assert filters.tickers == frozenset({"BTC"})
    assert [r.id for r in state.filtered_trades()] == ["2"]

    state.reset_filters()
    assert state.filters == FeedFilters()
    assert [r.id for r in state.filtered_trades()] == ["2", "1"]
