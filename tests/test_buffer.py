import asyncio
from decimal import Decimal

from smart_money_feed.buffer import TradeBuffer
from smart_money_feed.state import FeedState


def test_submit_defers_to_a_single_timer(record_factory) -> None:
    async def scenario() -> tuple[FeedState, list[bool], list[int]]:
        state = FeedState()
        buffer = TradeBuffer(state, flush_interval=0.01)
        buffer.submit(record_factory("1"))
        buffer.submit(record_factory("2"))
        buffer.submit(record_factory("3"))

        before = [len(state.trades) == 0, buffer.scheduled]
        await asyncio.sleep(0.05)
        return state, before, [buffer.pending_count, int(buffer.scheduled)]

    state, before, after = asyncio.run(scenario())

    assert before == [True, True]
    assert after == [0, 0]
    assert [r.id for r in state.trades] == ["3", "2", "1"]
    assert state.stats.total_trades == 3


def test_duplicate_across_flushes_admitted_once(record_factory) -> None:
    state = FeedState()
    record = record_factory("7-0xabcdef", is_tracked=True, is_large=True, notional=Decimal("150000"))

    async def scenario() -> tuple[list, list]:
        buffer = TradeBuffer(state, flush_interval=10)
        buffer.submit(record)
        first = buffer.flush()
        buffer.submit(record)
        second = buffer.flush()
        return first, second

    first, second = asyncio.run(scenario())

    assert first == [record]
    assert second == []
    assert state.trades == (record,)
    assert state.stats.total_trades == 1
    assert state.stats.tracked_trades == 1
    assert state.stats.large_trades == 1
    assert state.stats.total_volume == Decimal("150000")


def test_duplicate_within_one_batch_admitted_once(record_factory) -> None:
    state = FeedState()
    admitted = state.add_batch([record_factory("a"), record_factory("a"), record_factory("b")])

    assert [r.id for r in admitted] == ["a", "b"]
    assert [r.id for r in state.trades] == ["b", "a"]
    assert state.stats.total_trades == 2


def test_bounded_retention_keeps_most_recent(record_factory) -> None:
    state = FeedState(max_trades=5)
    buffer = TradeBuffer(state)

    for batch in ([0, 1, 2], [3, 4, 5, 6], [7, 8, 9, 10, 11]):
        for i in batch:
            buffer._pending.append(record_factory(str(i)))
        buffer.flush()

    assert [r.id for r in state.trades] == ["11", "10", "9", "8", "7"]
    assert state.stats.total_trades == 12


def test_evicted_records_do_not_block_new_ids(record_factory) -> None:
    state = FeedState(max_trades=2)
    state.add_batch([record_factory("a"), record_factory("b"), record_factory("c")])

    assert "a" not in state
    assert [r.id for r in state.trades] == ["c", "b"]


def test_flush_without_pending_resets_timer(record_factory) -> None:
    async def scenario() -> tuple[list, bool]:
        buffer = TradeBuffer(FeedState(), flush_interval=10)
        buffer.submit(record_factory("1"))
        buffer.flush()
        return buffer.flush(), buffer.scheduled

    result, scheduled = asyncio.run(scenario())
    assert result == []
    assert scheduled is False


def test_clear_resets_collection_and_counters(record_factory) -> None:
    state = FeedState()
    buffer = TradeBuffer(state)
    state.add_batch([record_factory("1", is_tracked=True), record_factory("2", is_large=True)])

    buffer.clear()

    assert state.trades == ()
    assert state.stats.total_trades == 0
    assert state.stats.tracked_trades == 0
    assert state.stats.total_volume == 0


def test_flush_listener_receives_admitted_and_errors_are_contained(record_factory) -> None:
    seen: list[list[str]] = []

    def listener(records) -> None:
        seen.append([r.id for r in records])
        raise RuntimeError("listener broke")

    state = FeedState()
    buffer = TradeBuffer(state, on_flush=listener)
    buffer._pending.extend([record_factory("1"), record_factory("2")])

    admitted = buffer.flush()

    assert [r.id for r in admitted] == ["1", "2"]
    assert seen == [["1", "2"]]
    assert len(state.trades) == 2


def test_submit_after_flush_schedules_new_timer(record_factory) -> None:
    async def scenario() -> FeedState:
        state = FeedState()
        buffer = TradeBuffer(state, flush_interval=0.01)
        buffer.submit(record_factory("1"))
        await asyncio.sleep(0.03)
        buffer.submit(record_factory("2"))
        assert buffer.scheduled
        await asyncio.sleep(0.03)
        return state

    state = asyncio.run(scenario())
    assert [r.id for r in state.trades] == ["2", "1"]
