"""Unit tests for the cooldown store, dedup gates and flood tracker."""

from __future__ import annotations

import pytest

from conftest import FakeClock
from group_shield.trackers.cooldown import CooldownStore, user_group_key
from group_shield.trackers.dedup import DedupGate, JoinDedup
from group_shield.trackers.flood import FloodTracker

MINUTE = 60 * 1000


# ---------------------------------------------------------------
# Cooldown store
# ---------------------------------------------------------------


class TestCooldownStore:
    @pytest.mark.asyncio
    async def test_absent_key_is_inactive(self, clock: FakeClock) -> None:
        store = CooldownStore(clock)
        assert not store.is_active("nothing", 10_000)

    @pytest.mark.asyncio
    async def test_window_boundaries(self, clock: FakeClock) -> None:
        store = CooldownStore(clock)
        store.touch("k")
        clock.advance(10_000 - 1)
        assert store.is_active("k", 10_000)
        clock.advance(2)
        assert not store.is_active("k", 10_000)

    @pytest.mark.asyncio
    async def test_touch_never_moves_backwards(self, clock: FakeClock) -> None:
        store = CooldownStore(clock)
        store.touch("k")
        first = store.stats().newest_ms
        clock.advance(-5_000)
        store.touch("k")
        assert store.stats().newest_ms == first

    @pytest.mark.asyncio
    async def test_clear_and_sweep(self, clock: FakeClock) -> None:
        store = CooldownStore(clock)
        store.touch("old")
        clock.advance(2 * 60 * MINUTE)
        store.touch("fresh")
        store.touch("gone")
        store.clear("gone")
        assert store.sweep(max_age_ms=60 * MINUTE) == 1
        assert len(store) == 1
        assert store.is_active("fresh", MINUTE)

    @pytest.mark.asyncio
    async def test_stats(self, clock: FakeClock) -> None:
        store = CooldownStore(clock)
        assert store.stats().total == 0
        store.touch("a")
        clock.advance(500)
        store.touch("b")
        stats = store.stats()
        assert stats.total == 2
        assert stats.newest_ms - stats.oldest_ms == 500

    @pytest.mark.asyncio
    async def test_key_format(self) -> None:
        assert user_group_key(5, -100, "scam") == "usergroup:5:-100:scam"


# ---------------------------------------------------------------
# Dedup gates
# ---------------------------------------------------------------


class TestDedupGate:
    @pytest.mark.asyncio
    async def test_marks_and_expires(self, clock: FakeClock) -> None:
        gate = DedupGate(ttl_ms=5 * MINUTE, clock=clock)
        assert not gate.is_processed(1, 10)
        gate.mark_processed(1, 10)
        assert gate.is_processed(1, 10)
        assert not gate.is_processed(1, 11)
        clock.advance(5 * MINUTE)
        assert not gate.is_processed(1, 10)

    @pytest.mark.asyncio
    async def test_remark_keeps_original_expiry(self, clock: FakeClock) -> None:
        gate = DedupGate(ttl_ms=5 * MINUTE, clock=clock)
        gate.mark_processed(1, 10)
        clock.advance(4 * MINUTE)
        gate.mark_processed(1, 10)
        clock.advance(MINUTE)
        assert not gate.is_processed(1, 10)

    @pytest.mark.asyncio
    async def test_sweep(self, clock: FakeClock) -> None:
        gate = DedupGate(ttl_ms=MINUTE, clock=clock)
        gate.mark_processed(1, 1)
        gate.mark_processed(1, 2)
        clock.advance(MINUTE)
        gate.mark_processed(1, 3)
        assert gate.sweep() == 2
        assert len(gate) == 1


class TestJoinDedup:
    @pytest.mark.asyncio
    async def test_same_minute_is_duplicate(self, clock: FakeClock) -> None:
        joins = JoinDedup(clock=clock)
        ts = 120 * MINUTE + 5_000
        assert not joins.is_duplicate(7, -1, ts)
        assert joins.is_duplicate(7, -1, ts + 30_000)
        assert not joins.is_duplicate(7, -1, ts + MINUTE)
        assert not joins.is_duplicate(8, -1, ts)

    @pytest.mark.asyncio
    async def test_sweep_drops_stale_fingerprints(self, clock: FakeClock) -> None:
        joins = JoinDedup(ttl_ms=3 * MINUTE, clock=clock)
        joins.is_duplicate(7, -1)
        clock.advance(4 * MINUTE)
        assert joins.sweep() == 1
        assert len(joins) == 0


# ---------------------------------------------------------------
# Flood tracker
# ---------------------------------------------------------------


class TestFloodTracker:
    @pytest.mark.asyncio
    async def test_sixth_message_triggers_once(self, clock: FakeClock) -> None:
        tracker = FloodTracker(window_seconds=30, max_messages=5, restrict_minutes=10, clock=clock)
        results = []
        for _ in range(5):
            results.append(tracker.observe(1, 2))
            clock.advance(1_000)
        assert not any(r.is_flood for r in results)

        sixth = tracker.observe(1, 2)
        assert sixth.is_flood
        assert sixth.count == 6

        for _ in range(20):
            clock.advance(1_000)
            assert not tracker.observe(1, 2).is_flood
        assert tracker.is_locked(1, 2)

    @pytest.mark.asyncio
    async def test_window_slides(self, clock: FakeClock) -> None:
        tracker = FloodTracker(window_seconds=30, max_messages=5, clock=clock)
        for _ in range(10):
            assert not tracker.observe(1, 2).is_flood
            clock.advance(7_000)

    @pytest.mark.asyncio
    async def test_lock_expires_and_window_restarts(self, clock: FakeClock) -> None:
        tracker = FloodTracker(window_seconds=30, max_messages=5, restrict_minutes=10, clock=clock)
        for _ in range(6):
            tracker.observe(1, 2)
        clock.advance(10 * MINUTE)
        assert not tracker.is_locked(1, 2)
        counts = [tracker.observe(1, 2) for _ in range(6)]
        assert counts[0].count == 1
        assert [r.is_flood for r in counts] == [False] * 5 + [True]

    @pytest.mark.asyncio
    async def test_subjects_are_independent(self, clock: FakeClock) -> None:
        tracker = FloodTracker(max_messages=2, clock=clock)
        tracker.observe(1, 2)
        tracker.observe(1, 2)
        assert not tracker.observe(1, 3).is_flood
        assert not tracker.observe(9, 2).is_flood
        assert tracker.observe(1, 2).is_flood

    @pytest.mark.asyncio
    async def test_release_allows_retrigger(self, clock: FakeClock) -> None:
        tracker = FloodTracker(max_messages=2, clock=clock)
        for _ in range(3):
            tracker.observe(1, 2)
        tracker.release(1, 2)
        assert tracker.observe(1, 2).is_flood

    @pytest.mark.asyncio
    async def test_sweep_keeps_locked_and_active(self, clock: FakeClock) -> None:
        tracker = FloodTracker(max_messages=1, restrict_minutes=120, clock=clock)
        tracker.observe(1, 1)
        tracker.observe(1, 1)  # locked for two hours
        tracker.observe(1, 2)
        clock.advance(61 * MINUTE)
        tracker.observe(1, 3)
        assert tracker.sweep(idle_ms=60 * MINUTE) == 1
        assert len(tracker) == 2

    @pytest.mark.asyncio
    async def test_clock_failure_reports_no_flood(self) -> None:
        def broken_clock() -> int:
            raise RuntimeError("clock unavailable")

        tracker = FloodTracker(max_messages=1, clock=broken_clock)
        result = tracker.observe(1, 2)
        assert (result.is_flood, result.count) == (False, 0)
