"""Slack event deduplicator tests (fake clock)."""
from business.dedup import EventDeduplicator


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestEventDeduplicator:
    def test_first_seen_then_duplicate(self):
        dedup = EventDeduplicator(ttl_seconds=60, clock=FakeClock())
        assert dedup.seen("Ev1") is False
        assert dedup.seen("Ev1") is True
        assert dedup.seen("Ev2") is False

    def test_expires_after_ttl(self):
        clock = FakeClock()
        dedup = EventDeduplicator(ttl_seconds=60, clock=clock)
        dedup.seen("Ev1")
        clock.advance(59)
        assert "Ev1" in dedup
        clock.advance(1)
        assert "Ev1" not in dedup
        assert dedup.seen("Ev1") is False

    def test_sweep_removes_only_expired(self):
        clock = FakeClock()
        dedup = EventDeduplicator(ttl_seconds=60, clock=clock)
        dedup.seen("old")
        clock.advance(30)
        dedup.seen("new")
        clock.advance(40)

        assert dedup.sweep() == 1
        assert len(dedup) == 1
        assert "new" in dedup

    def test_bounded_size_evicts_oldest(self):
        dedup = EventDeduplicator(ttl_seconds=60, max_entries=2, clock=FakeClock())
        for event_id in ("a", "b", "c"):
            dedup.seen(event_id)
        assert len(dedup) == 2
        assert "a" not in dedup
        assert "c" in dedup
