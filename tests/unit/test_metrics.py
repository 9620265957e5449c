"""Unit tests for ops counters and their file store."""

import json
import threading
import time

import pytest

from newsgate.ops import JsonFileOpsStore, MetricsRegistry
from newsgate.state import EmotionCategory, GenerationMode, OpsEvent, OpsSnapshot


class TickClock:
    """Deterministic ISO timestamps, one second apart."""

    def __init__(self):
        self.ticks = 0

    def __call__(self) -> str:
        self.ticks += 1
        return f"2026-10-19T00:00:{self.ticks:02d}+00:00"


@pytest.fixture
def store(tmp_path):
    return JsonFileOpsStore(tmp_path / "snapshot.json", tmp_path / "events.jsonl")


@pytest.fixture
def registry(store):
    registry = MetricsRegistry(store=store, debounce_s=60, clock=TickClock())
    yield registry
    registry.close()


class TestTrack:
    """Tests for MetricsRegistry.track."""

    def test_counts_by_mode_and_totals(self, registry):
        """Mode counters roll up into totals."""
        registry.track(GenerationMode.DRAFT, "requests")
        registry.track(GenerationMode.LONGFORM, "requests", 2)
        registry.track(GenerationMode.DRAFT, "success")

        snapshot = registry.snapshot()
        assert snapshot.totals["requests"] == 3
        assert snapshot.totals["success"] == 1
        assert snapshot.by_mode["draft"]["requests"] == 1
        assert snapshot.by_mode["interactive-longform"]["requests"] == 2

    def test_counts_by_category(self, registry):
        """Emotion categories have their own buckets."""
        registry.track(EmotionCategory.CLARITY, "similarityBlocks")
        snapshot = registry.snapshot()
        assert snapshot.by_category["clarity"]["similarityBlocks"] == 1
        assert snapshot.by_mode == {}

    def test_every_counter_starts_at_zero(self, registry):
        """Totals list every known counter."""
        totals = registry.snapshot().totals
        assert set(totals) >= {"requests", "success", "retries", "parseFailures", "complianceBlocks"}
        assert all(value == 0 for value in totals.values())

    def test_rejects_unknown_counter(self, registry):
        """Counter names are a closed set."""
        with pytest.raises(ValueError):
            registry.track(GenerationMode.DRAFT, "mystery")

    def test_rejects_negative_amount(self, registry):
        """Counters never decrease."""
        with pytest.raises(ValueError):
            registry.track(GenerationMode.DRAFT, "requests", -1)

    def test_rejects_unknown_scope(self, registry):
        """Scopes must be a mode or an emotion category."""
        with pytest.raises(ValueError):
            registry.track("draft", "requests")

    def test_zero_amount_is_a_noop(self, registry):
        """Tracking zero changes nothing."""
        registry.track(GenerationMode.NEWS, "retries", 0)
        assert registry.snapshot().by_mode == {}

    def test_updated_at_advances(self, registry):
        """Every increment refreshes updated_at."""
        before = registry.snapshot().updated_at
        registry.track(GenerationMode.DRAFT, "requests")
        assert registry.snapshot().updated_at > before

    def test_snapshot_is_a_copy(self, registry):
        """Mutating a snapshot does not touch the registry."""
        registry.track(GenerationMode.DRAFT, "requests")
        registry.snapshot().by_mode["draft"]["requests"] = 99
        assert registry.snapshot().by_mode["draft"]["requests"] == 1


class TestEpochs:
    """Tests for start_new_epoch."""

    def test_resets_counters(self, registry):
        """A new epoch zeroes every counter and moves started_at."""
        registry.track(GenerationMode.DRAFT, "requests", 5)
        started = registry.snapshot().started_at

        registry.start_new_epoch()

        snapshot = registry.snapshot()
        assert snapshot.totals["requests"] == 0
        assert snapshot.by_mode == {}
        assert snapshot.started_at > started


class TestPersistence:
    """Tests for flushing and rehydration."""

    def test_flush_writes_events_and_snapshot(self, registry, store):
        """Flushing appends events and writes a camelCase snapshot."""
        registry.track(GenerationMode.DRAFT, "requests")
        registry.track(EmotionCategory.GRAVITY, "success")
        registry.flush()

        raw = json.loads(store.snapshot_path.read_text(encoding="utf-8"))
        assert raw["totals"]["requests"] == 1
        assert raw["byMode"]["draft"]["requests"] == 1
        assert raw["byCategory"]["gravity"]["success"] == 1
        assert "startedAt" in raw
        assert len(store.read_events()) == 2

    def test_nothing_written_without_events(self, registry, store):
        """Flushing an idle registry does not create files."""
        registry.flush()
        assert not store.snapshot_path.exists()

    def test_debounced_flush_fires(self, store):
        """The first tracked event arms a timer that flushes shortly after."""
        registry = MetricsRegistry(store=store, debounce_s=0.01)
        registry.track(GenerationMode.NEWS, "requests")

        deadline = time.monotonic() + 2.0
        while not store.snapshot_path.exists() and time.monotonic() < deadline:
            time.sleep(0.01)

        assert store.read_latest().totals["requests"] == 1
        registry.close()

    def test_rehydrate_from_snapshot(self, registry, store):
        """A fresh registry resumes from the latest snapshot."""
        registry.track(GenerationMode.DRAFT, "requests", 3)
        registry.flush()

        restored = MetricsRegistry.rehydrate(store, debounce_s=60)

        assert restored.snapshot().totals["requests"] == 3
        assert restored.snapshot().by_mode["draft"]["requests"] == 3
        restored.close()

    def test_rehydrate_replays_events_after_last_epoch(self, store):
        """Without a snapshot, events since the last epoch marker are replayed."""
        store.append(OpsEvent(at="t1", scope_type="mode", scope="draft", counter="requests", amount=4))
        store.append(OpsEvent(at="t2", kind="epoch"))
        store.append(OpsEvent(at="t3", scope_type="mode", scope="draft", counter="requests", amount=1))
        store.append(
            OpsEvent(at="t4", scope_type="category", scope="clarity", counter="success", amount=1)
        )

        snapshot = MetricsRegistry.rehydrate(store, debounce_s=60).snapshot()

        assert snapshot.started_at == "t2"
        assert snapshot.updated_at == "t4"
        assert snapshot.totals["requests"] == 1
        assert snapshot.by_category["clarity"]["success"] == 1

    def test_rehydrate_from_nothing(self, store):
        """An empty store starts at zero."""
        snapshot = MetricsRegistry.rehydrate(store, debounce_s=60).snapshot()
        assert sum(snapshot.totals.values()) == 0

    def test_store_failures_do_not_raise(self, tmp_path):
        """Persistence failures are logged, not raised."""

        class BrokenStore(JsonFileOpsStore):
            def append(self, event):
                raise OSError("disk full")

        registry = MetricsRegistry(
            store=BrokenStore(tmp_path / "s.json", tmp_path / "e.jsonl"), debounce_s=60
        )
        registry.track(GenerationMode.DRAFT, "requests")
        registry.flush()
        assert registry.snapshot().totals["requests"] == 1

    def test_failed_events_are_kept_for_the_next_flush(self, tmp_path):
        """Events the store rejected are written by the following flush."""

        class FlakyStore(JsonFileOpsStore):
            failures = 1

            def append(self, event):
                if self.failures:
                    self.failures -= 1
                    raise OSError("disk full")
                super().append(event)

        store = FlakyStore(tmp_path / "s.json", tmp_path / "e.jsonl")
        registry = MetricsRegistry(store=store, debounce_s=60)
        registry.track(GenerationMode.DRAFT, "requests")
        registry.track(GenerationMode.DRAFT, "success")

        registry.flush()
        assert store.read_events() == []

        registry.flush()
        assert [event.counter for event in store.read_events()] == ["requests", "success"]
        assert store.read_latest().totals["success"] == 1
        registry.close()

    def test_concurrent_flushes_leave_latest_snapshot(self, tmp_path):
        """Racing flushes never leave an older snapshot on disk."""

        class SlowStore(JsonFileOpsStore):
            def write(self, snapshot):
                time.sleep(0.002)
                super().write(snapshot)

        store = SlowStore(tmp_path / "s.json", tmp_path / "e.jsonl")
        registry = MetricsRegistry(store=store, debounce_s=60)

        def worker():
            for _ in range(5):
                registry.track(GenerationMode.DRAFT, "requests")
                registry.flush()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        registry.close()

        assert store.read_latest().totals["requests"] == 20
        assert len(store.read_events()) == 20


class TestJsonFileOpsStore:
    """Tests for the file store."""

    def test_corrupt_lines_are_skipped(self, store):
        """Unparseable event lines are ignored."""
        store.append(OpsEvent(at="t1", scope_type="mode", scope="news", counter="requests", amount=1))
        with open(store.log_path, "a", encoding="utf-8") as f:
            f.write("{not json\n\n")
        store.append(OpsEvent(at="t2", scope_type="mode", scope="news", counter="success", amount=1))

        assert [event.counter for event in store.read_events()] == ["requests", "success"]

    def test_unreadable_snapshot_is_ignored(self, store):
        """A corrupt snapshot reads as missing."""
        store.snapshot_path.write_text("not json", encoding="utf-8")
        assert store.read_latest() is None

    def test_write_round_trip(self, store):
        """Snapshots written atomically read back intact."""
        snapshot = OpsSnapshot(
            started_at="a", updated_at="b", totals={"requests": 2}, by_mode={"news": {"requests": 2}}
        )
        store.write(snapshot)
        assert store.read_latest() == snapshot
        assert not store.snapshot_path.with_suffix(".json.tmp").exists()
