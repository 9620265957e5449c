"""
Ops counters for the generation gate.

Counters are grouped by mode (draft, interactive-longform, news) and by
emotion category, plus running totals. They only ever increase within an
epoch; ``start_new_epoch`` is the only reset.

Tracked events are buffered and flushed through an OpsStore on a debounced
timer: the first event after a flush arms a ``threading.Timer`` and every
event arriving before it fires joins the same flush.
"""

import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from ..config import constants
from ..state import EmotionCategory, GenerationMode, OpsEvent, OpsSnapshot
from .store import OpsStore

logger = logging.getLogger(__name__)

Scope = Union[GenerationMode, EmotionCategory]

SCOPE_MODE = "mode"
SCOPE_CATEGORY = "category"
EVENT_TRACK = "track"
EVENT_EPOCH = "epoch"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _zero_counters() -> dict[str, int]:
    return {key: 0 for key in constants.OPS_COUNTER_KEYS}


class MetricsRegistry:
    """
    Thread-safe, monotonically increasing counters.

    Example:
        registry = MetricsRegistry.rehydrate(JsonFileOpsStore.from_settings(settings))
        registry.track(GenerationMode.DRAFT, "requests")
        registry.snapshot().totals["requests"]
    """

    def __init__(
        self,
        store: Optional[OpsStore] = None,
        debounce_s: float = constants.OPS_FLUSH_DEBOUNCE_S,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.store = store
        self.debounce_s = debounce_s
        self._clock = clock
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._pending: list[OpsEvent] = []
        self._timer: Optional[threading.Timer] = None

        now = self._clock()
        self._started_at = now
        self._updated_at = now
        self._totals = _zero_counters()
        self._by_mode: dict[str, dict[str, int]] = {}
        self._by_category: dict[str, dict[str, int]] = {}

    # -------------------------------------------------------------------------
    # Counting
    # -------------------------------------------------------------------------

    def track(self, scope: Scope, counter: str, amount: int = 1) -> None:
        """
        Increment a counter for a mode or an emotion category.

        Raises:
            ValueError: Unknown counter, negative amount or unsupported scope
        """
        if counter not in constants.OPS_COUNTER_KEYS:
            raise ValueError(f"Unknown ops counter: {counter}")
        if amount < 0:
            raise ValueError("Ops counters can only increase")
        if isinstance(scope, GenerationMode):
            scope_type = SCOPE_MODE
        elif isinstance(scope, EmotionCategory):
            scope_type = SCOPE_CATEGORY
        else:
            raise ValueError(f"Unsupported ops scope: {scope!r}")
        if amount == 0:
            return

        with self._lock:
            self._apply(scope_type, scope.value, counter, amount)
            self._updated_at = self._clock()
            if self.store is not None:
                self._pending.append(
                    OpsEvent(
                        at=self._updated_at,
                        kind=EVENT_TRACK,
                        scope_type=scope_type,
                        scope=scope.value,
                        counter=counter,
                        amount=amount,
                    )
                )
                self._schedule_flush()

    def snapshot(self) -> OpsSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def start_new_epoch(self) -> None:
        """Reset every counter and start a new policy epoch."""
        with self._lock:
            now = self._clock()
            self._started_at = now
            self._updated_at = now
            self._totals = _zero_counters()
            self._by_mode.clear()
            self._by_category.clear()
            if self.store is not None:
                self._pending.append(OpsEvent(at=now, kind=EVENT_EPOCH))
        logger.info("Started a new ops counter epoch")
        self.flush()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @classmethod
    def rehydrate(
        cls,
        store: OpsStore,
        debounce_s: float = constants.OPS_FLUSH_DEBOUNCE_S,
    ) -> "MetricsRegistry":
        """
        Restore counters from durable storage.

        The latest snapshot wins; without one the event log is replayed
        from its last epoch marker; without either counting starts at zero.
        """
        registry = cls(store=store, debounce_s=debounce_s)
        latest = store.read_latest()
        if latest is not None:
            registry._load_snapshot(latest)
            logger.info(f"Ops counters rehydrated from snapshot ({latest.updated_at})")
            return registry

        events = store.read_events()
        if events:
            registry._replay(events)
            logger.info(f"Ops counters rehydrated by replaying {len(events)} events")
        else:
            logger.info("No stored ops counters, starting from zero")
        return registry

    def flush(self) -> None:
        """
        Write buffered events and the current snapshot; failures are logged.

        Concurrent flushes are serialized end to end, so a snapshot is never
        overwritten by an older one. Events the store did not accept are put
        back at the head of the queue for the next flush.
        """
        with self._flush_lock:
            with self._lock:
                if self._timer is not None:
                    self._timer.cancel()
                    self._timer = None
                events, self._pending = self._pending, []
                snapshot = self._snapshot_locked()
            if self.store is None or not events:
                return

            appended = 0
            try:
                for event in events:
                    self.store.append(event)
                    appended += 1
                self.store.write(snapshot)
            except Exception as e:
                logger.warning(f"Failed to persist ops counters: {e}")
                if appended < len(events):
                    with self._lock:
                        self._pending = events[appended:] + self._pending

    def close(self) -> None:
        """Flush pending events immediately."""
        self.flush()

    # -------------------------------------------------------------------------
    # Internals (callers hold self._lock)
    # -------------------------------------------------------------------------

    def _schedule_flush(self) -> None:
        if self._timer is None:
            self._timer = threading.Timer(self.debounce_s, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def _apply(self, scope_type: str, scope: str, counter: str, amount: int) -> None:
        buckets = self._by_mode if scope_type == SCOPE_MODE else self._by_category
        bucket = buckets.setdefault(scope, _zero_counters())
        bucket[counter] = bucket.get(counter, 0) + amount
        self._totals[counter] = self._totals.get(counter, 0) + amount

    def _snapshot_locked(self) -> OpsSnapshot:
        return OpsSnapshot(
            started_at=self._started_at,
            updated_at=self._updated_at,
            totals=dict(self._totals),
            by_mode=copy.deepcopy(self._by_mode),
            by_category=copy.deepcopy(self._by_category),
        )

    def _load_snapshot(self, snapshot: OpsSnapshot) -> None:
        with self._lock:
            self._started_at = snapshot.started_at
            self._updated_at = snapshot.updated_at
            self._totals = {**_zero_counters(), **snapshot.totals}
            self._by_mode = {k: {**_zero_counters(), **v} for k, v in snapshot.by_mode.items()}
            self._by_category = {
                k: {**_zero_counters(), **v} for k, v in snapshot.by_category.items()
            }

    def _replay(self, events: list[OpsEvent]) -> None:
        with self._lock:
            for event in events:
                if event.kind == EVENT_EPOCH:
                    self._started_at = event.at
                    self._totals = _zero_counters()
                    self._by_mode.clear()
                    self._by_category.clear()
                elif event.counter in constants.OPS_COUNTER_KEYS and event.amount > 0:
                    scope_type = event.scope_type or SCOPE_MODE
                    self._apply(scope_type, event.scope or "", event.counter, event.amount)
                self._updated_at = event.at
