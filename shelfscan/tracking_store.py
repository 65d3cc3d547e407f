import threading
import time
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from shelfscan.config import StoreConfig
from shelfscan.data_types import BoundingBox, Candidate, TrackedItem

Snapshot = Tuple[TrackedItem, ...]
Subscriber = Callable[[Snapshot], None]


def now_ms() -> int:
    return int(time.time() * 1000)


def iou(box_a: BoundingBox, box_b: BoundingBox) -> float:
    """
    Intersection over Union of two boxes. 0.0 when they do not intersect.
    """
    inter = box_a.intersection(box_b)
    if inter is None:
        return 0.0

    inter_area = inter.area
    union = box_a.area + box_b.area - inter_area
    if union <= 0.0:
        return 0.0

    return float(inter_area / union)


def overlaps(box_a: BoundingBox, box_b: BoundingBox, threshold: float = 0.5) -> bool:
    """
    True when the boxes intersect and their IoU reaches threshold. Symmetric.
    """
    if box_a.intersection(box_b) is None:
        return False
    return iou(box_a, box_b) >= threshold


def _is_well_formed(box: BoundingBox) -> bool:
    return box.is_valid() and box.area > 0.0


class TrackingStore:
    """
    Deduplicating store of detected items.

    Logic:
      - ingest() walks the candidates in order. A candidate whose box overlaps
        (IoU >= iou_threshold) any stored item is a duplicate and adds nothing,
        otherwise it becomes a new TrackedItem. Candidates added earlier in the
        same call take part in the comparison, so the first of two overlapping
        candidates wins.
      - Stored items are never modified in place. With refresh_on_match a
        duplicate replaces the matched item by a copy with a fresh last_seen_at,
        keeping its original box, confidence and id.
      - Items only leave through clear() or evict_older_than().

    Writers serialize on one lock. Readers get the last published tuple and
    never see a half-applied ingest. Subscribers see published versions in
    increasing order; a stale one is skipped, never delivered late.
    """

    def __init__(
        self,
        iou_threshold: float = 0.5,
        max_age_ms: int = 60_000,
        refresh_on_match: bool = True,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.iou_threshold = iou_threshold
        self.max_age_ms = max_age_ms
        self.refresh_on_match = refresh_on_match
        self._clock = clock or now_ms

        self._items: Snapshot = ()
        self._version = 0
        self._lock = threading.Lock()

        # deliveries run one at a time, newest published version wins
        self._notify_lock = threading.RLock()
        self._delivered_version = 0
        self._subscribers: List[Subscriber] = []

    @classmethod
    def from_config(cls, config: StoreConfig, clock: Optional[Callable[[], int]] = None) -> "TrackingStore":
        return cls(
            iou_threshold=config.iou_threshold,
            max_age_ms=config.max_age_ms,
            refresh_on_match=config.refresh_on_match,
            clock=clock,
        )

    # ----- Read side -----

    def snapshot(self) -> Snapshot:
        return self._items

    @property
    def items(self) -> Snapshot:
        return self._items

    @property
    def count(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register callback(snapshot), fired whenever the item set changes.
        Returns a function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ----- Write side -----

    def _find_match(self, items: Sequence[TrackedItem], box: BoundingBox) -> Optional[int]:
        for idx, item in enumerate(items):
            if overlaps(item.box, box, self.iou_threshold):
                return idx
        return None

    def ingest(self, candidates: Iterable[Candidate]) -> int:
        """
        Absorb one frame of candidates. Returns how many became new items.
        """
        with self._lock:
            now = self._clock()
            items = list(self._items)
            applied = 0
            refreshed = 0

            for candidate in candidates:
                if not _is_well_formed(candidate.box):
                    logger.warning(f"Dropping candidate with degenerate box {candidate.box}")
                    continue

                match_idx = self._find_match(items, candidate.box)
                if match_idx is None:
                    items.append(TrackedItem.from_candidate(candidate, now))
                    applied += 1
                elif self.refresh_on_match and items[match_idx].last_seen_at != now:
                    items[match_idx] = replace(items[match_idx], last_seen_at=now)
                    refreshed += 1

            if applied or refreshed:
                self._publish(tuple(items))
            snapshot = self._items
            version = self._version
            subscribers = list(self._subscribers)

        logger.debug(f"Ingested: {applied} new, {refreshed} refreshed, {len(snapshot)} total")
        if applied > 0:
            self._notify(subscribers, snapshot, version)
        return applied

    def clear(self) -> None:
        with self._lock:
            had_items = bool(self._items)
            self._publish(())
            snapshot = self._items
            version = self._version
            subscribers = list(self._subscribers)

        logger.info("Tracked items cleared")
        if had_items:
            self._notify(subscribers, snapshot, version)

    def evict_older_than(self, max_age_ms: Optional[int] = None) -> int:
        """
        Remove every item not seen for at least max_age_ms.
        Returns the number of evicted items.
        """
        if max_age_ms is None:
            max_age_ms = self.max_age_ms
        if max_age_ms < 0:
            raise ValueError(f"max_age_ms must be >= 0, got {max_age_ms}")

        with self._lock:
            now = self._clock()
            kept = tuple(item for item in self._items if item.age_ms(now) < max_age_ms)
            evicted = len(self._items) - len(kept)
            if evicted:
                self._publish(kept)
            snapshot = self._items
            version = self._version
            subscribers = list(self._subscribers)

        if evicted:
            logger.debug(f"Evicted {evicted} items older than {max_age_ms} ms, {len(snapshot)} left")
            self._notify(subscribers, snapshot, version)
        return evicted

    def _publish(self, items: Snapshot) -> None:
        # caller holds self._lock
        self._items = items
        self._version += 1

    def _notify(self, subscribers: Sequence[Subscriber], snapshot: Snapshot, version: int) -> None:
        """
        Deliver snapshot to subscribers one delivery at a time. A version
        older than the last delivered one is dropped.
        """
        with self._notify_lock:
            if version <= self._delivered_version:
                logger.debug(f"Skipping stale notification v{version}, v{self._delivered_version} already delivered")
                return
            self._delivered_version = version

            for callback in subscribers:
                try:
                    callback(snapshot)
                except Exception:
                    logger.exception(f"Subscriber {callback!r} failed")


class EvictionScheduler:
    """
    Background timer that calls store.evict_older_than(max_age_ms)
    every interval_s seconds until stopped.
    """

    def __init__(self, store: TrackingStore, interval_s: float, max_age_ms: Optional[int] = None):
        if interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {interval_s}")
        self.store = store
        self.interval_s = interval_s
        self.max_age_ms = max_age_ms
        self.stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self.stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="eviction", daemon=True)
        self._thread.start()
        logger.info(f"Eviction every {self.interval_s:.1f}s started")

    def stop(self) -> None:
        if self._thread is None:
            return
        self.stop_event.set()
        self._thread.join()
        self._thread = None
        logger.info("Eviction stopped")

    def _loop(self) -> None:
        while not self.stop_event.wait(self.interval_s):
            self.store.evict_older_than(self.max_age_ms)

    def __enter__(self) -> "EvictionScheduler":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
