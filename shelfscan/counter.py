from typing import Callable, Dict, Iterable, List, Optional

from shelfscan.data_types import CountingState, TrackedItem
from shelfscan.tracking_store import TrackingStore


class ItemCounter:
    """
    Item counter for the UI.

    Behavior:
      - Subscribes to a TrackingStore and recounts on every published change.
      - Maintains a CountingState (total + label -> count).
      - Optional listeners get the new state after each recount.
    """

    def __init__(self, store: TrackingStore):
        self.state = CountingState()
        self._listeners: List[Callable[[CountingState], None]] = []

        self.update(store.snapshot())
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self.update)

    def add_listener(self, listener: Callable[[CountingState], None]) -> None:
        self._listeners.append(listener)

    @property
    def total(self) -> int:
        return self.state.total

    def update(self, items: Iterable[TrackedItem]) -> CountingState:
        per_label: Dict[str, int] = {}
        total = 0
        for item in items:
            per_label[item.label] = per_label.get(item.label, 0) + 1
            total += 1

        self.state = CountingState(total=total, per_label=per_label)

        for listener in self._listeners:
            listener(self.state)
        return self.state

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
