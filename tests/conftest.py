import pytest

from shelfscan.data_types import BoundingBox, Candidate
from shelfscan.tracking_store import TrackingStore


class FakeClock:
    def __init__(self, start: int = 1_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def candidate(left, top, right, bottom, confidence=0.9, label="Product") -> Candidate:
    return Candidate(box=BoundingBox(left, top, right, bottom), confidence=confidence, label=label)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return TrackingStore(clock=clock)
