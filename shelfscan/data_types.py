# Core data structures (boxes, raw detections, candidates, tracked items, counts)

from dataclasses import dataclass, field
from typing import Dict, List, Optional


# box coordinates
@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned bounding box in the detector's pixel coordinates.
    (left, top) = top-left corner, (right, bottom) = bottom-right corner.
    No coordinate transform happens here; the frame producer owns the space.
    """
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2.0

    @property
    def center_y(self) -> float:
        return (self.top + self.bottom) / 2.0

    @property
    def area(self) -> float:
        return self.width * self.height

    def is_valid(self) -> bool:
        return self.left <= self.right and self.top <= self.bottom

    def intersection(self, other: "BoundingBox") -> Optional["BoundingBox"]:
        """
        Intersection rectangle of two boxes, or None when it is empty.
        Boxes that only touch along an edge do not intersect.
        """
        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)

        if left < right and top < bottom:
            return BoundingBox(left=left, top=top, right=right, bottom=bottom)
        return None


@dataclass(frozen=True)
class RawLabel:
    text: str
    score: float


@dataclass
class RawDetection:
    """
    Single object reported by the detector, before any filtering.
    labels may be empty when the detector localizes without classifying.
    """
    box: BoundingBox
    labels: List[RawLabel] = field(default_factory=list)
    track_id: Optional[int] = None


@dataclass
class FrameDetections:
    """
    All raw detections for a single frame.
    """
    frame_id: int
    detections: List[RawDetection]


@dataclass(frozen=True)
class Candidate:
    """
    One filtered detection for the current frame. Has no identity.
    """
    box: BoundingBox
    confidence: float
    label: str


def generate_id(box: BoundingBox) -> str:
    """
    Geometry-derived id: "<center_x>_<center_y>_<width>", each truncated to int.
    """
    return f"{int(box.center_x)}_{int(box.center_y)}_{int(box.width)}"


@dataclass(frozen=True)
class TrackedItem:
    """
    A deduplicated detection kept by the TrackingStore.
    Timestamps are epoch milliseconds.
    """
    id: str
    box: BoundingBox
    confidence: float
    label: str
    first_seen_at: int
    last_seen_at: int

    @classmethod
    def from_candidate(cls, candidate: Candidate, now_ms: int) -> "TrackedItem":
        return cls(
            id=generate_id(candidate.box),
            box=candidate.box,
            confidence=candidate.confidence,
            label=candidate.label,
            first_seen_at=now_ms,
            last_seen_at=now_ms,
        )

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.last_seen_at


@dataclass
class CountingState:
    """
    Counts published to the UI.
    per_label maps label -> number of tracked items with that label.
    """
    total: int = 0
    per_label: Dict[str, int] = field(default_factory=dict)
