import pytest

from shelfscan.config import FilterConfig
from shelfscan.data_types import BoundingBox, RawDetection, RawLabel
from shelfscan.detection_filter import filter_detection, filter_detections


def raw(width, height, labels=None, track_id=None, left=0.0, top=0.0) -> RawDetection:
    return RawDetection(
        box=BoundingBox(left, top, left + width, top + height),
        labels=labels or [],
        track_id=track_id,
    )


def test_small_box_rejected():
    config = FilterConfig(min_box_size=20)
    assert filter_detections([raw(15, 15, [RawLabel("Food", 0.9)])], config) == []
    assert filter_detections([raw(15, 100, [RawLabel("Food", 0.9)])], config) == []
    assert filter_detections([raw(100, 15, [RawLabel("Food", 0.9)])], config) == []


def test_min_size_boundary():
    config = FilterConfig(min_box_size=30)
    assert len(filter_detections([raw(30, 30)], config)) == 1
    assert filter_detections([raw(29.5, 30)], config) == []


def test_label_and_score_from_first_label():
    det = raw(100, 80, [RawLabel("Home good", 0.64), RawLabel("Food", 0.9)])
    candidate = filter_detection(det, FilterConfig())
    assert candidate.label == "Home good"
    assert candidate.confidence == pytest.approx(0.64)
    assert candidate.box == det.box


def test_fallback_confidence_without_labels():
    config = FilterConfig()

    untracked = filter_detection(raw(100, 100), config)
    assert untracked.confidence == config.untracked_fallback_confidence == 0.5
    assert untracked.label == "Product"

    tracked = filter_detection(raw(100, 100, track_id=3), config)
    assert tracked.confidence == config.tracked_fallback_confidence == 0.7

    # track id 0 is still a track id
    assert filter_detection(raw(100, 100, track_id=0), config).confidence == 0.7


def test_low_confidence_rejected():
    config = FilterConfig(min_confidence=0.3)
    assert filter_detection(raw(100, 100, [RawLabel("Food", 0.29)]), config) is None
    assert filter_detection(raw(100, 100, [RawLabel("Food", 0.3)]), config) is not None


def test_fallback_can_fall_below_threshold():
    config = FilterConfig(min_confidence=0.6)
    assert filter_detection(raw(100, 100), config) is None
    assert filter_detection(raw(100, 100, track_id=1), config) is not None


def test_custom_default_label():
    config = FilterConfig(default_label="Item")
    assert filter_detection(raw(100, 100), config).label == "Item"


def test_mixed_frame():
    frame = [
        raw(100, 100, [RawLabel("Food", 0.9)]),
        raw(10, 10, [RawLabel("Food", 0.9)]),
        raw(100, 100, [RawLabel("Food", 0.05)], left=300),
        raw(120, 60, track_id=7, left=600),
    ]
    candidates = filter_detections(frame)
    assert [c.label for c in candidates] == ["Food", "Product"]
    assert candidates[1].confidence == 0.7


def test_empty_frame():
    assert filter_detections([]) == []


def test_filter_config_validation():
    with pytest.raises(ValueError):
        FilterConfig(min_confidence=1.2)
    with pytest.raises(ValueError):
        FilterConfig(min_box_size=-1)
