# Turns one frame of raw detector output into candidates

from typing import Iterable, List, Optional

from loguru import logger

from shelfscan.config import FilterConfig
from shelfscan.data_types import Candidate, RawDetection


def resolve_label(det: RawDetection, config: FilterConfig) -> str:
    if det.labels:
        return det.labels[0].text
    return config.default_label


def resolve_confidence(det: RawDetection, config: FilterConfig) -> float:
    """
    Score of the first label. Detectors may localize without scoring, in which
    case a detection that carries a track id is trusted more than one without.
    """
    if det.labels:
        return float(det.labels[0].score)
    if det.track_id is not None:
        return config.tracked_fallback_confidence
    return config.untracked_fallback_confidence


def filter_detection(det: RawDetection, config: FilterConfig) -> Optional[Candidate]:
    width = det.box.width
    height = det.box.height

    if width < config.min_box_size or height < config.min_box_size:
        logger.debug(f"Filtered out: box={width:.0f}x{height:.0f} below {config.min_box_size:.0f}px")
        return None

    label = resolve_label(det, config)
    confidence = resolve_confidence(det, config)

    if confidence < config.min_confidence:
        logger.debug(f"Filtered out: {label} conf={confidence:.2f} below {config.min_confidence:.2f}")
        return None

    logger.debug(f"Valid product: {label}, conf={confidence:.2f}, box={width:.0f}x{height:.0f}")
    return Candidate(box=det.box, confidence=confidence, label=label)


def filter_detections(detections: Iterable[RawDetection], config: Optional[FilterConfig] = None) -> List[Candidate]:
    """
    Drop noise boxes (too small or too unsure) and emit a Candidate for
    every surviving detection. Stateless.
    """
    if config is None:
        config = FilterConfig()

    candidates: List[Candidate] = []
    for det in detections:
        candidate = filter_detection(det, config)
        if candidate is not None:
            candidates.append(candidate)
    return candidates
