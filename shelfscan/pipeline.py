# Per-frame detection task: detector -> filter -> tracking store

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from loguru import logger

from shelfscan.config import FilterConfig
from shelfscan.detection_filter import filter_detections
from shelfscan.detector import BaseDetector, DetectorFailure
from shelfscan.tracking_store import TrackingStore


@dataclass
class FrameResult:
    """
    Outcome of one submitted frame.
    error is set when the detector failed; the store was left untouched then.
    """
    frame_id: int
    candidates: int = 0
    applied: int = 0
    error: Optional[DetectorFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DetectionPipeline:
    """
    Runs the detector off the caller's thread, one frame at a time.

    Logic:
      - submit() schedules detection on a single worker, so frames are
        processed strictly in order and at most one is in flight.
      - On success the detections go through the filter and into the store
        on that same worker (single writer).
      - On failure the cause is wrapped in DetectorFailure and handed to
        on_error. The frame is skipped, nothing is retried.
      - The returned future always resolves to a FrameResult.
    """

    def __init__(
        self,
        detector: BaseDetector,
        store: TrackingStore,
        filter_config: Optional[FilterConfig] = None,
        on_error: Optional[Callable[[DetectorFailure], None]] = None,
    ):
        self.detector = detector
        self.store = store
        self.filter_config = filter_config or FilterConfig()
        self.on_error = on_error

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="detector")
        self._in_flight = 0
        self._in_flight_lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight > 0

    def _process(self, frame: np.ndarray, frame_id: int) -> FrameResult:
        try:
            detections = self.detector.detect(frame, frame_id)
        except Exception as e:
            failure = DetectorFailure(frame_id, f"Detection failed for frame {frame_id}: {e}")
            failure.__cause__ = e
            logger.opt(exception=e).error(str(failure))
            self._report(failure)
            return FrameResult(frame_id=frame_id, error=failure)

        candidates = filter_detections(detections.detections, self.filter_config)
        applied = self.store.ingest(candidates) if candidates else 0
        return FrameResult(frame_id=frame_id, candidates=len(candidates), applied=applied)

    def _report(self, failure: DetectorFailure) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(failure)
        except Exception:
            logger.exception("Error callback failed")

    def _run(self, frame: np.ndarray, frame_id: int) -> FrameResult:
        try:
            return self._process(frame, frame_id)
        finally:
            with self._in_flight_lock:
                self._in_flight -= 1

    def submit(self, frame: np.ndarray, frame_id: int) -> Future:
        with self._in_flight_lock:
            self._in_flight += 1
        return self._executor.submit(self._run, frame, frame_id)

    def submit_latest(self, frame: np.ndarray, frame_id: int) -> Optional[Future]:
        """
        Keep-only-latest back-pressure: drop the frame while another is
        being processed. Returns None for a dropped frame.
        """
        with self._in_flight_lock:
            if self._in_flight > 0:
                return None
            self._in_flight += 1
        return self._executor.submit(self._run, frame, frame_id)

    def process(self, frame: np.ndarray, frame_id: int) -> FrameResult:
        return self.submit(frame, frame_id).result()

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        self.detector.close()

    def __enter__(self) -> "DetectionPipeline":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
