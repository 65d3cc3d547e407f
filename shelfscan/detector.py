from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import numpy as np
from loguru import logger
from ultralytics import YOLO

from shelfscan.config import DetectionConfig
from shelfscan.data_types import BoundingBox, FrameDetections, RawDetection, RawLabel


class DetectorFailure(RuntimeError):
    """
    The detector could not process a frame. The original exception is
    chained as __cause__.
    """

    def __init__(self, frame_id: int, message: str = ""):
        self.frame_id = frame_id
        super().__init__(message or f"Detection failed for frame {frame_id}")


class BaseDetector(ABC):
    """
    Abstract interface for all detectors.
    """

    @abstractmethod
    def detect(self, frame: np.ndarray, frame_id: int) -> FrameDetections:
        """
        Run detection on a single frame.
        Must return FrameDetections with boxes in frame pixel coordinates.
        """
        raise NotImplementedError

    def close(self) -> None:
        pass


class DummyDetector(BaseDetector):
    """
    Placeholder detector.
    Returns no detections.
    """

    def detect(self, frame: np.ndarray, frame_id: int) -> FrameDetections:
        return FrameDetections(frame_id=frame_id, detections=[])


class YoloDetector(BaseDetector):
    """
    YOLOv8-based detector using the ultralytics package.

    Behavior:
      - If a custom weights file exists at DetectionConfig.model_path, use it.
      - Otherwise, fall back to DetectionConfig.fallback_model (COCO classes).
      - With use_tracking the model's own tracker runs (model.track with
        persist=True) and each detection carries its track id.
      - No confidence filtering happens here; that is the detection filter's job.
    """

    def __init__(self, config: DetectionConfig):
        self.config = config

        weights_path: Path = Path(self.config.model_path)

        if weights_path.is_file():
            self.model = YOLO(str(weights_path))
        else:
            logger.warning(f"Weights {weights_path} not found, using {self.config.fallback_model}")
            # This will download the fallback weights on first use.
            self.model = YOLO(self.config.fallback_model)

        # model.names may be dict or list; both support [] lookup
        self.class_names = self.model.names
        logger.info(f"YoloDetector ready (tracking={self.config.use_tracking}, device={self.config.device})")

    def _run(self, frame: np.ndarray):
        kwargs = dict(
            iou=self.config.iou_threshold,
            max_det=self.config.max_det,
            device=self.config.device,
            verbose=False,
        )
        if self.config.use_tracking:
            return self.model.track(frame, persist=True, **kwargs)[0]
        return self.model(frame, **kwargs)[0]

    def detect(self, frame: np.ndarray, frame_id: int) -> FrameDetections:
        results = self._run(frame)

        detections: List[RawDetection] = []

        if results.boxes is None:
            return FrameDetections(frame_id=frame_id, detections=detections)

        # Each box in results.boxes has xyxy, conf, cls and, when tracking, id
        for box in results.boxes:
            x1, y1, x2, y2 = box.xyxy[0].tolist()

            labels: List[RawLabel] = []
            if box.cls is not None and box.conf is not None:
                class_id = int(box.cls[0].item())
                labels.append(
                    RawLabel(text=str(self.class_names[class_id]), score=float(box.conf[0].item()))
                )

            track_id: Optional[int] = None
            if box.id is not None:
                track_id = int(box.id[0].item())

            detections.append(
                RawDetection(
                    box=BoundingBox(left=float(x1), top=float(y1), right=float(x2), bottom=float(y2)),
                    labels=labels,
                    track_id=track_id,
                )
            )

        logger.debug(f"Frame {frame_id}: detected {len(detections)} objects")
        return FrameDetections(frame_id=frame_id, detections=detections)
