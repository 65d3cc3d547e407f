# Drawing bounding boxes, tick marks, confidences and the item count on frames

from typing import Iterable, Optional

import cv2
import numpy as np

from shelfscan.config import OverlayConfig
from shelfscan.data_types import BoundingBox, TrackedItem


def clamp_box(box: BoundingBox, width: int, height: int) -> BoundingBox:
    return BoundingBox(
        left=min(max(box.left, 0.0), float(width)),
        top=min(max(box.top, 0.0), float(height)),
        right=min(max(box.right, 0.0), float(width)),
        bottom=min(max(box.bottom, 0.0), float(height)),
    )


def draw_tick_mark(frame, box: BoundingBox, color) -> None:
    """
    Filled circle at the box center with a white check mark inside.
    """
    tick_size = min(box.width, box.height) * 0.4
    cx = box.center_x
    cy = box.center_y
    radius = int(tick_size / 1.5)

    cv2.circle(frame, (int(cx), int(cy)), radius, color, -1, cv2.LINE_AA)

    scale = tick_size / 2
    points = np.array(
        [
            [cx - scale * 0.5, cy],
            [cx - scale * 0.15, cy + scale * 0.5],
            [cx + scale * 0.6, cy - scale * 0.5],
        ],
        dtype=np.int32,
    )
    thickness = max(2, int(scale * 0.2))
    cv2.polylines(frame, [points], False, (255, 255, 255), thickness, cv2.LINE_AA)


def draw_confidence_label(frame, box: BoundingBox, confidence: float, color) -> None:
    text = f"{int(confidence * 100)}%"
    label_top = int(max(0.0, box.top - 25))
    x1 = int(box.left)

    cv2.rectangle(frame, (x1, label_top), (x1 + 60, label_top + 20), color, -1)
    cv2.putText(
        frame,
        text,
        (x1 + 5, label_top + 15),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.5,
        (0, 0, 0),
        1,
        cv2.LINE_AA,
    )


def draw_items(
    frame,
    items: Iterable[TrackedItem],
    count: Optional[int] = None,
    config: Optional[OverlayConfig] = None,
) -> int:
    """
    Draw every tracked item on the frame (in place) and the total count.

    frame: numpy array (BGR)
    items: snapshot from the TrackingStore
    count: value for the "Products Detected" banner, skipped when None

    Returns the number of items actually drawn.
    """
    if config is None:
        config = OverlayConfig()

    h, w = frame.shape[:2]
    drawn = 0

    # ----- Draw items -----
    for item in items:
        box = clamp_box(item.box, w, h)

        # Only draw if the box is still visible after clamping
        if box.width <= config.min_draw_size or box.height <= config.min_draw_size:
            continue

        cv2.rectangle(
            frame,
            (int(box.left), int(box.top)),
            (int(box.right), int(box.bottom)),
            config.color,
            config.box_thickness,
        )
        draw_tick_mark(frame, box, config.color)
        draw_confidence_label(frame, box, item.confidence, config.color)
        drawn += 1

    # ----- Draw count -----
    if config.show_count and count is not None:
        cv2.putText(
            frame,
            f"Products Detected: {count}",
            (10, 30),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.8,
            (0, 255, 255),
            2,
            cv2.LINE_AA,
        )

    return drawn
