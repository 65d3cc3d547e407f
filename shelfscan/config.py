# all configurations in one place

from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

# Paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
MODELS_DIR = PROJECT_ROOT / "models"


@dataclass
class VideoConfig:
    source: Union[int, str] = 0  # 0 for webcam, or path to video file
    frame_width: int = 1280
    frame_height: int = 720


@dataclass
class DetectionConfig:
    model_path: Path = MODELS_DIR / "detector" / "yolo_products.pt"
    fallback_model: str = "yolov8n.pt"
    use_tracking: bool = True   # ask the model for track ids (model.track)
    iou_threshold: float = 0.7  # NMS inside the model, not deduplication
    max_det: int = 20
    device: str = "cpu"  # or "cuda"


@dataclass
class FilterConfig:
    min_box_size: float = 30.0         # px, smaller boxes are floating noise
    min_confidence: float = 0.2
    default_label: str = "Product"
    tracked_fallback_confidence: float = 0.7
    untracked_fallback_confidence: float = 0.5

    def __post_init__(self):
        if self.min_box_size < 0:
            raise ValueError(f"min_box_size must be >= 0, got {self.min_box_size}")
        for name in ("min_confidence", "tracked_fallback_confidence", "untracked_fallback_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")


@dataclass
class StoreConfig:
    iou_threshold: float = 0.5
    max_age_ms: int = 60_000
    refresh_on_match: bool = True  # duplicate match bumps last_seen_at
    evict_interval_s: float = 0.0  # 0 disables the periodic eviction timer

    def __post_init__(self):
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError(f"iou_threshold must be in [0, 1], got {self.iou_threshold}")
        if self.max_age_ms < 0:
            raise ValueError(f"max_age_ms must be >= 0, got {self.max_age_ms}")
        if self.evict_interval_s < 0:
            raise ValueError(f"evict_interval_s must be >= 0, got {self.evict_interval_s}")


@dataclass
class OverlayConfig:
    min_draw_size: float = 10.0  # px, after clamping to the frame
    color: tuple = (0, 255, 0)   # BGR
    box_thickness: int = 3
    show_count: bool = True


@dataclass
class PipelineConfig:
    video: VideoConfig = field(default_factory=VideoConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
