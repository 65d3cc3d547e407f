# End-to-end shelf scanning demo

import argparse

import cv2
from loguru import logger

from shelfscan.config import PipelineConfig
from shelfscan.counter import ItemCounter
from shelfscan.detector import DetectorFailure, YoloDetector
from shelfscan.overlay import draw_items
from shelfscan.pipeline import DetectionPipeline
from shelfscan.tracking_store import EvictionScheduler, TrackingStore


def _report_failure(failure: DetectorFailure) -> None:
    logger.warning(f"Skipping frame {failure.frame_id}: {failure.__cause__!r}")


def run_demo(config: PipelineConfig, video_source=None) -> None:
    """
    End-to-end demo:
      frame -> detector -> filter -> tracking store -> counter -> overlay -> display
    Keys: c clears the detected items, q or ESC quits.
    """

    if video_source is None:
        video_source = config.video.source

    cap = cv2.VideoCapture(video_source)
    if not cap.isOpened():
        raise RuntimeError(f"Could not open video source: {video_source}")

    store = TrackingStore.from_config(config.store)
    counter = ItemCounter(store)
    counter.add_listener(lambda state: logger.info(f"Products detected: {state.total}"))

    pipeline = DetectionPipeline(
        YoloDetector(config.detection),
        store,
        filter_config=config.filter,
        on_error=_report_failure,
    )

    scheduler = None
    if config.store.evict_interval_s > 0:
        scheduler = EvictionScheduler(store, config.store.evict_interval_s, config.store.max_age_ms)
        scheduler.start()

    frame_id = 0

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                break

            frame_id += 1

            # Resize to configured resolution
            frame = cv2.resize(
                frame,
                (config.video.frame_width, config.video.frame_height),
            )

            # Detection runs in the background; frames arriving meanwhile are dropped
            pipeline.submit_latest(frame.copy(), frame_id)

            draw_items(frame, store.snapshot(), counter.total, config.overlay)

            cv2.imshow("Shelf Scan", frame)
            key = cv2.waitKey(1) & 0xFF
            if key == 27 or key == ord("q"):  # ESC or q
                break
            if key == ord("c"):
                store.clear()
    finally:
        if scheduler is not None:
            scheduler.stop()
        pipeline.close()
        counter.detach()
        cap.release()
        cv2.destroyAllWindows()


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Shelf product detection demo")
    parser.add_argument(
        "--video",
        type=str,
        default=None,
        help="Video file path or camera index (e.g. 0 for default webcam)",
    )
    parser.add_argument("--device", type=str, default=None, help="cpu or cuda")
    parser.add_argument("--no-tracking", action="store_true", help="Run plain detection without track ids")
    parser.add_argument(
        "--evict-every",
        type=float,
        default=0.0,
        help="Seconds between evictions of stale items (0 disables)",
    )
    parser.add_argument("--max-age-ms", type=int, default=None, help="Age at which items are evicted")
    args = parser.parse_args(argv)

    cfg = PipelineConfig()
    if args.device is not None:
        cfg.detection.device = args.device
    if args.no_tracking:
        cfg.detection.use_tracking = False
    cfg.store.evict_interval_s = args.evict_every
    if args.max_age_ms is not None:
        cfg.store.max_age_ms = args.max_age_ms

    if args.video is None:
        video_source = cfg.video.source
    else:
        # If argument is a digit, treat it as camera index; else as path
        if args.video.isdigit():
            video_source = int(args.video)
        else:
            video_source = args.video

    run_demo(cfg, video_source=video_source)


if __name__ == "__main__":
    main()
