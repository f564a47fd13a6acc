#!/usr/bin/env python
"""
YOLO Video Player - samples frames from a playing video and overlays detections.
Run from the project root:
    python run_app.py --debug
    python run_app.py --video path/to/clip.mp4 --interval-ms 200 --accelerator cpu
"""

import argparse


def build_parser():
    parser = argparse.ArgumentParser(description="Play a video with a YOLO detection overlay.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging to debug.log")
    parser.add_argument("--video", help="Video file to play (defaults to the packaged sample)")
    parser.add_argument("--model", help="Model weights, absolute or relative to the packaged asset directory")
    parser.add_argument("--interval-ms", type=int, help="Sampling interval in milliseconds")
    parser.add_argument("--accelerator", choices=["cpu", "gpu"], help="Preferred inference device")
    parser.add_argument("--retention", type=int, help="Number of captured frames kept on disk")
    parser.add_argument("--conf", type=float, help="Confidence threshold")
    parser.add_argument("--iou", type=float, help="IoU threshold")
    return parser


def apply_overrides(config, args):
    if args.debug:
        config.IS_DEBUG_MODE = True
    if args.model:
        config.MODEL_ASSET_PATH = args.model
    if args.interval_ms is not None:
        if args.interval_ms <= 0:
            raise SystemExit("--interval-ms must be positive")
        config.SAMPLING_INTERVAL_MS = args.interval_ms
    if args.accelerator:
        config.ACCELERATOR = args.accelerator
    if args.retention is not None:
        if args.retention < 1:
            raise SystemExit("--retention must be at least 1")
        config.FRAME_CACHE_RETENTION = args.retention
    if args.conf is not None:
        config.DEFAULT_CONF_THRESHOLD = args.conf
    if args.iou is not None:
        config.DEFAULT_IOU_THRESHOLD = args.iou


def main(argv=None):
    args = build_parser().parse_args(argv)

    # --- Step 1: Apply config overrides before anything reads them ---
    from yolo_overlay import config
    apply_overrides(config, args)

    # --- Step 2: Now that config.IS_DEBUG_MODE is set, setup logging ---
    from yolo_overlay.utils.logger_setup import setup_logging, log_debug
    setup_logging()
    log_debug(f"run_app.py: Application starting. interval={config.SAMPLING_INTERVAL_MS}ms "
              f"accelerator={config.ACCELERATOR} retention={config.FRAME_CACHE_RETENTION}")

    # --- Step 3: Proceed with UI imports and launch ---
    from yolo_overlay.ui.player_window import launch_app
    launch_app(video_path=args.video)


if __name__ == "__main__":
    main()
