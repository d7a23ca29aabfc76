"""Desktop host: run a sketch in an OpenCV window.

    python -m posesketch.app.window --sketch hand --measure distance

`cv2.waitKey` is both the render cadence and the keyboard input: every tick reads
the newest frame, renders it from the detection cache and routes the key press
(if any) to the sketch.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any

import cv2

from posesketch.core.config.presets import SKETCHES
from posesketch.core.config.settings import SketchSettings, load_settings, settings_to_dict
from posesketch.core.detectors.factory import make_detector
from posesketch.core.interaction import KeyAction
from posesketch.core.sketch import Sketch
from posesketch.core.video_sources.base import open_source

logger = logging.getLogger(__name__)

# CLI flag -> settings field
_ARG_FIELDS = (
    "sketch",
    "camera_index",
    "video_path",
    "confidence_threshold",
    "model_name",
    "max_entities",
    "measure",
    "measure_from",
    "measure_to",
    "snapshot_dir",
    "target_fps",
)


def build_settings(args: argparse.Namespace) -> SketchSettings:
    """Merge CLI flags over the YAML/env settings."""

    patch: dict[str, Any] = {
        name: getattr(args, name) for name in _ARG_FIELDS if getattr(args, name, None) is not None
    }
    if getattr(args, "video_path", None):
        patch["video_source"] = "file"
    if getattr(args, "no_flip", False):
        patch["flip_video"] = False
    if getattr(args, "hide_video", False):
        patch["show_video"] = False
    return SketchSettings(**{**settings_to_dict(load_settings()), **patch})


def wait_delay_ms(target_fps: float) -> int:
    """Milliseconds to wait for a key between frames (at least 1)."""

    if target_fps <= 0:
        return 1
    return max(1, int(1000.0 / target_fps))


def run(args: argparse.Namespace) -> None:
    settings = build_settings(args)
    detector = None if args.no_detect else make_detector(SKETCHES[settings.sketch], settings)
    sketch = Sketch(settings, detector)
    source = open_source(settings)
    title = f"posesketch - {sketch.profile.label}"
    delay = wait_delay_ms(settings.target_fps)
    logger.info("Running sketch %s (threshold=%s)", settings.sketch, sketch.threshold)

    sketch.start()
    try:
        while True:
            canvas = sketch.tick(source.read())
            cv2.imshow(title, canvas)
            try:
                action = sketch.handle_key(cv2.waitKey(delay))
            except RuntimeError:
                logger.exception("Snapshot failed")
                continue
            if action is KeyAction.QUIT:
                break
    finally:
        sketch.stop()
        source.close()
        cv2.destroyAllWindows()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a pose/face/hand overlay sketch")
    parser.add_argument("--sketch", choices=sorted(SKETCHES), default=None)
    parser.add_argument("--camera-index", type=int, default=None)
    parser.add_argument("--video-path", default=None, help="Play a video file instead of the webcam")
    parser.add_argument("--confidence-threshold", type=float, default=None)
    parser.add_argument("--model-name", default=None, help="Ultralytics pose model")
    parser.add_argument("--max-entities", type=int, default=None)
    parser.add_argument("--measure", choices=["none", "distance", "angle"], default=None)
    parser.add_argument("--measure-from", default=None, help='e.g. "0:4" (hand 0, thumb tip)')
    parser.add_argument("--measure-to", default=None, help='e.g. "0:8" (hand 0, index tip)')
    parser.add_argument("--snapshot-dir", default=None)
    parser.add_argument("--target-fps", type=float, default=None)
    parser.add_argument("--no-flip", action="store_true", help="Do not mirror the video")
    parser.add_argument("--hide-video", action="store_true", help="Start with the video hidden")
    parser.add_argument(
        "--no-detect", action="store_true", help="Skip the model (video and toggles only)"
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


if __name__ == "__main__":
    cli_args = build_parser().parse_args()
    logging.basicConfig(
        level=getattr(logging, str(cli_args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    run(cli_args)
