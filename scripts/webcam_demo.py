from __future__ import annotations

import argparse
import logging
import os
import platform
import sys
import time

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from fingerframe.config import DeviceClass, Policy, load_config  # noqa: E402
from fingerframe.detector import HandLandmarkDetector  # noqa: E402
from fingerframe.drawing import apply_flash, draw_frame, draw_hands, draw_text  # noqa: E402
from fingerframe.export import CaptureWorker, ImageExporter  # noqa: E402
from fingerframe.feedback import CaptureFeedback, ShutterSound  # noqa: E402
from fingerframe.pipeline import GesturePipeline  # noqa: E402

DEFAULT_CONFIG = os.path.join(REPO_ROOT, "config.default.yaml")


def main() -> int:
    ap = argparse.ArgumentParser(description="Frame a photo with your fingers; capture by gesture.")
    ap.add_argument("--config", default=None, help="YAML config file (default: config.default.yaml if present)")
    ap.add_argument("--policy", choices=[p.value for p in Policy], help="Recognition policy override")
    ap.add_argument("--device", choices=[d.value for d in DeviceClass], help="Device class override")
    ap.add_argument("--camera", type=int, default=None, help="Camera index override")
    ap.add_argument("--out", default=None, help="Directory for captured images")
    ap.add_argument("--no-mirror", action="store_true", help="Disable horizontal mirroring (selfie mode)")
    ap.add_argument("--no-sound", action="store_true", help="Disable the shutter sound")
    ap.add_argument("--skeleton", action="store_true", help="Draw the full hand skeleton")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config_path = args.config or (DEFAULT_CONFIG if os.path.exists(DEFAULT_CONFIG) else None)
    cfg = load_config(config_path)
    if args.policy:
        cfg.pipeline.policy = Policy(args.policy)
    if args.device:
        cfg.pipeline.device = DeviceClass(args.device)
    if args.camera is not None:
        cfg.camera.index = args.camera
    if args.out:
        cfg.output.directory = args.out
    mirror = cfg.camera.mirror and not args.no_mirror

    if platform.system() == "Darwin":
        cap = cv2.VideoCapture(cfg.camera.index, cv2.CAP_AVFOUNDATION)
    else:
        cap = cv2.VideoCapture(cfg.camera.index)
    if not cap.isOpened():
        raise RuntimeError(
            f"Could not open camera index {cfg.camera.index}. "
            "On macOS: System Settings -> Privacy & Security -> Camera -> allow your terminal."
        )

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, cfg.camera.width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg.camera.height)

    sound = None if args.no_sound else ShutterSound()
    feedback = CaptureFeedback(sound=sound)
    pipeline = GesturePipeline(cfg.pipeline, listener=feedback)
    exporter = ImageExporter(cfg.output.directory, cfg.output.image_format)

    try:
        if sound is not None:
            sound.start()
        with HandLandmarkDetector.from_config(cfg.detector) as detector, CaptureWorker(pipeline, exporter) as worker:
            while True:
                ok, frame = cap.read()
                if not ok:
                    break

                if mirror:
                    frame = cv2.flip(frame, 1)

                h, w = frame.shape[:2]
                hands = detector.detect(frame)
                result = pipeline.tick(hands, time.monotonic(), (w, h))
                if result.capture is not None:
                    worker.submit(result.capture, frame)
                for outcome in worker.poll():
                    if outcome.ok:
                        print(f"saved {outcome.result}")

                view = frame.copy()
                draw_hands(view, hands, skeleton=args.skeleton)
                draw_frame(view, result.corners, result.state, result.candidate.outline)
                view = apply_flash(view, feedback.flash_strength())
                draw_text(view, result.status, (12, 28), scale=0.8)
                draw_text(
                    view,
                    f"{pipeline.policy.value}{' | steady' if result.stable else ''} | captures: {feedback.captures} | press q to quit",
                    (12, h - 14),
                    scale=0.5,
                    thickness=1,
                )

                cv2.imshow("fingerframe", view)
                key = cv2.waitKey(1) & 0xFF
                if key in (ord("q"), 27):
                    break
    finally:
        if sound is not None:
            sound.stop()
        cap.release()
        cv2.destroyAllWindows()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
