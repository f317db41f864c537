from __future__ import annotations

import argparse
import os
import sys

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from fingerframe.candidates import make_builder  # noqa: E402
from fingerframe.config import DeviceClass, PipelineConfig, Policy  # noqa: E402
from fingerframe.crop import extract_region, project  # noqa: E402
from fingerframe.detector import HandLandmarkDetector  # noqa: E402
from fingerframe.pipeline import CROP_MODES  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="Crop a still photo to the frame made by two hands.")
    ap.add_argument("--image", required=True, help="Path to input image")
    ap.add_argument("--out", required=True, help="Path to output image (cropped)")
    ap.add_argument("--policy", default=Policy.DIRECT.value, choices=[p.value for p in Policy])
    ap.add_argument("--device", default=DeviceClass.FINE.value, choices=[d.value for d in DeviceClass])
    args = ap.parse_args()

    frame = cv2.imread(args.image)
    if frame is None:
        raise RuntimeError(f"Could not read image: {args.image}")
    h, w = frame.shape[:2]

    cfg = PipelineConfig(policy=Policy(args.policy), device=DeviceClass(args.device))
    cfg.validate()

    with HandLandmarkDetector(static_image_mode=True, max_num_hands=2) as detector:
        hands = detector.detect(frame)

    candidate = make_builder(cfg).build(hands)
    print(f"hands: {len(hands)} valid frame: {candidate.valid}")
    for i, hand in enumerate(hands):
        print(f"[{i}] {hand.handedness} score={hand.confidence:.2f} index_tip={hand.index_tip} thumb_tip={hand.thumb_tip}")

    if not candidate.valid:
        print("no valid frame; nothing written")
        return 1

    points = candidate.outline if candidate.outline is not None else tuple(candidate.corners)
    region = project(points, (w, h), CROP_MODES[cfg.policy])
    out = extract_region(frame, region)
    ok = cv2.imwrite(args.out, out)
    if not ok:
        raise RuntimeError(f"Could not write output image: {args.out}")

    print(f"{region.mode} crop {region.box} -> {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
