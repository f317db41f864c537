"""
Map normalized frame geometry onto pixels of a native video frame.

The projection functions know nothing about gestures; they take points and a
frame size and always return a usable region, falling back to the full
frame when the geometry collapses.
"""
from __future__ import annotations

import math
from typing import List, Sequence

import cv2
import numpy as np

from .types import CropRegion, FrameSize, PixelPoint, Point
from .utils import clamp_int

BOX = "box"
POLYGON = "polygon"


def _scaled(v: float, size: int) -> float:
    # 0.7 * 1000 is 700.0000000000001; don't let that cost a pixel in ceil().
    return round(v * size, 6)


def full_frame(width: int, height: int, mode: str = BOX) -> CropRegion:
    polygon = ((0, 0), (width, 0), (width, height), (0, height))
    return CropRegion(mode=mode, box=(0, 0, width, height), polygon=polygon, full_frame=True)


def _finite(points: Sequence[Point]) -> bool:
    return all(math.isfinite(p[0]) and math.isfinite(p[1]) for p in points)


def _pixel_box(points: Sequence[Point], width: int, height: int):
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    x0 = clamp_int(math.floor(_scaled(min(xs), width)), 0, width)
    y0 = clamp_int(math.floor(_scaled(min(ys), height)), 0, height)
    x1 = clamp_int(math.ceil(_scaled(max(xs), width)), 0, width)
    y1 = clamp_int(math.ceil(_scaled(max(ys), height)), 0, height)
    return x0, y0, x1, y1


def project_box(points: Sequence[Point], frame_size: FrameSize) -> CropRegion:
    """Axis-aligned bounding box of ``points`` in pixels, clamped to the frame."""
    width, height = frame_size
    if not points or not _finite(points):
        return full_frame(width, height, BOX)

    x0, y0, x1, y1 = _pixel_box(points, width, height)
    if x1 - x0 <= 0 or y1 - y0 <= 0:
        return full_frame(width, height, BOX)
    polygon = ((x0, y0), (x1, y0), (x1, y1), (x0, y1))
    return CropRegion(mode=BOX, box=(x0, y0, x1, y1), polygon=polygon)


def project_polygon(points: Sequence[Point], frame_size: FrameSize) -> CropRegion:
    """Every point scaled to pixels in order, for clipped extraction."""
    width, height = frame_size
    if len(points) < 3 or not _finite(points):
        return full_frame(width, height, POLYGON)

    x0, y0, x1, y1 = _pixel_box(points, width, height)
    if x1 - x0 <= 0 or y1 - y0 <= 0:
        return full_frame(width, height, POLYGON)

    polygon: List[PixelPoint] = []
    for x, y in points:
        px = clamp_int(int(round(_scaled(x, width))), 0, width)
        py = clamp_int(int(round(_scaled(y, height))), 0, height)
        polygon.append((px, py))
    return CropRegion(mode=POLYGON, box=(x0, y0, x1, y1), polygon=tuple(polygon))


def project(points: Sequence[Point], frame_size: FrameSize, mode: str = BOX) -> CropRegion:
    if mode == BOX:
        return project_box(points, frame_size)
    if mode == POLYGON:
        return project_polygon(points, frame_size)
    raise ValueError(f"Unknown crop mode {mode!r}; expected {BOX!r} or {POLYGON!r}")


def extract_region(frame: np.ndarray, region: CropRegion) -> np.ndarray:
    """
    Cut ``region`` out of a BGR frame.

    Box regions come back as a BGR copy. Polygon regions come back as BGRA
    with everything outside the polygon fully transparent.
    """
    x0, y0, x1, y1 = region.box
    crop = frame[y0:y1, x0:x1].copy()
    if region.mode != POLYGON or region.full_frame:
        return crop

    if crop.ndim == 2:
        out = cv2.cvtColor(crop, cv2.COLOR_GRAY2BGRA)
    else:
        out = cv2.cvtColor(crop, cv2.COLOR_BGR2BGRA)

    mask = np.zeros(out.shape[:2], dtype=np.uint8)
    pts = np.array([(x - x0, y - y0) for x, y in region.polygon], dtype=np.int32)
    cv2.fillPoly(mask, [pts], 255)
    out[:, :, 3] = mask
    return out
