from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .types import INDEX_TIP, THUMB_TIP, Corners, GestureState, HandObservation, Point

HAND_CONNECTIONS: List[Tuple[int, int]] = [
    # thumb
    (0, 1),
    (1, 2),
    (2, 3),
    (3, 4),
    # index
    (0, 5),
    (5, 6),
    (6, 7),
    (7, 8),
    # middle
    (5, 9),
    (9, 10),
    (10, 11),
    (11, 12),
    # ring
    (9, 13),
    (13, 14),
    (14, 15),
    (15, 16),
    # pinky
    (13, 17),
    (17, 18),
    (18, 19),
    (19, 20),
    # palm base
    (0, 17),
]

# BGR
STATE_COLORS = {
    GestureState.FORMING: (0, 0, 255),
    GestureState.HOLDING: (255, 255, 255),
    GestureState.READY: (94, 197, 34),
    GestureState.CAPTURING: (21, 204, 250),
}


def _px(p: Point, w: int, h: int) -> Tuple[int, int]:
    return (int(round(p[0] * w)), int(round(p[1] * h)))


def draw_text(frame, text: str, org: Tuple[int, int], color=(255, 255, 255), scale=0.6, thickness=2):
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, (0, 0, 0), thickness + 2, cv2.LINE_AA)
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)
    return frame


def draw_polyline(frame, points: Iterable[Tuple[int, int]], color=(255, 255, 0), thickness=2, closed=False):
    pts = np.array([(int(x), int(y)) for x, y in points], dtype=np.int32)
    if pts.shape[0] < 2:
        return frame
    cv2.polylines(frame, [pts], closed, color, thickness, cv2.LINE_AA)
    return frame


def draw_hands(frame, hands: Sequence[HandObservation], skeleton: bool = False):
    """Fingertip dots (index and thumb), optionally over the full hand skeleton."""
    h, w = frame.shape[:2]
    for hand in hands:
        if skeleton:
            for a, b in HAND_CONNECTIONS:
                pa, pb = hand.point(a), hand.point(b)
                if pa is not None and pb is not None:
                    cv2.line(frame, _px(pa, w, h), _px(pb, w, h), (0, 255, 255), 2, cv2.LINE_AA)
        for idx in (INDEX_TIP, THUMB_TIP):
            p = hand.point(idx)
            if p is not None:
                cv2.circle(frame, _px(p, w, h), 6, (136, 255, 0), -1, lineType=cv2.LINE_AA)
    return frame


def draw_frame(frame, corners: Optional[Corners], state: GestureState, outline: Optional[Sequence[Point]] = None):
    """The candidate frame, coloured by gesture state."""
    if corners is None and outline is None:
        return frame
    h, w = frame.shape[:2]
    color = STATE_COLORS.get(state, (255, 255, 255))
    points = outline if outline is not None else corners
    return draw_polyline(frame, (_px(p, w, h) for p in points), color=color, thickness=3, closed=True)


def apply_flash(frame, strength: float):
    """Blend towards white; strength in [0, 1]."""
    if strength <= 0:
        return frame
    white = np.full_like(frame, 255)
    return cv2.addWeighted(frame, 1.0 - strength, white, strength, 0)
