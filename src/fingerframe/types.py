from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Sequence, Tuple


Point = Tuple[float, float]  # normalized, both axes in [0, 1]
PixelPoint = Tuple[int, int]
Box2 = Tuple[int, int, int, int]  # (x_min, y_min, x_max, y_max)
FrameSize = Tuple[int, int]  # (width, height)

# MediaPipe hand landmark indices.
THUMB_TIP = 4
INDEX_TIP = 8
# Index tip down the index finger, across to the thumb, up to the thumb tip.
FINGER_OUTLINE: Tuple[int, ...] = (8, 7, 6, 5, 2, 3, 4)


@dataclass(frozen=True)
class HandLandmark:
    """A single hand landmark in normalized detector coordinates."""

    idx: int
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class HandObservation:
    """One hand as reported by the detector for a single frame."""

    landmarks: Sequence[Optional[HandLandmark]]  # 21 for MediaPipe, entries may be missing
    handedness: Optional[str] = None  # "Left" / "Right"
    confidence: float = 0.0

    @classmethod
    def from_points(
        cls,
        points: Sequence[Optional[Sequence[float]]],
        handedness: Optional[str] = None,
        confidence: float = 0.0,
    ) -> "HandObservation":
        landmarks = []
        for idx, p in enumerate(points):
            if p is None:
                landmarks.append(None)
                continue
            z = float(p[2]) if len(p) > 2 else 0.0
            landmarks.append(HandLandmark(idx=idx, x=float(p[0]), y=float(p[1]), z=z))
        return cls(landmarks=tuple(landmarks), handedness=handedness, confidence=confidence)

    def point(self, idx: int) -> Optional[Point]:
        if idx < 0 or idx >= len(self.landmarks):
            return None
        lm = self.landmarks[idx]
        if lm is None or not (math.isfinite(lm.x) and math.isfinite(lm.y)):
            return None
        return (lm.x, lm.y)

    @property
    def index_tip(self) -> Optional[Point]:
        return self.point(INDEX_TIP)

    @property
    def thumb_tip(self) -> Optional[Point]:
        return self.point(THUMB_TIP)


class Corners(NamedTuple):
    """Quadrilateral frame corners, in drawing order."""

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point


class Pairing(str, Enum):
    """Which fingertip pairs are in contact."""

    SAME = "same"  # index-index and thumb-thumb
    CROSS = "cross"  # index-thumb and thumb-index
    INDEX = "index"  # index-index only (coarse pointer devices)
    THUMB = "thumb"  # thumb-thumb only (coarse pointer devices)


@dataclass(frozen=True)
class ContactMeasurement:
    """Fingertip distances and adaptive thresholds for one tick."""

    same_index: float
    same_thumb: float
    cross_index_thumb: float
    cross_thumb_index: float
    contact_threshold: float
    release_threshold: float
    hands_valid: bool
    allow_single: bool = False

    def distances(self, pairing: Pairing) -> Tuple[float, ...]:
        if pairing is Pairing.SAME:
            return (self.same_index, self.same_thumb)
        if pairing is Pairing.CROSS:
            return (self.cross_index_thumb, self.cross_thumb_index)
        if pairing is Pairing.INDEX:
            return (self.same_index,)
        return (self.same_thumb,)

    def qualifies(self, pairing: Pairing) -> bool:
        return all(d < self.contact_threshold for d in self.distances(pairing))

    def within_release(self, pairing: Pairing) -> bool:
        return all(d <= self.release_threshold for d in self.distances(pairing))

    def touching_pairing(self) -> Optional[Pairing]:
        """Best pairing under the contact threshold, or None."""
        if not self.hands_valid:
            return None
        candidates = [Pairing.SAME, Pairing.CROSS]
        if self.allow_single:
            candidates += [Pairing.INDEX, Pairing.THUMB]
        for pairing in candidates:
            if self.qualifies(pairing):
                return pairing
        return None

    @property
    def touching_now(self) -> bool:
        return self.touching_pairing() is not None


@dataclass(frozen=True)
class FrameCandidate:
    valid: bool
    corners: Optional[Corners] = None
    outline: Optional[Tuple[Point, ...]] = None
    contact: Optional[ContactMeasurement] = None

    @classmethod
    def invalid(cls) -> "FrameCandidate":
        return cls(valid=False)


class GestureState(str, Enum):
    NO_HANDS = "no_hands"
    ONE_HAND = "one_hand"
    FORMING = "forming"  # two hands, invalid geometry
    HOLDING = "holding"  # valid, not yet stable / touching long enough
    READY = "ready"
    CAPTURING = "capturing"


@dataclass(frozen=True)
class CropRegion:
    """Pixel-space region to extract from a frame of the declared size."""

    mode: str  # "box" or "polygon"
    box: Box2
    polygon: Tuple[PixelPoint, ...]
    full_frame: bool = False

    @property
    def width(self) -> int:
        return self.box[2] - self.box[0]

    @property
    def height(self) -> int:
        return self.box[3] - self.box[1]


@dataclass(frozen=True)
class CaptureEvent:
    seq: int
    timestamp: float  # monotonic seconds
    region: CropRegion
    normalized: Tuple[Point, ...]
    frame_size: FrameSize
    policy: str


@dataclass(frozen=True)
class TickResult:
    """Everything the UI needs from one pipeline tick."""

    state: GestureState
    candidate: FrameCandidate
    corners: Optional[Corners]  # smoothed when valid, raw candidate corners otherwise
    score: Optional[float]
    status: str
    hands_count: int
    capture: Optional[CaptureEvent] = None
    stable: bool = False  # steady enough by the policy's stable_px
