"""
Frame candidate builders.

Each builder looks at the two hands of one tick and decides whether their
index and thumb tips describe a frame. All geometry is in normalized
detector coordinates.
"""
from __future__ import annotations

from typing import List, NamedTuple, Optional, Sequence, Tuple

from .config import ContactConfig, DeviceClass, DirectConfig, PipelineConfig, Policy, ProximityConfig
from .types import (
    FINGER_OUTLINE,
    ContactMeasurement,
    Corners,
    FrameCandidate,
    HandObservation,
    Pairing,
    Point,
)
from .utils import bbox_from_points, clamp, distance, midpoint


class HandTips(NamedTuple):
    hand: HandObservation
    index: Point
    thumb: Point


def order_hands(hands: Sequence[HandObservation]) -> Optional[Tuple[HandTips, HandTips]]:
    """
    Pick out the visual left and right hand.

    Returns None unless exactly two hands were detected and both expose an
    index tip and a thumb tip. Hands are ordered by index tip x, not by the
    detector's handedness label, so crossing hands never flip the frame.
    """
    if len(hands) != 2:
        return None

    tips: List[HandTips] = []
    for hand in hands:
        index = hand.index_tip
        thumb = hand.thumb_tip
        if index is None or thumb is None:
            continue
        tips.append(HandTips(hand=hand, index=index, thumb=thumb))
    if len(tips) != 2:
        return None

    tips.sort(key=lambda t: (t.index[0], t.index[1], t.thumb[0], t.thumb[1]))
    return tips[0], tips[1]


class FrameBuilder:
    """Base class for the per-policy candidate builders."""

    def build(self, hands: Sequence[HandObservation]) -> FrameCandidate:
        raise NotImplementedError

    def forget(self) -> None:
        """Called when two hands are no longer in view."""


class ProximityRectangleBuilder(FrameBuilder):
    """
    Fingertips from the two hands meet at two opposite corners.

    Either index-index plus thumb-thumb, or index-thumb plus thumb-index, must
    both be closer than the contact threshold. The frame is the axis-aligned
    box spanned by the midpoints of the two contacts.
    """

    def __init__(self, cfg: ProximityConfig) -> None:
        self.cfg = cfg

    def build(self, hands: Sequence[HandObservation]) -> FrameCandidate:
        pair = order_hands(hands)
        if pair is None:
            return FrameCandidate.invalid()
        left, right = pair
        li, lt, ri, rt = left.index, left.thumb, right.index, right.thumb
        t = self.cfg.contact_threshold

        same_ok = distance(li, ri) < t and distance(lt, rt) < t
        cross_ok = distance(li, rt) < t and distance(lt, ri) < t
        if not same_ok and not cross_ok:
            return FrameCandidate.invalid()

        if same_ok:
            c1, c2 = midpoint(li, ri), midpoint(lt, rt)
        else:
            c1, c2 = midpoint(li, rt), midpoint(lt, ri)

        x0, y0, x1, y1 = bbox_from_points([c1, c2])
        if (x1 - x0) <= self.cfg.min_size or (y1 - y0) <= self.cfg.min_size:
            return FrameCandidate.invalid()

        corners = Corners(
            top_left=(x0, y0),
            top_right=(x1, y0),
            bottom_right=(x1, y1),
            bottom_left=(x0, y1),
        )
        return FrameCandidate(valid=True, corners=corners)


class DirectConnectBuilder(FrameBuilder):
    """The four tips are the frame: left index, right index, right thumb, left thumb."""

    def __init__(self, cfg: DirectConfig) -> None:
        self.cfg = cfg

    def build(self, hands: Sequence[HandObservation]) -> FrameCandidate:
        pair = order_hands(hands)
        if pair is None:
            return FrameCandidate.invalid()
        left, right = pair
        li, lt, ri, rt = left.index, left.thumb, right.index, right.thumb

        width = abs(ri[0] - li[0])
        top = min(li[1], ri[1])
        bottom = max(lt[1], rt[1])
        height = max(0.0, bottom - top)

        corners = Corners(top_left=li, top_right=ri, bottom_right=rt, bottom_left=lt)
        valid = width > self.cfg.min_size and height > self.cfg.min_size
        return FrameCandidate(valid=valid, corners=corners)


class JitterTracker:
    """Exponential moving average of per-frame fingertip displacement."""

    def __init__(self, alpha: float) -> None:
        self.alpha = alpha
        self.value = 0.0
        self._prev: Optional[Tuple[Point, ...]] = None

    def update(self, tips: Sequence[Point]) -> float:
        frame_jitter = 0.0
        if self._prev is not None:
            moves = [distance(p, q) for p, q in zip(tips, self._prev)]
            frame_jitter = sum(moves) / len(moves)
        self.value += (frame_jitter - self.value) * self.alpha
        self._prev = tuple(tips)
        return self.value

    def forget(self) -> None:
        self._prev = None

    def reset(self) -> None:
        self.value = 0.0
        self._prev = None


class AdaptiveContactBuilder(FrameBuilder):
    """
    Fingertip contact with a threshold that adapts to the user.

    The contact threshold grows with hand size (index-to-thumb span) and with
    measured detector jitter, and is boosted on coarse-pointer devices where
    hands are usually closer to the camera.
    """

    def __init__(self, cfg: ContactConfig, device: DeviceClass = DeviceClass.FINE) -> None:
        self.cfg = cfg
        self.coarse = device is DeviceClass.COARSE
        self.jitter = JitterTracker(cfg.jitter_alpha)

    def forget(self) -> None:
        self.jitter.forget()

    def build(self, hands: Sequence[HandObservation]) -> FrameCandidate:
        pair = order_hands(hands)
        if pair is None:
            self.jitter.forget()
            return FrameCandidate.invalid()
        left, right = pair
        li, lt, ri, rt = left.index, left.thumb, right.index, right.thumb
        cfg = self.cfg

        span_l = distance(li, lt)
        span_r = distance(ri, rt)
        hands_valid = span_l > cfg.min_span and span_r > cfg.min_span

        jitter = self.jitter.update((li, lt, ri, rt))
        boost = cfg.coarse_boost if self.coarse else 1.0
        base = (span_l + span_r) / 2.0 * cfg.scale * boost
        threshold = clamp(base + jitter * cfg.jitter_gain, cfg.min_threshold, cfg.max_threshold)

        contact = ContactMeasurement(
            same_index=distance(li, ri),
            same_thumb=distance(lt, rt),
            cross_index_thumb=distance(li, rt),
            cross_thumb_index=distance(lt, ri),
            contact_threshold=threshold,
            release_threshold=threshold * cfg.release_mult,
            hands_valid=hands_valid,
            allow_single=self.coarse,
        )
        pairing = contact.touching_pairing()
        corners = Corners(top_left=li, top_right=ri, bottom_right=rt, bottom_left=lt)
        outline = _finger_outline(left.hand, right.hand, reverse_right=pairing is not Pairing.CROSS)
        return FrameCandidate(valid=pairing is not None, corners=corners, outline=outline, contact=contact)


def _finger_outline(
    left: HandObservation, right: HandObservation, reverse_right: bool
) -> Optional[Tuple[Point, ...]]:
    lpts = [left.point(i) for i in FINGER_OUTLINE]
    rpts = [right.point(i) for i in FINGER_OUTLINE]
    if any(p is None for p in lpts) or any(p is None for p in rpts):
        return None
    # With tips touching same-to-same the right path runs thumb to index to close the loop.
    if reverse_right:
        rpts.reverse()
    return tuple(lpts + rpts)  # type: ignore[arg-type]


def outline_for(candidate: FrameCandidate, pairing: Optional[Pairing]) -> Optional[Tuple[Point, ...]]:
    """
    Contact outline wound for ``pairing``.

    The builder winds the outline from the pair touching on this tick. Inside
    the release band no pair is touching, so the latched pair decides; the
    right half is flipped when the two disagree.
    """
    outline = candidate.outline
    if outline is None or candidate.contact is None or pairing is None:
        return outline
    built_cross = candidate.contact.touching_pairing() is Pairing.CROSS
    if built_cross == (pairing is Pairing.CROSS):
        return outline
    half = len(FINGER_OUTLINE)
    return outline[:half] + outline[half:][::-1]


def make_builder(cfg: PipelineConfig) -> FrameBuilder:
    if cfg.policy is Policy.PROXIMITY:
        return ProximityRectangleBuilder(cfg.proximity)
    if cfg.policy is Policy.DIRECT:
        return DirectConnectBuilder(cfg.direct)
    return AdaptiveContactBuilder(cfg.contact, cfg.device)
