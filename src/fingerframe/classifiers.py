"""
Gesture state classifiers.

A classifier turns the tick's candidate (plus the smoother's instability
metric) into a ``GestureState`` and says whether this tick is the
qualifying edge that should start a capture. Edges are one-shot: after a
classifier reports one it stays quiet until the user breaks the gesture.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import ContactConfig, DeviceClass, DirectConfig, PipelineConfig, Policy, ProximityConfig
from .types import Corners, FrameCandidate, GestureState, Pairing


@dataclass(frozen=True)
class Classification:
    state: GestureState
    qualifying: bool = False
    score: Optional[float] = None  # instability in px, or contact distance / threshold
    touching: bool = False
    stable: bool = False  # instability under the policy's stable_px
    pairing: Optional[Pairing] = None  # latched contact pair, if any


class GestureClassifier:
    def update(
        self,
        candidate: FrameCandidate,
        corners: Optional[Corners],
        instability: Optional[float],
        now: float,
    ) -> Classification:
        raise NotImplementedError

    def reset(self) -> None:
        """Hands left the view; drop all timers and latches."""
        raise NotImplementedError

    def release(self) -> None:
        """A capture finished; the next one needs a freshly established gesture."""
        raise NotImplementedError


class HoldClassifier(GestureClassifier):
    """Valid and steady for ``dwell_s`` makes the frame READY."""

    def __init__(self, cfg: ProximityConfig) -> None:
        self.cfg = cfg
        self._stable_since: Optional[float] = None
        self._spent = False

    def update(self, candidate, corners, instability, now) -> Classification:
        if not candidate.valid:
            self._stable_since = None
            self._spent = False
            return Classification(GestureState.FORMING)

        stable = instability is not None and instability < self.cfg.stable_px
        if not stable:
            self._stable_since = None
            self._spent = False
            return Classification(GestureState.HOLDING, score=instability, stable=False)

        if self._stable_since is None:
            self._stable_since = now
        if now - self._stable_since < self.cfg.dwell_s:
            return Classification(GestureState.HOLDING, score=instability, stable=True)

        qualifying = not self._spent
        self._spent = True
        return Classification(GestureState.READY, qualifying=qualifying, score=instability, stable=True)

    def reset(self) -> None:
        self._stable_since = None
        self._spent = False

    def release(self) -> None:
        self._stable_since = None


class TwitchDetector:
    """
    Detects a quick down-then-up flick of one index fingertip.

    ``y`` grows downwards. Idle moves to Down on a fast downward step; Down
    fires once the tip has travelled at least ``down_amp`` down and then
    ``up_amp`` back up, or gives up after ``window_s``.
    """

    IDLE = "idle"
    DOWN = "down"

    def __init__(self, window_s: float, down_amp: float, up_amp: float, inst_down_vel: float) -> None:
        self.window_s = window_s
        self.down_amp = down_amp
        self.up_amp = up_amp
        self.inst_down_vel = inst_down_vel
        self.reset()

    def reset(self) -> None:
        self.phase = self.IDLE
        self.start_y = 0.0
        self.down_y = 0.0
        self.has_down = False
        self.start_time = 0.0

    def update(self, y: float, prev_y: float, now: float) -> bool:
        if self.phase == self.IDLE:
            step = y - prev_y
            if step >= self.inst_down_vel:
                self.phase = self.DOWN
                self.start_y = prev_y
                self.down_y = y
                self.has_down = step >= self.down_amp
                self.start_time = now
            return False

        if now - self.start_time > self.window_s:
            self.phase = self.IDLE
            return False
        if y > self.down_y:
            self.down_y = y
        if not self.has_down and (self.down_y - self.start_y) >= self.down_amp:
            self.has_down = True
        if self.has_down and (self.down_y - y) >= self.up_amp:
            self.phase = self.IDLE
            return True
        return False


class TwitchClassifier(GestureClassifier):
    """
    Shutter "click" with either index finger along the top edge of the frame.

    Nothing can fire until ``arm_delay_s`` after two hands first formed a
    frame; during that time the baselines simply follow the fingers.

    Once armed, READY only means "armed with a valid frame": the click is
    the qualifying edge, and steadiness is not required for it. Whether the
    frame is steady (instability under ``stable_px``) is still reported in
    ``Classification.stable`` for the overlay.
    """

    def __init__(self, cfg: DirectConfig) -> None:
        self.cfg = cfg
        self.left = self._detector()
        self.right = self._detector()
        self._since: Optional[float] = None
        self._prev_left = 0.0
        self._prev_right = 0.0

    def _detector(self) -> TwitchDetector:
        return TwitchDetector(
            window_s=self.cfg.twitch_window_s,
            down_amp=self.cfg.down_amp,
            up_amp=self.cfg.up_amp,
            inst_down_vel=self.cfg.inst_down_vel,
        )

    def update(self, candidate, corners, instability, now) -> Classification:
        if corners is None:
            self.reset()
            return Classification(GestureState.FORMING)

        left_y = corners.top_left[1]
        right_y = corners.top_right[1]

        if self._since is None:
            self._since = now
            self._prev_left, self._prev_right = left_y, right_y
            self.left.reset()
            self.right.reset()

        stable = instability is not None and instability < self.cfg.stable_px
        if now - self._since < self.cfg.arm_delay_s:
            self._prev_left, self._prev_right = left_y, right_y
            state = GestureState.HOLDING if candidate.valid else GestureState.FORMING
            return Classification(state, score=instability, stable=stable)

        fired = False
        if candidate.valid:
            left_click = self.left.update(left_y, self._prev_left, now)
            right_click = self.right.update(right_y, self._prev_right, now)
            fired = left_click or right_click
        self._prev_left, self._prev_right = left_y, right_y

        state = GestureState.READY if candidate.valid else GestureState.FORMING
        return Classification(state, qualifying=fired, score=instability, stable=stable)

    def reset(self) -> None:
        self._since = None
        self.left.reset()
        self.right.reset()

    def release(self) -> None:
        self.left.reset()
        self.right.reset()


class ContactClassifier(GestureClassifier):
    """
    Touch fingertips together and hold.

    Touching latches on the contact threshold and only lets go once the
    engaged pair separates past the release threshold.
    """

    def __init__(self, cfg: ContactConfig, device: DeviceClass = DeviceClass.FINE) -> None:
        self.cfg = cfg
        self.hold_s = cfg.hold_s + (cfg.coarse_hold_extra_s if device is DeviceClass.COARSE else 0.0)
        self._engaged: Optional[Pairing] = None
        self._since: Optional[float] = None
        self._spent = False

    @property
    def touching(self) -> bool:
        return self._engaged is not None

    def update(self, candidate, corners, instability, now) -> Classification:
        contact = candidate.contact
        if contact is None or not contact.hands_valid:
            self.reset()
            return Classification(GestureState.FORMING)

        pairing = contact.touching_pairing()
        if pairing is not None:
            self._engaged = pairing
        elif self._engaged is not None and not contact.within_release(self._engaged):
            self._engaged = None

        if self._engaged is None:
            self._since = None
            self._spent = False
            return Classification(GestureState.FORMING)

        score = min(contact.distances(self._engaged)) / contact.contact_threshold
        if self._since is None:
            self._since = now
        if now - self._since < self.hold_s:
            return Classification(GestureState.HOLDING, score=score, touching=True, pairing=self._engaged)

        qualifying = not self._spent
        self._spent = True
        return Classification(
            GestureState.READY, qualifying=qualifying, score=score, touching=True, pairing=self._engaged
        )

    def reset(self) -> None:
        self._engaged = None
        self._since = None
        self._spent = False

    def release(self) -> None:
        self._since = None


def make_classifier(cfg: PipelineConfig) -> GestureClassifier:
    if cfg.policy is Policy.PROXIMITY:
        return HoldClassifier(cfg.proximity)
    if cfg.policy is Policy.DIRECT:
        return TwitchClassifier(cfg.direct)
    return ContactClassifier(cfg.contact, cfg.device)
