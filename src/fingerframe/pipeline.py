"""
Per-frame gesture pipeline.

    hands -> candidate builder -> corner smoother -> classifier
          -> (qualifying edge) capture gate -> crop projector -> CaptureEvent

The pipeline is ticked once per video frame from a single thread. It keeps
classifying while a capture is in flight, but never starts a second one.
"""
from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .candidates import make_builder, outline_for
from .classifiers import Classification, make_classifier
from .config import PipelineConfig, Policy
from .crop import BOX, POLYGON, project
from .debounce import CaptureGate, CaptureToken
from .smoothing import CornerSmoother
from .status import status_message
from .types import (
    CaptureEvent,
    Corners,
    FrameCandidate,
    FrameSize,
    GestureState,
    HandObservation,
    Pairing,
    Point,
    TickResult,
)

logger = logging.getLogger(__name__)

CROP_MODES = {
    Policy.PROXIMITY: BOX,
    Policy.DIRECT: POLYGON,
    Policy.CONTACT: POLYGON,
}


@runtime_checkable
class CaptureListener(Protocol):
    """Receives capture start/finish notifications (flash, haptics, sound)."""

    def capture_started(self, event: CaptureEvent) -> None:
        ...

    def capture_finished(self, event: CaptureEvent, ok: bool) -> None:
        ...


class GesturePipeline:
    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        listener: Optional[CaptureListener] = None,
    ) -> None:
        cfg = copy.deepcopy(config) if config is not None else PipelineConfig()
        cfg.validate()
        self.config = cfg
        self.policy = cfg.policy
        self.listener = listener

        self._builder = make_builder(cfg)
        self._smoother = CornerSmoother(cfg.history_size, clear_on_gap=cfg.clears_history_on_gap)
        self._classifier = make_classifier(cfg)
        self._gate = CaptureGate(cfg.debounce.min_interval_s, cfg.debounce.stale_after_s)
        self._crop_mode = CROP_MODES[cfg.policy]

        self._token: Optional[CaptureToken] = None
        self._in_flight: Optional[CaptureEvent] = None
        self.state = GestureState.NO_HANDS

    @property
    def capturing(self) -> bool:
        return self._in_flight is not None

    @property
    def in_flight(self) -> Optional[CaptureEvent]:
        return self._in_flight

    def tick(
        self,
        hands: Optional[Sequence[HandObservation]],
        now: float,
        frame_size: FrameSize,
        canvas_size: Optional[Tuple[float, float]] = None,
    ) -> TickResult:
        """
        Process one detector result.

        Args:
            hands: Hands detected this frame; None or empty means no hands.
            now: Monotonic timestamp in seconds.
            frame_size: Native (width, height) of the video frame, used for crops.
            canvas_size: (width, height) of the preview the user sees, used to
                measure instability in on-screen pixels. Defaults to frame_size.
        """
        hands = list(hands or [])
        canvas_w, canvas_h = canvas_size if canvas_size is not None else frame_size

        if self._in_flight is not None and self._gate.is_stale(now):
            self._abandon_capture(now)

        if len(hands) < 2:
            self._lose_hands()
            state = GestureState.NO_HANDS if not hands else GestureState.ONE_HAND
            return self._finish_tick(state, FrameCandidate.invalid(), None, None, len(hands), None)

        candidate = self._builder.build(hands)
        smoothed: Optional[Corners] = None
        instability: Optional[float] = None
        if candidate.valid and candidate.corners is not None:
            smoothed = self._smoother.push(candidate.corners)
            instability = self._smoother.instability(canvas_w, canvas_h)
        else:
            self._smoother.gap()

        corners = smoothed if smoothed is not None else candidate.corners
        result: Classification = self._classifier.update(candidate, corners, instability, now)

        capture = None
        if result.qualifying:
            capture = self._begin_capture(candidate, corners, now, frame_size, result.pairing)

        return self._finish_tick(
            result.state, candidate, corners, result.score, len(hands), capture, stable=result.stable
        )

    def _finish_tick(
        self,
        state: GestureState,
        candidate: FrameCandidate,
        corners: Optional[Corners],
        score: Optional[float],
        hands_count: int,
        capture: Optional[CaptureEvent],
        stable: bool = False,
    ) -> TickResult:
        if self._in_flight is not None:
            state = GestureState.CAPTURING
        if state is not self.state:
            logger.debug("Gesture state %s -> %s", self.state.value, state.value)
        self.state = state
        return TickResult(
            state=state,
            candidate=candidate,
            corners=corners,
            score=score,
            status=status_message(self.policy, state),
            hands_count=hands_count,
            capture=capture,
            stable=stable,
        )

    def _lose_hands(self) -> None:
        self._smoother.gap()
        self._builder.forget()
        self._classifier.reset()

    def _capture_points(
        self, candidate: FrameCandidate, corners: Optional[Corners], pairing: Optional[Pairing] = None
    ) -> Sequence[Point]:
        if self.policy is Policy.CONTACT and candidate.outline is not None:
            return outline_for(candidate, pairing)
        if corners is not None:
            return tuple(corners)
        return ()

    def _begin_capture(
        self,
        candidate: FrameCandidate,
        corners: Optional[Corners],
        now: float,
        frame_size: FrameSize,
        pairing: Optional[Pairing] = None,
    ) -> Optional[CaptureEvent]:
        token = self._gate.try_acquire(now)
        if token is None:
            reason = "capture in flight" if self._gate.busy else "cooling down"
            logger.info("Gesture qualified but capture suppressed (%s)", reason)
            return None

        points = tuple(self._capture_points(candidate, corners, pairing))
        region = project(points, frame_size, self._crop_mode)
        event = CaptureEvent(
            seq=token.seq,
            timestamp=now,
            region=region,
            normalized=points,
            frame_size=(int(frame_size[0]), int(frame_size[1])),
            policy=self.policy.value,
        )
        self._token = token
        self._in_flight = event
        logger.info(
            "Capture %d started: %s region %s%s",
            event.seq,
            region.mode,
            region.box,
            " (full frame)" if region.full_frame else "",
        )
        self._notify("capture_started", event)
        return event

    def finish_capture(self, event: CaptureEvent, now: float, ok: bool = True) -> bool:
        """
        Mark ``event``'s crop/export as done, successfully or not.

        Returns False when ``event`` is not the capture in flight (for example
        because it was already force-released as stale).
        """
        if self._in_flight is None or self._token is None or event.seq != self._in_flight.seq:
            logger.warning("Ignoring completion of capture %d; it is not in flight", event.seq)
            return False

        self._gate.release(self._token, now)
        self._token = None
        self._in_flight = None
        self._classifier.release()
        if ok:
            logger.info("Capture %d finished", event.seq)
        else:
            logger.warning("Capture %d failed; gate released", event.seq)
        self._notify("capture_finished", event, ok)
        return True

    @contextmanager
    def capturing_context(
        self, event: CaptureEvent, clock: Callable[[], float] = time.monotonic
    ) -> Iterator[CaptureEvent]:
        """Run a synchronous export; the gate is released even if it raises."""
        ok = False
        try:
            yield event
            ok = True
        finally:
            self.finish_capture(event, clock(), ok=ok)

    def _abandon_capture(self, now: float) -> None:
        event = self._in_flight
        self._gate.force_release(now)
        self._token = None
        self._in_flight = None
        self._classifier.release()
        if event is not None:
            self._notify("capture_finished", event, False)

    def _notify(self, method: str, *args) -> None:
        if self.listener is None:
            return
        try:
            getattr(self.listener, method)(*args)
        except Exception:
            logger.exception("Capture listener %s() failed", method)

    def reset(self) -> None:
        """Forget all gesture history; an in-flight capture stays in flight."""
        self._smoother.clear()
        self._builder.forget()
        self._classifier.reset()
        self.state = GestureState.CAPTURING if self._in_flight is not None else GestureState.NO_HANDS
