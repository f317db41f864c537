"""
MediaPipe Hands wrapper producing ``HandObservation`` records.

Two backends are supported: the legacy ``mp.solutions.hands`` graph, and
the Tasks ``HandLandmarker`` for MediaPipe builds that no longer ship
``solutions``. The Tasks model file is downloaded on first use.
"""
from __future__ import annotations

import logging
import time
from typing import Iterable, List, Optional, Tuple

import cv2

from .config import DetectorConfig
from .model_assets import ensure_hand_landmarker_task
from .types import HandLandmark, HandObservation

logger = logging.getLogger(__name__)

# (landmarks, handedness label, handedness score) as the backends report them
RawHand = Tuple[Iterable[object], Optional[str], float]


class _SolutionsBackend:
    name = "solutions"

    def __init__(self, mp, static_image_mode: bool, max_num_hands: int, min_det: float, min_track: float) -> None:
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=static_image_mode,
            max_num_hands=max_num_hands,
            min_detection_confidence=min_det,
            min_tracking_confidence=min_track,
        )

    def detect(self, frame_rgb) -> List[RawHand]:
        results = self._hands.process(frame_rgb)
        found = results.multi_hand_landmarks or []
        labels = results.multi_handedness or []
        raw: List[RawHand] = []
        for i, hand in enumerate(found):
            label, score = None, 0.0
            if i < len(labels) and labels[i].classification:
                top = labels[i].classification[0]
                label, score = getattr(top, "label", None), float(getattr(top, "score", 0.0))
            raw.append((hand.landmark, label, score))
        return raw

    def close(self) -> None:
        self._hands.close()


class _TasksBackend:
    name = "tasks"

    def __init__(self, mp, model_path: str, max_num_hands: int, min_det: float, min_track: float) -> None:
        try:
            from mediapipe.tasks.python import BaseOptions  # type: ignore
            from mediapipe.tasks.python import vision  # type: ignore
        except ImportError:  # pragma: no cover
            from mediapipe.tasks import python as mp_python  # type: ignore

            BaseOptions = mp_python.BaseOptions
            vision = mp_python.vision

        options = vision.HandLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=ensure_hand_landmarker_task(model_path)),
            running_mode=vision.RunningMode.VIDEO,
            num_hands=max_num_hands,
            min_hand_detection_confidence=min_det,
            min_hand_presence_confidence=min_det,
            min_tracking_confidence=min_track,
        )
        self._mp = mp
        self._landmarker = vision.HandLandmarker.create_from_options(options)
        self._last_ms = -1

    def _timestamp_ms(self) -> int:
        # VIDEO mode rejects timestamps that do not increase.
        now = int(time.monotonic() * 1000)
        self._last_ms = max(now, self._last_ms + 1)
        return self._last_ms

    def detect(self, frame_rgb) -> List[RawHand]:
        image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=frame_rgb)
        result = self._landmarker.detect_for_video(image, self._timestamp_ms())
        labels = getattr(result, "handedness", None) or []
        raw: List[RawHand] = []
        for i, hand in enumerate(getattr(result, "hand_landmarks", None) or []):
            label, score = None, 0.0
            if i < len(labels) and labels[i]:
                top = labels[i][0]
                label = getattr(top, "category_name", None) or getattr(top, "display_name", None)
                score = float(getattr(top, "score", 0.0))
            raw.append((hand, label, score))
        return raw

    def close(self) -> None:
        self._landmarker.close()


class HandLandmarkDetector:
    """
    Hand landmark detector using MediaPipe Hands.

    Frames go in as **BGR** (OpenCV's default); ``detect`` returns one
    ``HandObservation`` per hand in normalized image coordinates.
    """

    def __init__(
        self,
        static_image_mode: bool = False,
        max_num_hands: int = 2,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        tasks_model_path: str = "models/hand_landmarker.task",
    ) -> None:
        import mediapipe as mp  # type: ignore

        if hasattr(mp, "solutions"):
            self._backend = _SolutionsBackend(
                mp, static_image_mode, max_num_hands, min_detection_confidence, min_tracking_confidence
            )
        else:
            logger.info("mediapipe has no `solutions` module; falling back to the Tasks HandLandmarker")
            try:
                self._backend = _TasksBackend(
                    mp, tasks_model_path, max_num_hands, min_detection_confidence, min_tracking_confidence
                )
            except RuntimeError:
                raise
            except Exception as e:  # pragma: no cover
                raise RuntimeError(
                    "Could not initialize MediaPipe Hands: this mediapipe build has no `mp.solutions` "
                    f"and the Tasks HandLandmarker failed to load {tasks_model_path!r}."
                ) from e
        logger.debug("Hand detector using the %s backend", self._backend.name)

    @classmethod
    def from_config(cls, cfg: DetectorConfig, static_image_mode: bool = False) -> "HandLandmarkDetector":
        return cls(
            static_image_mode=static_image_mode,
            max_num_hands=cfg.max_num_hands,
            min_detection_confidence=cfg.min_detection_confidence,
            min_tracking_confidence=cfg.min_tracking_confidence,
            tasks_model_path=cfg.model_path,
        )

    @property
    def backend(self) -> str:
        return self._backend.name

    def close(self) -> None:
        self._backend.close()

    def __enter__(self) -> "HandLandmarkDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def detect(self, frame_bgr) -> List[HandObservation]:
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        return [_observation(lms, label, score) for lms, label, score in self._backend.detect(frame_rgb)]


def _observation(landmarks, label: Optional[str], score: float) -> HandObservation:
    points = tuple(
        HandLandmark(idx=idx, x=float(lm.x), y=float(lm.y), z=float(getattr(lm, "z", 0.0)))
        for idx, lm in enumerate(landmarks)
    )
    return HandObservation(landmarks=points, handedness=label, confidence=score)
