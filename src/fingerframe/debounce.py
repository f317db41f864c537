from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureToken:
    """Proof of holding the capture gate; one exists at a time."""

    seq: int
    acquired_at: float


class CaptureGate:
    """
    Single-flight gate for captures.

    A capture may start only while no token is out and more than
    ``min_interval_s`` has passed since the previous capture finished. A
    token held longer than ``stale_after_s`` is force-released so a hung
    export cannot block capture for good.
    """

    def __init__(self, min_interval_s: float, stale_after_s: Optional[float] = None) -> None:
        self.min_interval_s = min_interval_s
        self.stale_after_s = stale_after_s
        self._token: Optional[CaptureToken] = None
        self._last_completed: Optional[float] = None
        self._seq = 0

    @property
    def busy(self) -> bool:
        return self._token is not None

    @property
    def token(self) -> Optional[CaptureToken]:
        return self._token

    def is_stale(self, now: float) -> bool:
        if self._token is None or self.stale_after_s is None:
            return False
        return now - self._token.acquired_at >= self.stale_after_s

    def cooling_down(self, now: float) -> bool:
        if self._last_completed is None:
            return False
        return now - self._last_completed <= self.min_interval_s

    def try_acquire(self, now: float) -> Optional[CaptureToken]:
        if self._token is not None:
            if not self.is_stale(now):
                return None
            self.force_release(now)
        if self.cooling_down(now):
            return None
        self._seq += 1
        self._token = CaptureToken(seq=self._seq, acquired_at=now)
        return self._token

    def release(self, token: CaptureToken, now: float) -> bool:
        if self._token is None or token.seq != self._token.seq:
            logger.debug("Ignoring release of capture %d; gate holds %s", token.seq, self._token)
            return False
        self._token = None
        self._last_completed = now
        return True

    def force_release(self, now: float) -> Optional[CaptureToken]:
        token = self._token
        if token is None:
            return None
        logger.warning(
            "Capture %d held the gate for %.1fs; releasing it",
            token.seq,
            now - token.acquired_at,
        )
        self._token = None
        self._last_completed = now
        return token

    def reset(self) -> None:
        self._token = None
        self._last_completed = None
