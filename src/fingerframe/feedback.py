from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import numpy as np
import sounddevice as sd

from .types import CaptureEvent


def shutter_click(sample_rate: int, duration_s: float = 0.09) -> np.ndarray:
    """Short mechanical-sounding click: a noise burst over a quick low thump."""
    n = max(1, int(sample_rate * duration_s))
    t = np.arange(n) / float(sample_rate)
    rng = np.random.default_rng(7)
    noise = rng.standard_normal(n) * np.exp(-t / 0.008)
    thump = np.sin(2 * np.pi * 180.0 * t) * np.exp(-t / 0.03)
    click = 0.6 * noise + 0.4 * thump
    peak = float(np.max(np.abs(click))) or 1.0
    return (click / peak).astype(np.float32)


class ShutterSound:
    """
    Plays a shutter click when a capture starts.

    Keeps one output stream open and mixes the click in from the audio
    callback, so triggering never blocks the frame loop.
    """

    def __init__(self, sample_rate: int = 44100, volume: float = 0.8) -> None:
        self.sample_rate = sample_rate
        self.volume = max(0.0, min(1.0, volume))
        self._click = shutter_click(sample_rate)

        self._stream: Optional[sd.OutputStream] = None
        self._lock = threading.Lock()
        self._pos: Optional[int] = None  # playback position in the click, None when silent

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=1,
            callback=self._audio_callback,
            blocksize=512,
        )
        self._stream.start()

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    def trigger(self) -> None:
        with self._lock:
            self._pos = 0

    def _audio_callback(self, outdata, frames, time_info, status) -> None:
        with self._lock:
            outdata[:] = 0
            if self._pos is None:
                return
            chunk = self._click[self._pos : self._pos + frames]
            outdata[: chunk.size, 0] = chunk * self.volume
            self._pos += frames
            if self._pos >= self._click.size:
                self._pos = None

    def __enter__(self) -> "ShutterSound":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


class CaptureFeedback:
    """
    Capture listener driving the shutter sound and a short screen flash.

    ``flash_strength()`` is polled by the render loop.
    """

    def __init__(
        self,
        sound: Optional[ShutterSound] = None,
        flash_s: float = 0.12,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sound = sound
        self.flash_s = flash_s
        self.clock = clock
        self._flash_until = 0.0
        self.captures = 0
        self.failures = 0

    def capture_started(self, event: CaptureEvent) -> None:
        self._flash_until = self.clock() + self.flash_s
        if self.sound is not None:
            self.sound.trigger()

    def capture_finished(self, event: CaptureEvent, ok: bool) -> None:
        if ok:
            self.captures += 1
        else:
            self.failures += 1

    def flash_strength(self) -> float:
        remaining = self._flash_until - self.clock()
        if remaining <= 0 or self.flash_s <= 0:
            return 0.0
        return 0.8 * remaining / self.flash_s
