from __future__ import annotations

import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

import cv2
import numpy as np

from .crop import extract_region
from .pipeline import GesturePipeline
from .types import CaptureEvent

logger = logging.getLogger(__name__)

ExportFn = Callable[[CaptureEvent, np.ndarray], Any]


@dataclass(frozen=True)
class CaptureOutcome:
    event: CaptureEvent
    ok: bool
    result: Any = None
    error: Optional[BaseException] = None


class ImageExporter:
    """Crops the captured frame and writes it to ``directory``."""

    def __init__(self, directory: str = "captures", image_format: str = "png") -> None:
        self.directory = directory
        self.image_format = image_format.lstrip(".").lower()

    def path_for(self, event: CaptureEvent) -> str:
        stamp = time.strftime("%Y%m%d-%H%M%S")
        return os.path.join(self.directory, f"capture-{stamp}-{event.seq:04d}.{self.image_format}")

    def __call__(self, event: CaptureEvent, frame: np.ndarray) -> str:
        image = extract_region(frame, event.region)
        if image.ndim == 3 and image.shape[2] == 4 and self.image_format not in ("png", "webp", "tiff"):
            # Format has no alpha channel; flatten onto black.
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)

        os.makedirs(self.directory, exist_ok=True)
        path = self.path_for(event)
        ok = cv2.imwrite(path, image)
        if not ok:
            raise RuntimeError(f"Could not write capture image: {path}")
        return path


class CaptureWorker:
    """
    Runs crop/export jobs on a background thread, one at a time.

    ``poll()`` must be called from the thread that ticks the pipeline; it is
    where finished jobs are handed back, so the pipeline itself is never
    touched from the worker thread.
    """

    def __init__(
        self,
        pipeline: GesturePipeline,
        export: ExportFn,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pipeline = pipeline
        self.export = export
        self.clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture")
        self._jobs: List[Tuple[CaptureEvent, Future]] = []

    @property
    def pending(self) -> int:
        return len(self._jobs)

    def submit(self, event: CaptureEvent, frame: np.ndarray) -> Future:
        # The caller keeps reusing its frame buffer; export works on a copy.
        future = self._executor.submit(self.export, event, np.array(frame, copy=True))
        self._jobs.append((event, future))
        return future

    def poll(self) -> List[CaptureOutcome]:
        outcomes: List[CaptureOutcome] = []
        still_running: List[Tuple[CaptureEvent, Future]] = []
        for event, future in self._jobs:
            if not future.done():
                still_running.append((event, future))
                continue
            error = future.exception()
            if error is None:
                outcome = CaptureOutcome(event=event, ok=True, result=future.result())
                logger.info("Capture %d exported: %s", event.seq, outcome.result)
            else:
                outcome = CaptureOutcome(event=event, ok=False, error=error)
                logger.error("Capture %d export failed: %s", event.seq, error, exc_info=error)
            self.pipeline.finish_capture(event, self.clock(), ok=outcome.ok)
            outcomes.append(outcome)
        self._jobs = still_running
        return outcomes

    def close(self, wait: bool = True) -> List[CaptureOutcome]:
        self._executor.shutdown(wait=wait)
        return self.poll() if wait else []

    def __enter__(self) -> "CaptureWorker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
