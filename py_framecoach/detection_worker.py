"""Background 2D person detection.

Detection is the only expensive step in the frame loop, so it runs on an
executor and is throttled. The engine polls for finished results and never
waits on a pending job.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from py_framecoach.bounds_fusion import Detection2D
from py_framecoach.geometry import CameraPose

LOGGER = logging.getLogger(__name__)

Detector = Callable[[Any, CameraPose], Sequence[Detection2D]]


@dataclass(frozen=True)
class DetectionBatch:
    """Detections for one image, with the camera pose it was captured at."""

    timestamp: float
    camera: CameraPose
    detections: List[Detection2D] = field(default_factory=list)

    def age(self, now: float) -> float:
        return now - self.timestamp


class DetectionWorker:
    """Runs ``detector`` at most once per ``interval_s`` with one job in flight."""

    def __init__(
        self,
        detector: Detector,
        interval_s: float = 0.5,
        executor: Executor | None = None,
    ) -> None:
        self.detector = detector
        self.interval_s = interval_s
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="framecoach-detect")
        self._lock = threading.Lock()
        self._pending: Optional[Future] = None
        self._pending_meta: Optional[tuple[float, CameraPose]] = None
        self._last_submit: Optional[float] = None
        self._latest: Optional[DetectionBatch] = None
        self._closed = False

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._pending is not None and not self._pending.done()

    def maybe_submit(self, image: Any, camera: CameraPose, timestamp: float) -> bool:
        """Submit a detection job if none is running and the interval has elapsed."""
        with self._lock:
            if self._closed or self._pending is not None:
                return False
            if self._last_submit is not None and timestamp - self._last_submit < self.interval_s:
                return False
            self._pending = self._executor.submit(self.detector, image, camera)
            self._pending_meta = (timestamp, camera)
            self._last_submit = timestamp
        LOGGER.debug(f"Submitted detection job at t={timestamp:.3f}")
        return True

    def poll(self) -> Optional[DetectionBatch]:
        """Collect a finished job, if any, and return the newest batch."""
        with self._lock:
            future = self._pending
            if future is None or not future.done():
                return self._latest
            timestamp, camera = self._pending_meta  # type: ignore[misc]
            self._pending = None
            self._pending_meta = None
            try:
                detections = list(future.result())
            except Exception as exc:
                LOGGER.warning(f"Detector failed at t={timestamp:.3f}: {exc}")
                return self._latest
            self._latest = DetectionBatch(timestamp=timestamp, camera=camera, detections=detections)
            LOGGER.debug(f"Detection batch at t={timestamp:.3f}: {len(detections)} detection(s)")
            return self._latest

    def latest(self, now: float, max_age_s: float) -> Optional[DetectionBatch]:
        with self._lock:
            batch = self._latest
        if batch is None or batch.age(now) > max_age_s:
            return None
        return batch

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
            pending = self._pending
        if pending is not None and not wait:
            pending.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)


__all__ = ["Detector", "DetectionBatch", "DetectionWorker"]
