from __future__ import annotations

import statistics
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional, Tuple


@dataclass(frozen=True)
class MetricsSummary:
    n: int
    average_fps: float
    average_inference_time: float


class FrameClock:
    """
    Instantaneous frame rate from the wall-clock gap between completed frames.
    A zero (or negative) gap reports 0 fps.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._last: Optional[float] = None

    def tick(self) -> float:
        now = self._clock()
        last, self._last = self._last, now
        if last is None:
            return 0.0
        dt = now - last
        if dt <= 0:
            return 0.0
        return 1.0 / dt


class RollingMetrics:
    """
    Last `window` (fps, inference_time) samples. Appends and reads are atomic.
    """

    def __init__(self, window: int = 30):
        if window <= 0:
            raise ValueError("window must be > 0")
        self.window = window
        self._samples: Deque[Tuple[float, float]] = deque(maxlen=window)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def append(self, fps: float, inference_time: float) -> MetricsSummary:
        with self._lock:
            self._samples.append((float(fps), float(inference_time)))
            return self._summary_locked()

    def summary(self) -> MetricsSummary:
        with self._lock:
            return self._summary_locked()

    def _summary_locked(self) -> MetricsSummary:
        if not self._samples:
            return MetricsSummary(n=0, average_fps=0.0, average_inference_time=0.0)
        return MetricsSummary(
            n=len(self._samples),
            average_fps=float(statistics.fmean(s[0] for s in self._samples)),
            average_inference_time=float(statistics.fmean(s[1] for s in self._samples)),
        )


def rate_fps(fps: float) -> str:
    if fps >= 30:
        return "excellent"
    if fps >= 24:
        return "good"
    if fps >= 15:
        return "fair"
    return "slow"


def rate_inference_time(seconds: float) -> str:
    # 33 ms ~ 30 fps, 66 ms ~ 15 fps
    if seconds < 0.033:
        return "fast"
    if seconds < 0.066:
        return "ok"
    return "slow"
