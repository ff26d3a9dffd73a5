"""
Sliding window of recent latency samples, used for jitter.
"""

from collections import deque
from typing import List, Optional


class LatencyWindow:
    """Keeps the last maxlen latency samples."""

    def __init__(self, maxlen: int = 20):
        self.maxlen = maxlen
        self._samples: deque = deque(maxlen=maxlen)

    def add(self, latency_ms: float):
        """Add a latency value; non-positive values are fallbacks and skipped."""
        if latency_ms > 0:
            self._samples.append(latency_ms)

    def __len__(self) -> int:
        return len(self._samples)

    def samples(self) -> List[float]:
        return list(self._samples)

    def get_average(self) -> Optional[float]:
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    def get_jitter(self) -> float:
        """Mean absolute difference between consecutive samples."""
        if len(self._samples) < 2:
            return 0.0
        values = list(self._samples)
        diffs = [abs(b - a) for a, b in zip(values, values[1:])]
        return round(sum(diffs) / len(diffs), 1)

    def clear(self):
        self._samples.clear()
