from __future__ import annotations

from typing import List, Optional

from pathmon.models import ABSENT, Present, Sample

RECENT_WINDOW = 10
RECENT_ALPHA = 0.2


class MetricHistory:
    """
    Fixed-capacity ring of latency samples for one probe target.

    Writes overwrite the oldest slot once the ring is full. All statistics
    degrade to None (or 0 for loss) when there is not enough data.
    """

    def __init__(self, capacity: int = 60) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._buffer: List[Sample] = [ABSENT] * capacity
        self._index = 0
        self._full = False

    def add(self, sample: Sample) -> None:
        self._buffer[self._index] = sample
        self._index = (self._index + 1) % self.capacity
        if self._index == 0:
            self._full = True

    def values(self) -> List[Sample]:
        if self._full:
            return self._buffer[self._index:] + self._buffer[: self._index]
        return self._buffer[: self._index]

    def present_values(self) -> List[float]:
        return [s.latency_ms for s in self.values() if isinstance(s, Present)]

    def __len__(self) -> int:
        return self.capacity if self._full else self._index

    def latest(self) -> Optional[Sample]:
        if not self._full and self._index == 0:
            return None
        return self._buffer[self._index - 1]

    def average(self) -> Optional[float]:
        vals = self.present_values()
        if not vals:
            return None
        return sum(vals) / len(vals)

    def jitter(self) -> Optional[float]:
        """Mean absolute deviation from the average."""
        vals = self.present_values()
        if len(vals) < 2:
            return None
        avg = sum(vals) / len(vals)
        return sum(abs(v - avg) for v in vals) / len(vals)

    def loss_percentage(self) -> float:
        total = len(self)
        if total == 0:
            return 0.0
        lost = sum(1 for s in self.values() if not isinstance(s, Present))
        return lost / total * 100

    def recent_weighted_average(self) -> Optional[float]:
        """
        EWMA over the trailing window, seeded by the first present sample.
        Absent samples are skipped.
        """
        ewma: Optional[float] = None
        for sample in self.values()[-RECENT_WINDOW:]:
            if not isinstance(sample, Present):
                continue
            if ewma is None:
                ewma = sample.latency_ms
            else:
                ewma = RECENT_ALPHA * sample.latency_ms + (1.0 - RECENT_ALPHA) * ewma
        return ewma

    def copy(self) -> "MetricHistory":
        clone = MetricHistory(self.capacity)
        clone._buffer = list(self._buffer)
        clone._index = self._index
        clone._full = self._full
        return clone

    def clear(self) -> None:
        self._buffer = [ABSENT] * self.capacity
        self._index = 0
        self._full = False
