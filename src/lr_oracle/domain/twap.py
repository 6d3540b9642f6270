"""Rolling time-weighted average price over the last N samples."""

from collections import deque


class RollingTwap:
    """Each sample is weighted by the time until the next sample (or `now`).

    Only samples whose timestamp falls inside the window count.
    """

    def __init__(self, window_seconds: int, max_samples: int) -> None:
        self.window_seconds = window_seconds
        self._samples: deque[tuple[int, int]] = deque(maxlen=max_samples)

    def __len__(self) -> int:
        return len(self._samples)

    def add(self, ts: int, price: int) -> None:
        self._samples.append((ts, price))

    def clear(self) -> None:
        self._samples.clear()

    def value(self, now: int) -> int | None:
        """TWAP at `now`, or None when no sample lies inside the window."""
        cutoff = now - self.window_seconds
        samples = [s for s in self._samples if cutoff <= s[0] <= now]
        if not samples:
            return None
        weighted = 0
        total_weight = 0
        for i, (ts, price) in enumerate(samples):
            end = samples[i + 1][0] if i + 1 < len(samples) else now
            weight = end - ts
            weighted += price * weight
            total_weight += weight
        if total_weight == 0:
            return samples[-1][1]
        return weighted // total_weight
