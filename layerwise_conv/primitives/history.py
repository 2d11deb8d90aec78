import numpy as np

from ..config import HISTORY_SIZE, HISTORY_STEP


class ErrorHistory:
    """
    Append-only record of training scores for plotting.

    One value is stored every `step` calls to record(). When the buffer is
    full, neighbouring pairs are averaged into the first half and the step
    doubles, so any length of training fits in a fixed number of points.
    """

    def __init__(self, size=HISTORY_SIZE, step=HISTORY_STEP):
        if size < 2 or size % 2:
            raise ValueError(f"History size must be an even number >= 2, got {size}")
        self.values = np.zeros(size, dtype=np.float32)
        self.index = 0
        self.step = step
        self.counter = 0

    def __len__(self):
        return self.index

    def record(self, value):
        self.counter += 1
        if self.counter < self.step:
            return

        self.values[self.index] = max(0.0, float(value))
        self.index += 1
        self.counter = 0

        if self.index >= len(self.values):
            half = self.index // 2
            pairs = self.values[:half * 2].reshape(half, 2)
            self.values[:half] = pairs.mean(axis=1)
            self.values[half:] = 0.0
            self.index = half
            self.step *= 2

    def as_series(self):
        """(time_steps, values) for the stored points."""
        steps = np.arange(self.index) * self.step
        return steps, self.values[:self.index].copy()
