from __future__ import annotations

import math

import numpy as np


def approx_rms(samples, stride: int = 8) -> float:
    """RMS over every `stride`-th sample. Cheap loudness estimate, not a level meter."""
    if stride < 1:
        raise ValueError("stride must be >= 1")
    x = np.asarray(samples).reshape(-1)[::stride].astype(np.float64)
    if x.size == 0:
        return 0.0
    return math.sqrt(float(np.dot(x, x)) / x.size)


class BargeInDetector:
    def __init__(self, threshold: float = 0.03, stride: int = 8) -> None:
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        if stride < 1:
            raise ValueError("stride must be >= 1")
        self.threshold = float(threshold)
        self.stride = int(stride)

    def is_speech(self, samples) -> bool:
        return approx_rms(samples, self.stride) > self.threshold
