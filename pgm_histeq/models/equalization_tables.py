from __future__ import annotations
from dataclasses import dataclass
import numpy as np


@dataclass
class EqualizationTables:
    """
    Data object holding the tables of one equalization pass.
    """
    histogram: np.ndarray # (256,) int64, occurrences per intensity
    cdf: np.ndarray       # (256,) int64, running sum of histogram
    mapping: np.ndarray   # (256,) uint8, original -> equalized intensity
    cdf_min: int          # first non-zero CDF value
    count: int            # number of samples taken into account
    degenerate: bool      # True when count == cdf_min (single intensity)

    @property
    def divisor(self) -> int:
        return self.count - self.cdf_min
