from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np

# Largest 8-bit intensity; also the maxval every written graymap carries.
MAX_INTENSITY = 255
# Number of histogram buckets.
LEVELS = MAX_INTENSITY + 1


@dataclass
class GrayImage:
    """
    Simple data object: 8-bit grayscale pixels (+ optional source path for bookkeeping).
    No PGM parsing logic outside the repository.
    """
    width: int
    height: int
    pixels: np.ndarray # Shape (H*W,), dtype uint8, row-major.
    maxval: int = MAX_INTENSITY # maxval read from the header.
    path: Path | None = None # Source or destination of the image.
    original_pixels: np.ndarray | None = None # Original unmodified pixels for comparison

    @property
    def pixel_count(self) -> int:
        return self.width * self.height
