from pathlib import Path

import numpy as np
import pytest


def _pgm_bytes(width, height, pixels, *, maxval=255, magic=b"P5", header_extra=b""):
    header = magic + b"\n" + header_extra + f"{width} {height}\n{maxval}\n".encode("ascii")
    return header + bytes(pixels)


@pytest.fixture
def pgm_bytes():
    """Encode a graymap in memory."""
    return _pgm_bytes


@pytest.fixture
def write_pgm():
    """Write a graymap to disk and return its path."""
    def _write(path: Path, width, height, pixels, **kwargs) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_pgm_bytes(width, height, pixels, **kwargs))
        return path
    return _write


@pytest.fixture
def ramp_pixels():
    return np.array([0, 0, 1, 1, 2, 2, 3, 3], dtype=np.uint8)
