from __future__ import annotations

import logging
from typing import Union

import numpy as np

from ..errors import DegenerateHistogramError, InvalidInputError
from ..models.equalization_tables import EqualizationTables
from ..models.image import GrayImage, LEVELS, MAX_INTENSITY

logger = logging.getLogger(__name__)

Buffer = Union[np.ndarray, bytearray]


class EqualizationService:
    """
    Global histogram equalization of 8-bit samples.
    *   No I/O here, works only on pixel buffers and GrayImage objects.
    *   Buffers are modified in place, the caller keeps ownership.
    """

    # ─── Public API ────────────────────────────────────────────────
    def equalize(self, buffer: Buffer, count: int, *, strict: bool = False) -> None:
        """
        Equalize the first `count` samples of `buffer` in place.

        Args:
            buffer: uint8 numpy array or bytearray, modified in place.
            count: Number of samples to equalize (1 <= count <= len(buffer)).
            strict: Raise DegenerateHistogramError for a single-intensity
                buffer instead of leaving it unchanged.

        Raises:
            InvalidInputError: Bad buffer or count. The buffer is untouched.
        """
        samples = self._as_samples(buffer, count)
        tables = self._build_tables(samples, count)
        if tables.degenerate and strict:
            raise DegenerateHistogramError(
                f"All {count} samples have intensity {int(samples[0])}; nothing to stretch"
            )
        self._apply(samples, tables.mapping)
        logger.debug("Equalized %d samples (cdf_min=%d)", count, tables.cdf_min)

    def compute_tables(self, buffer: Buffer, count: int) -> EqualizationTables:
        """Histogram, CDF and mapping for `buffer` without modifying it."""
        samples = self._as_samples(buffer, count)
        return self._build_tables(samples, count)

    def equalize_image(self, image: GrayImage, *, strict: bool = False) -> EqualizationTables:
        """
        Equalize `image.pixels` in place and return the tables that were applied.
        """
        count = image.pixel_count
        samples = self._as_samples(image.pixels, count)
        tables = self._build_tables(samples, count)
        if tables.degenerate and strict:
            raise DegenerateHistogramError(
                f"{image.path or 'image'} has a single intensity ({int(samples[0])})"
            )
        self._apply(samples, tables.mapping)
        logger.info(
            "Equalized %dx%d image %s (cdf_min=%d)",
            image.width, image.height, image.path or "<memory>", tables.cdf_min,
        )
        return tables

    # ─── Internal helpers ──────────────────────────────────────────
    @staticmethod
    def _as_samples(buffer: Buffer, count: int) -> np.ndarray:
        """
        Validate the input and return a writable uint8 view on the first `count` samples.
        """
        if isinstance(buffer, bytearray):
            buffer = np.frombuffer(buffer, dtype=np.uint8)
        if not isinstance(buffer, np.ndarray):
            raise InvalidInputError(
                f"Expected a numpy array or bytearray, got {type(buffer).__name__}"
            )
        if buffer.dtype != np.uint8:
            raise InvalidInputError(f"Expected uint8 samples, got {buffer.dtype}")
        if not buffer.flags.writeable:
            raise InvalidInputError("Buffer is read-only")
        if isinstance(count, bool) or not isinstance(count, (int, np.integer)):
            raise InvalidInputError(f"Sample count must be an integer, got {count!r}")
        if count < 1:
            raise InvalidInputError(f"Sample count must be at least 1, got {count}")
        if count > buffer.size:
            raise InvalidInputError(
                f"Sample count {count} exceeds buffer length {buffer.size}"
            )
        # reshape(-1) is a view for contiguous arrays; writes land in the caller's buffer
        flat = buffer.reshape(-1)
        if not np.shares_memory(flat, buffer):
            raise InvalidInputError("Buffer must be contiguous to be equalized in place")
        return flat[:count]

    @staticmethod
    def _build_tables(samples: np.ndarray, count: int) -> EqualizationTables:
        histogram = np.bincount(samples, minlength=LEVELS).astype(np.int64)
        cdf = np.cumsum(histogram)
        cdf_min = int(cdf[np.flatnonzero(cdf)[0]])
        divisor = count - cdf_min

        if divisor == 0:
            logger.info(
                "Single-intensity buffer (%d samples), mapping left as identity", count
            )
            mapping = np.arange(LEVELS, dtype=np.uint8)
        else:
            # Intensities below the darkest present one are never looked up; clamp them to 0.
            stretched = np.clip(cdf - cdf_min, 0, None) * MAX_INTENSITY // divisor
            mapping = stretched.astype(np.uint8)

        logger.debug("cdf_min=%d divisor=%d mapping=%s", cdf_min, divisor, mapping.tolist())
        return EqualizationTables(
            histogram=histogram,
            cdf=cdf,
            mapping=mapping,
            cdf_min=cdf_min,
            count=count,
            degenerate=divisor == 0,
        )

    @staticmethod
    def _apply(samples: np.ndarray, mapping: np.ndarray) -> None:
        samples[:] = mapping[samples]
