"""
Exceptions raised while reading, equalizing and writing graymaps.
A missing input file is reported with the builtin FileNotFoundError.
"""


class HistEqError(Exception):
    """Base class for every error raised by pgm_histeq."""


class UnsupportedFormatError(HistEqError, ValueError):
    """The stream is not an 8-bit binary graymap (magic != P5, or 16-bit samples)."""


class MalformedImageError(HistEqError, ValueError):
    """The P5 header or pixel payload is incomplete or not numeric."""


class InvalidInputError(HistEqError, ValueError):
    """The equalizer was given a buffer or sample count it cannot work on."""


class DegenerateHistogramError(HistEqError, ArithmeticError):
    """Every sample has the same intensity, so there is no range to stretch."""
