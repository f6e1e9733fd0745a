from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Union

import numpy as np
from dotenv import load_dotenv

from ..errors import MalformedImageError, UnsupportedFormatError
from ..models.image import GrayImage, MAX_INTENSITY

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

MAGIC = b"P5"
_WHITESPACE = b" \t\n\r\v\f"


def _current_umask() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return umask


class PgmRepository:
    """
    Handles file I/O for GrayImage entities stored as binary graymaps (P5).
    """
    def __init__(self):
        exts = os.getenv("VALID_IMAGE_EXTENSIONS", ".pgm")
        self.VALID_EXTS = {ext.strip().lower() for ext in exts.split(",") if ext.strip()}

    @staticmethod
    def create_image(pixels: np.ndarray, width: int, height: int,
                     path: Union[str, Path] = None) -> GrayImage:
        if path is None:
            return GrayImage(width=width, height=height, pixels=pixels)
        return GrayImage(width=width, height=height, pixels=pixels, path=Path(path))

    # ─── Reading ───────────────────────────────────────────────────
    @classmethod
    def read(cls, stream: BinaryIO) -> GrayImage:
        """
        Parse a P5 graymap from a binary stream.

        Raises:
            UnsupportedFormatError: Magic is not P5, or samples are 16-bit.
            MalformedImageError: Missing header fields or truncated pixel data.
        """
        magic = stream.read(2)
        if magic != MAGIC:
            raise UnsupportedFormatError(
                f"Unsupported format {magic!r}: only binary graymaps (P5) are supported"
            )

        width = cls._read_header_int(stream, "width")
        height = cls._read_header_int(stream, "height")
        maxval = cls._read_header_int(stream, "maxval")
        if width <= 0 or height <= 0:
            raise MalformedImageError(f"Invalid dimensions {width}x{height}")
        if maxval <= 0:
            raise MalformedImageError(f"Invalid maxval {maxval}")
        if maxval > MAX_INTENSITY:
            raise UnsupportedFormatError(
                f"maxval {maxval} means 16-bit samples; only 8-bit graymaps are supported"
            )

        total = width * height
        data = stream.read(total)
        if len(data) < total:
            raise MalformedImageError(
                f"Truncated pixel data: expected {total} bytes, got {len(data)}"
            )
        if stream.read(1):
            logger.debug("Ignoring trailing bytes after %dx%d pixel data", width, height)

        # bytearray keeps the array writable for in-place equalization
        pixels = np.frombuffer(bytearray(data), dtype=np.uint8)
        return GrayImage(width=width, height=height, pixels=pixels, maxval=maxval)

    @staticmethod
    def _read_header_int(stream: BinaryIO, field: str) -> int:
        """
        Read one whitespace-delimited header token, skipping `#` comments.
        The single whitespace byte ending the token is consumed.
        """
        ch = stream.read(1)
        while ch:
            if ch == b"#":
                while ch and ch not in (b"\n", b"\r"):
                    ch = stream.read(1)
            elif ch not in _WHITESPACE:
                break
            ch = stream.read(1)
        if not ch:
            raise MalformedImageError(f"Header ended before {field}")

        token = bytearray()
        while ch and ch not in _WHITESPACE:
            token.extend(ch)
            ch = stream.read(1)
        if not ch:
            raise MalformedImageError(f"Header ended after {field}")
        if not token.isdigit():
            raise MalformedImageError(f"Header field {field} is not a number: {bytes(token)!r}")
        return int(token)

    @classmethod
    def load(cls, path: Union[str, Path]) -> GrayImage:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        try:
            f = path.open("rb")
        except PermissionError as err:
            raise FileNotFoundError(f"Image not found or unreadable: {path}") from err
        with f:
            img = cls.read(f)
        img.path = path
        return img

    # ─── Writing ───────────────────────────────────────────────────
    @staticmethod
    def write(stream: BinaryIO, image: GrayImage) -> None:
        header = f"P5\n{image.width} {image.height}\n{MAX_INTENSITY}\n".encode("ascii")
        stream.write(header)
        stream.write(np.ascontiguousarray(image.pixels, dtype=np.uint8).tobytes())

    @classmethod
    def save(cls, image: GrayImage, *, overwrite: bool = False) -> None:
        """
        Write `image` to `image.path` through a temporary file so a failed write
        never leaves a partial graymap behind.
        """
        if image.path is None:
            raise ValueError("Image has no destination path")
        path = Path(image.path)
        if path.exists() and not overwrite:
            raise FileExistsError(f"Refusing to overwrite existing file: {path}")
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                cls.write(f, image)
            # mkstemp creates 0600; give the output the mode a plain open() would
            os.chmod(tmp_name, 0o666 & ~_current_umask())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # ─── Galleries ─────────────────────────────────────────────────
    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[GrayImage]:
        """
        Yield GrayImage objects one at a time.  Nothing accumulates in memory.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        for p in self.list_dir(folder, recursive=recursive, exts=exts):
            try:
                yield self.load(p)
            except (OSError, ValueError) as err:
                logger.warning("Skipping %s: %s", p.name, err)

    def list_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> List[Path]:
        """
        Sorted graymap paths in `folder` whose suffix is allowed.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"
        paths = []
        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed:
                logger.debug("Skipping due to extension: %s", p)
                continue
            if not p.is_file():
                continue
            paths.append(p)
        return paths
