from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, List, Union

from ..models.image import GrayImage
from ..repositories.pgm_repository import PgmRepository


class ImageService:
    """I/O helpers.  No equalization logic here."""
    def __init__(self):
        self.image_repository = PgmRepository()

    def load(self, path: Union[str, Path]) -> GrayImage:
        """Load a single graymap from disk into a GrayImage object."""
        return self.image_repository.load(path)

    def save(self, image: GrayImage, *, overwrite: bool = False) -> None:
        """
        Business-level method to save the image to its path.
        """
        self.image_repository.save(image, overwrite=overwrite)

    def list_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> List[Path]:
        return self.image_repository.list_dir(folder, recursive=recursive, exts=exts)

    def stream_gallery(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[GrayImage]:
        """
        Yield images lazily instead of returning a gigantic list.
        """
        return self.image_repository.iter_dir(folder,
                                              recursive=recursive,
                                              exts=exts)

    def preserve_original_state(self, image: GrayImage) -> None:
        """
        Keep a copy of the current pixels before they are modified in place.
        """
        if image.original_pixels is None:
            image.original_pixels = image.pixels.copy()
