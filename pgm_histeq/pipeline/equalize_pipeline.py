"""
Equalization Pipeline
Loads binary graymaps, equalizes them in memory and writes the results.
One-shot batch transform: a failing file is reported, never retried.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple, Union

from dotenv import load_dotenv
from tqdm import tqdm

from ..models.equalization_tables import EqualizationTables
from ..services.equalization_service import EqualizationService
from ..services.image_service import ImageService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = os.getenv("OUTPUT_SUFFIX", "_equalized")


@dataclass
class BatchReport:
    """
    Outcome of equalizing a folder of graymaps.
    """
    processed: List[Path] = field(default_factory=list)  # written output paths
    failed: List[Tuple[Path, str]] = field(default_factory=list)  # (input path, reason)

    @property
    def ok(self) -> bool:
        return not self.failed


def equalize_file(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    *,
    overwrite: bool = False,
    strict: bool = False,
    image_service: ImageService | None = None,
    equalization_service: EqualizationService | None = None,
) -> EqualizationTables:
    """
    Equalize one graymap: load, equalize in place, save.

    Args:
        input_path: Source P5 graymap.
        output_path: Destination path (must differ from the source).
        overwrite: Replace an existing destination file.
        strict: Fail on single-intensity images instead of copying them unchanged.

    Returns:
        EqualizationTables: The histogram, CDF and mapping that were applied.
    """
    image_service = image_service or ImageService()
    equalization_service = equalization_service or EqualizationService()

    input_path, output_path = Path(input_path), Path(output_path)
    if input_path.resolve() == output_path.resolve():
        raise ValueError(f"Output path must differ from input path: {output_path}")

    img = image_service.load(input_path)
    logger.info("Loaded %s (%dx%d, maxval=%d)", input_path, img.width, img.height, img.maxval)

    tables = equalization_service.equalize_image(img, strict=strict)

    img.path = output_path
    image_service.save(img, overwrite=overwrite)
    logger.info("Saved equalized image to %s", output_path)
    return tables


def equalize_directory(
    input_dir: Union[str, Path],
    output_dir: Union[str, Path],
    *,
    recursive: bool = False,
    overwrite: bool = False,
    strict: bool = False,
    suffix: str = OUTPUT_SUFFIX,
    image_service: ImageService | None = None,
    equalization_service: EqualizationService | None = None,
) -> BatchReport:
    """
    Equalize every graymap in `input_dir`, writing `<stem><suffix>.pgm` into
    `output_dir` (sub-folders are mirrored when `recursive` is set).
    """
    image_service = image_service or ImageService()
    equalization_service = equalization_service or EqualizationService()

    input_dir, output_dir = Path(input_dir), Path(output_dir)
    paths = image_service.list_gallery(input_dir, recursive=recursive)
    report = BatchReport()

    if not paths:
        logger.warning("No graymaps found in %s", input_dir)
        return report

    for path in tqdm(paths, desc="equalize", unit="img", ncols=70):
        relative = path.relative_to(input_dir)
        target = output_dir / relative.parent / f"{path.stem}{suffix}.pgm"
        try:
            equalize_file(
                path,
                target,
                overwrite=overwrite,
                strict=strict,
                image_service=image_service,
                equalization_service=equalization_service,
            )
        except (OSError, ValueError, ArithmeticError) as err:
            logger.warning("Failed to equalize %s: %s", path, err)
            report.failed.append((path, str(err)))
            continue
        report.processed.append(target)

    logger.info("Equalized %d of %d graymaps into %s",
                len(report.processed), len(paths), output_dir)
    return report
