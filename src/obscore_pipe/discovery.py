from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from obscore_pipe.config import FILE_TYPES

log = logging.getLogger(__name__)


def is_acceptable_filename(name: str | Path, file_types: Sequence[str] = FILE_TYPES) -> bool:
    """Tell whether ``name`` ends with one of the accepted suffixes (case-insensitive)."""

    low = Path(name).name.lower()
    return any(low.endswith(t.lower()) for t in file_types)


def iter_fits_files(root: Path, file_types: Sequence[str] = FILE_TYPES) -> Iterator[Path]:
    """Yield accepted files under ``root`` recursively, in sorted order."""

    for p in sorted(root.rglob("*")):
        if p.is_file() and is_acceptable_filename(p, file_types):
            if not os.access(p, os.R_OK):
                log.warning("File '%s' is not readable. Skipped.", p)
                continue
            yield p


def iter_input_files(paths: Iterable[str | Path], file_types: Sequence[str] = FILE_TYPES) -> Iterator[Path]:
    """Expand the given files and directories into the list of files to process.

    Files must carry an accepted suffix; directories are walked recursively
    and filtered by ``file_types``. Anything else is logged and skipped.
    """

    for raw in paths:
        p = Path(raw).expanduser()
        if p.is_dir():
            log.info("Processing FITS files in '%s'", p)
            yield from iter_fits_files(p, file_types)
        elif p.is_file() and is_acceptable_filename(p, file_types):
            yield p
        else:
            log.error("Path '%s' is neither an acceptable FITS file nor a directory. Skipped.", p)
