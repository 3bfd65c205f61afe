"""FITS decoding collaborator (astropy.io.fits).

Turns one header unit into an ordered ``{keyword: value string}`` mapping and
exposes catalog (table HDU) rows. Decoding failures never raise: callers get
``None`` and skip the file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, Union

import numpy as np
from astropy.io import fits
from astropy.io.fits.card import Undefined

log = logging.getLogger(__name__)


_SKIP_KEYS = {"", "COMMENT", "HISTORY"}


def value_to_string(v: Any) -> str | None:
    """Render a header card value the way it appears in the FITS text."""

    if v is None or isinstance(v, Undefined):
        return None
    if isinstance(v, (bool, np.bool_)):
        return "T" if v else "F"
    if isinstance(v, (int, np.integer)):
        return str(int(v))
    if isinstance(v, (float, np.floating)):
        return repr(float(v))
    if isinstance(v, complex):
        return f"({v.real!r}, {v.imag!r})"
    return str(v).strip()


def header_to_fields(header: fits.Header) -> dict[str, str]:
    """Return the key/value cards of ``header`` as strings, in header order."""

    out: dict[str, str] = {}
    for card in header.cards:
        key = str(card.keyword).strip()
        if key in _SKIP_KEYS:
            continue
        s = value_to_string(card.value)
        if s is None:
            continue
        out[key] = s
    return out


def open_fits(path: Union[str, Path]) -> fits.HDUList:
    """Open a (possibly gzipped) FITS file without memory mapping."""

    return fits.open(str(path), memmap=False)


def read_header_fields(path: Union[str, Path], hdu: int = 0) -> dict[str, str] | None:
    """Read the header of HDU ``hdu`` of ``path``; None if the file is unreadable."""

    try:
        with open_fits(path) as hdul:
            return header_to_fields(hdul[hdu].header)
    except Exception as e:  # astropy raises OSError/ValueError/IndexError/...
        log.error("Invalid FITS header encountered in file '%s'. File skipped. (%s)", path, e)
        return None


def _is_image_hdu(h: Any) -> bool:
    return bool(getattr(h, "is_image", False)) and int(h.header.get("NAXIS", 0) or 0) >= 2


def find_table_hdu(hdul: fits.HDUList) -> int | None:
    for i, h in enumerate(hdul):
        if _is_image_hdu(h):
            continue
        if isinstance(h, (fits.BinTableHDU, fits.TableHDU)):
            return i
    return None


def is_catalog_hdul(hdul: fits.HDUList) -> bool:
    """A catalog has a table extension and no 2-D image anywhere."""

    if any(_is_image_hdu(h) for h in hdul):
        return False
    return find_table_hdu(hdul) is not None


def is_catalog_file(path: Union[str, Path]) -> bool:
    """Tell whether ``path`` holds a catalog rather than an image."""

    try:
        with open_fits(path) as hdul:
            return is_catalog_hdul(hdul)
    except Exception as e:
        log.debug("is_catalog_file(%s) failed: %s", path, e)
        return False


def _plain(v: Any) -> Any:
    if isinstance(v, np.generic):
        v = v.item()
    if isinstance(v, bytes):
        return v.decode("ascii", errors="replace").strip()
    if isinstance(v, str):
        return v.strip()
    return v


def iter_catalog_rows(path: Union[str, Path]) -> Iterator[tuple[Any, ...]]:
    """Yield the rows of the first table HDU of ``path`` as plain Python tuples."""

    with open_fits(path) as hdul:
        idx = find_table_hdu(hdul)
        if idx is None:
            return
        data = hdul[idx].data
        if data is None:
            return
        cols = [data[name] for name in data.columns.names]
        for i in range(len(data)):
            yield tuple(_plain(c[i]) for c in cols)
