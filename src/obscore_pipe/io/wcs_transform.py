"""Pixel -> sky transform built from header keywords (astropy.wcs).

The core never does projection math itself; it asks this module for a
:class:`SkyTransform` and calls :meth:`SkyTransform.pixel_to_sky`.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping
import warnings

from astropy.io import fits
from astropy.wcs import WCS, FITSFixedWarning

log = logging.getLogger(__name__)


_FLOAT_KEYS = ("CD1_1", "CD1_2", "CD2_1", "CD2_2", "CRPIX1", "CRPIX2", "CRVAL1", "CRVAL2", "EQUINOX")
_INT_KEYS = ("NAXIS1", "NAXIS2")
_STR_KEYS = ("CTYPE1", "CTYPE2", "CUNIT1", "CUNIT2", "RADESYS")
_REQUIRED = ("CTYPE1", "CTYPE2", "CRPIX1", "CRPIX2", "CRVAL1", "CRVAL2")


def _to_float(v: Any) -> float | None:
    try:
        return float(str(v).strip())
    except (TypeError, ValueError):
        return None


def wcs_header(header: Mapping[str, Any]) -> fits.Header | None:
    """Pick the WCS keywords out of ``header`` into an astropy Header.

    Returns None when a keyword needed for a celestial transform is missing.
    """

    out = fits.Header()
    out["NAXIS"] = 2
    for k in _FLOAT_KEYS:
        if k in header:
            v = _to_float(header[k])
            if v is not None:
                out[k] = v
    for k in _INT_KEYS:
        if k in header:
            v = _to_float(header[k])
            if v is not None:
                out[k] = int(v)
    for k in _STR_KEYS:
        if k in header and str(header[k]).strip():
            out[k] = str(header[k]).strip()

    if any(k not in out for k in _REQUIRED):
        return None
    return out


class SkyTransform:
    """Thin wrapper around :class:`astropy.wcs.WCS` with 1-based pixels."""

    def __init__(self, wcs: WCS):
        self._wcs = wcs

    @property
    def wcs(self) -> WCS:
        return self._wcs

    def pixel_to_sky(self, x: float, y: float) -> tuple[float, float] | None:
        """Return ``(coord1, coord2)`` in degrees, or None if the transform fails."""

        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                world = self._wcs.all_pix2world([[float(x), float(y)]], 1)
        except Exception as e:  # astropy raises several unrelated types here
            log.debug("pix2world failed for (%s, %s): %s", x, y, e)
            return None
        c1, c2 = float(world[0][0]), float(world[0][1])
        if not (math.isfinite(c1) and math.isfinite(c2)):
            return None
        return c1, c2


def build_transform(header: Mapping[str, Any]) -> SkyTransform | None:
    """Create a :class:`SkyTransform` from header fields, or None if impossible."""

    hdr = wcs_header(header)
    if hdr is None:
        return None
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", FITSFixedWarning)
            w = WCS(hdr, naxis=2)
    except Exception as e:
        log.warning("Unable to build WCS from header: %s", e)
        return None
    if not w.has_celestial:
        return None
    return SkyTransform(w)
