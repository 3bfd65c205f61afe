"""Geometry helpers for ObsCore spatial fields.

Everything here works on raw header strings (``HeaderFields``) and never
writes to a :class:`~obscore_pipe.metadata.fields.FieldsInfo`; the compute
rules in :mod:`obscore_pipe.metadata.rules` do that.

Notes on conventions
--------------------
- Pixel coordinates are FITS 1-based.
- Corners are ordered lower-left, upper-left, upper-right, lower-right
  (counter-clockwise from the origin pixel).
- Sky coordinates are returned as ``(ra, dec)`` in degrees regardless of the
  axis order declared by ``CTYPE1``/``CTYPE2``.
- Only tangent-plane projections are supported.
"""

from __future__ import annotations

from functools import cached_property
import logging
import math
from typing import Any, Callable, Mapping, Optional, Protocol

from .errors import AbortFileProcessing

log = logging.getLogger(__name__)


PROJ_RA_FIRST = "RA---TAN"
PROJ_DEC_FIRST = "DEC--TAN"
SUPPORTED_PROJECTIONS = (PROJ_RA_FIRST, PROJ_DEC_FIRST)

# Spatial resolutions (arcsec) of the NIRCam filters.
FILTER_RESOLUTIONS: dict[str, float] = {
    "F070W": 0.030, "F090W": 0.034, "F115W": 0.040, "F140M": 0.048, "F150W": 0.050,
    "F162M": 0.055, "F164N": 0.056, "F150W2": 0.046, "F182M": 0.062, "F187N": 0.064,
    "F200W": 0.066, "F210M": 0.071, "F212N": 0.072, "F250M": 0.084, "F277W": 0.091,
    "F300M": 0.100, "F322W2": 0.097, "F323N": 0.108, "F335M": 0.111, "F356W": 0.115,
    "F360M": 0.120, "F405N": 0.136, "F410M": 0.137, "F430M": 0.145, "F444W": 0.145,
    "F460M": 0.155, "F466N": 0.158, "F470N": 0.160, "F480M": 0.162,
}

# FITS BITPIX -> ObsCore im_pixtype
PIXTYPE_TABLE: dict[int, str] = {
    8: "byte",
    16: "short",
    32: "int",
    64: "long",
    -32: "float",
    -64: "double",
}
UNKNOWN_PIXTYPE = "UNKNOWN"

CORNER_KEYS: tuple[tuple[str, str], ...] = (
    ("im_ra1", "im_dec1"),
    ("im_ra2", "im_dec2"),
    ("im_ra3", "im_dec3"),
    ("im_ra4", "im_dec4"),
)
LIMIT_KEYS: tuple[str, str, str, str] = ("spat_lolimit1", "spat_hilimit1", "spat_lolimit2", "spat_hilimit2")

# RA spans wider than this are most likely a footprint crossing RA=0/360.
RA_SEAM_SPAN_DEG = 180.0

SkyPair = tuple[float, float]


class PixelToSky(Protocol):
    def pixel_to_sky(self, x: float, y: float) -> Optional[SkyPair]: ...


TransformFactory = Callable[[Mapping[str, Any]], Optional[PixelToSky]]


def header_float(header: Mapping[str, Any], key: str) -> float | None:
    v = header.get(key)
    if v is None:
        return None
    try:
        return float(str(v).strip())
    except ValueError:
        return None


def header_str(header: Mapping[str, Any], key: str) -> str | None:
    v = header.get(key)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def plate_scale(header: Mapping[str, Any]) -> float | None:
    """Plate scale in arcsec/pixel from the CD matrix.

    ``scale = 3600 * sqrt(cd1_1**2 + cd1_2**2 + cd2_1**2 + cd2_2**2 / 2)``
    (only the last term is halved). None if any CD keyword is missing.
    """

    cd = [header_float(header, k) for k in ("CD1_1", "CD1_2", "CD2_1", "CD2_2")]
    if any(v is None for v in cd):
        return None
    cd1_1, cd1_2, cd2_1, cd2_2 = cd
    return 3600.0 * math.sqrt(cd1_1**2 + cd1_2**2 + cd2_1**2 + cd2_2**2 / 2.0)


def pixel_type(bitpix: Any) -> str | None:
    """ObsCore pixel type for a BITPIX value; unknown codes give ``"UNKNOWN"``."""

    if bitpix is None or str(bitpix).strip() == "":
        return None
    try:
        code = int(str(bitpix).strip())
    except ValueError:
        return UNKNOWN_PIXTYPE
    return PIXTYPE_TABLE.get(code, UNKNOWN_PIXTYPE)


def spatial_resolution(filter_name: Any) -> float | None:
    if not filter_name:
        return None
    return FILTER_RESOLUTIONS.get(str(filter_name).strip().upper())


def projection_ra_first(header: Mapping[str, Any]) -> bool | None:
    """Return True if axis 1 is RA, False if it is DEC, None if CTYPE1 is absent.

    Raises :class:`AbortFileProcessing` for any projection other than the two
    tangent-plane tags.
    """

    ctype1 = header_str(header, "CTYPE1")
    if ctype1 is None:
        return None
    if ctype1 == PROJ_RA_FIRST:
        return True
    if ctype1 == PROJ_DEC_FIRST:
        return False
    raise AbortFileProcessing(
        "Only tangent plane projections are handled; "
        f"cannot process files with CTYPE1 of {ctype1!r}",
        context={"CTYPE1": ctype1},
    )


def reference_coordinates(header: Mapping[str, Any]) -> SkyPair | None:
    """``(ra, dec)`` of the reference pixel, taken from CRVAL1/CRVAL2."""

    ra_first = projection_ra_first(header)
    crval1 = header_float(header, "CRVAL1")
    crval2 = header_float(header, "CRVAL2")
    if ra_first is None or header_str(header, "CTYPE2") is None or crval1 is None or crval2 is None:
        return None
    if ra_first:
        return crval1, crval2
    return crval2, crval1


def pixel_corners(naxis1: float, naxis2: float) -> list[tuple[float, float]]:
    return [(1.0, 1.0), (1.0, naxis2), (naxis1, naxis2), (naxis1, 1.0)]


def footprint_corners(
    header: Mapping[str, Any],
    transform: PixelToSky | None,
) -> list[SkyPair | None] | None:
    """Transform the four image corners to ``(ra, dec)``.

    Returns None when the image size or the transform is unavailable; a corner
    whose transform failed is None in the returned list.
    """

    ra_first = projection_ra_first(header)
    naxis1 = header_float(header, "NAXIS1")
    naxis2 = header_float(header, "NAXIS2")
    if transform is None or naxis1 is None or naxis2 is None:
        return None

    out: list[SkyPair | None] = []
    for x, y in pixel_corners(naxis1, naxis2):
        sky = transform.pixel_to_sky(x, y)
        if sky is not None and ra_first is False:
            sky = (sky[1], sky[0])
        out.append(sky)
    return out


def spatial_limits(corners: list[SkyPair | None] | None) -> tuple[float, float, float, float] | None:
    """``(ra_min, ra_max, dec_min, dec_max)`` over the four corners.

    All-or-nothing: any missing corner gives None. RA wraparound at 0/360 is
    not handled; such footprints are only reported.
    """

    if not corners or len(corners) != 4 or any(c is None for c in corners):
        return None
    ras = [c[0] for c in corners]  # type: ignore[index]
    decs = [c[1] for c in corners]  # type: ignore[index]
    lo1, hi1 = min(ras), max(ras)
    if hi1 - lo1 > RA_SEAM_SPAN_DEG:
        log.warning(
            "Footprint RA span %.3f..%.3f deg looks like it crosses RA=0; limits are not wrapped",
            lo1,
            hi1,
        )
    return lo1, hi1, min(decs), max(decs)


class GeometryCalculator:
    """Per-file geometry with the WCS transform and corners computed once."""

    def __init__(self, header: Mapping[str, Any], transform_factory: TransformFactory | None = None):
        self.header = header
        self._factory = transform_factory

    @cached_property
    def transform(self) -> PixelToSky | None:
        if self._factory is None:
            return None
        return self._factory(self.header)

    @cached_property
    def scale(self) -> float | None:
        return plate_scale(self.header)

    @cached_property
    def coordinates(self) -> SkyPair | None:
        return reference_coordinates(self.header)

    @cached_property
    def corners(self) -> list[SkyPair | None] | None:
        # projection check first: no transform is built for unsupported files
        projection_ra_first(self.header)
        return footprint_corners(self.header, self.transform)

    @property
    def footprint_complete(self) -> bool:
        c = self.corners
        return bool(c) and all(p is not None for p in c)

    @cached_property
    def limits(self) -> tuple[float, float, float, float] | None:
        return spatial_limits(self.corners)
