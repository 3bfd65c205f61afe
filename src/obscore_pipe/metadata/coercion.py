"""String -> typed value conversion for header and default values.

Only four datatypes exist in the field schema: ``integer``, ``double``,
``string`` and ``date``. Dates follow the FITS convention (ISO-8601 without a
trailing zone designator); the pre-2000 ``DD/MM/YY`` form is accepted too.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
import math
import re
from typing import Any

from .errors import ConversionError, UnknownDatatypeError


class Datatype(str, Enum):
    INTEGER = "integer"
    DOUBLE = "double"
    STRING = "string"
    DATE = "date"


_INT_RE = re.compile(r"[+-]?[0-9]+")
_FITS_DATE_RE = re.compile(
    r"(?P<y>\d{4})-(?P<m>\d{2})-(?P<d>\d{2})"
    r"(?:T(?P<H>\d{2}):(?P<M>\d{2}):(?P<S>\d{2})(?:\.(?P<frac>\d+))?)?"
)
_OLD_FITS_DATE_RE = re.compile(r"(?P<d>\d{2})/(?P<m>\d{2})/(?P<y>\d{2})")


def as_datatype(datatype: Any) -> Datatype:
    """Return the :class:`Datatype` for a tag, or raise :class:`UnknownDatatypeError`."""

    if isinstance(datatype, Datatype):
        return datatype
    try:
        return Datatype(str(datatype).strip().lower())
    except ValueError:
        raise UnknownDatatypeError(datatype) from None


def parse_fits_date(s: str) -> datetime:
    """Parse a FITS date string into a naive :class:`datetime`."""

    txt = str(s).strip()
    m = _FITS_DATE_RE.fullmatch(txt)
    if m:
        frac = m.group("frac") or ""
        # datetime keeps microseconds only
        micros = int((frac + "000000")[:6]) if frac else 0
        return datetime(
            int(m.group("y")),
            int(m.group("m")),
            int(m.group("d")),
            int(m.group("H") or 0),
            int(m.group("M") or 0),
            int(m.group("S") or 0),
            micros,
        )
    m = _OLD_FITS_DATE_RE.fullmatch(txt)
    if m:
        return datetime(1900 + int(m.group("y")), int(m.group("m")), int(m.group("d")))
    raise ValueError(f"not a FITS date: {s!r}")


def coerce(value: str, datatype: Datatype | str) -> Any:
    """Convert ``value`` to ``datatype``.

    Raises
    ------
    ConversionError
        ``value`` cannot be parsed as ``datatype``.
    UnknownDatatypeError
        ``datatype`` is not one of :class:`Datatype`.
    """

    dt = as_datatype(datatype)
    if value is None:
        raise ConversionError(value, dt.value)
    s = str(value)

    if dt is Datatype.STRING:
        return s

    if dt is Datatype.INTEGER:
        txt = s.strip()
        if not _INT_RE.fullmatch(txt):
            raise ConversionError(s, dt.value)
        return int(txt, 10)

    if dt is Datatype.DOUBLE:
        txt = s.strip()
        # float() accepts "1_000"; header values never do
        if not txt or "_" in txt:
            raise ConversionError(s, dt.value)
        try:
            return float(txt)
        except ValueError:
            raise ConversionError(s, dt.value) from None

    try:
        return parse_fits_date(s)
    except ValueError:
        raise ConversionError(s, dt.value) from None


def format_value(value: Any, datatype: Datatype | str) -> str:
    """Format a typed value back into its canonical literal string."""

    dt = as_datatype(datatype)
    if dt is Datatype.INTEGER:
        return str(int(value))
    if dt is Datatype.DOUBLE:
        v = float(value)
        if math.isnan(v):
            return "nan"
        return repr(v)
    if dt is Datatype.DATE:
        if not isinstance(value, datetime):
            raise ConversionError(str(value), dt.value)
        out = value.strftime("%Y-%m-%dT%H:%M:%S")
        if value.microsecond:
            out += f".{value.microsecond:06d}".rstrip("0")
        return out
    return str(value)
