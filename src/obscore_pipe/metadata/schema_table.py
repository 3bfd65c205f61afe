"""Field schema table: canonical key -> datatype / required / default.

Resource format
---------------
Comma-separated text, one record per line::

    # comment
    _COLUMN_NAMES_, obsCoreKey, datatype, required, default
    s_ra, double, true, *

- blank lines, ``#`` comments and ``_NOP_`` lines are skipped;
- a ``_COLUMN_NAMES_`` line re-declares the columns (marker dropped);
- data lines with the wrong number of fields are ignored.

``*`` as default means "no default value" (the value has to come from the
header or from a compute rule).
"""

from __future__ import annotations

from dataclasses import dataclass
import io
import logging
from pathlib import Path
from typing import IO, Iterable, Iterator, Sequence, Union

from .coercion import Datatype, as_datatype
from .errors import UnknownDatatypeError

log = logging.getLogger(__name__)


COMMENT_MARKER = "#"
COLUMN_NAME_MARKER = "_COLUMN_NAMES_"
NOP_ENTRY_KEY = "_NOP_"
NO_DEFAULT_VALUE = "*"

DEFAULT_COLUMN_NAMES: tuple[str, ...] = ("obsCoreKey", "datatype", "required", "default")

_KEY_COLUMNS = ("obsCoreKey", "key", "obscorekey", "obscore_key")
_TRUE_WORDS = {"true", "t", "yes", "y", "1", "required"}

LineSource = Union[str, Path, IO[str], Iterable[str]]


@dataclass(frozen=True)
class SchemaEntry:
    key: str
    datatype: Datatype | str
    required: bool = False
    default: str = NO_DEFAULT_VALUE

    @property
    def has_default(self) -> bool:
        return self.default != NO_DEFAULT_VALUE and self.default != ""


def iter_resource_lines(source: LineSource) -> Iterator[str]:
    """Yield raw lines from a path, a text stream or an iterable of strings."""

    if isinstance(source, (str, Path)):
        with Path(source).open("r", encoding="utf-8") as f:
            for line in f:
                yield line.rstrip("\r\n")
        return
    if isinstance(source, io.TextIOBase) or hasattr(source, "readline"):
        for line in source:  # type: ignore[union-attr]
            yield str(line).rstrip("\r\n")
        return
    for line in source:
        yield str(line).rstrip("\r\n")


def is_skippable(line: str) -> bool:
    return not line.strip() or line.startswith(COMMENT_MARKER) or line.startswith(NOP_ENTRY_KEY)


def split_record(line: str) -> list[str]:
    return [p.strip() for p in line.split(",")]


def parse_required(v: str) -> bool:
    return str(v).strip().lower() in _TRUE_WORDS


def _entry_from_record(columns: Sequence[str], fields: Sequence[str]) -> SchemaEntry:
    rec = dict(zip(columns, fields))
    key = next((rec[c] for c in _KEY_COLUMNS if c in rec), fields[0])
    raw_dt = rec.get("datatype", "string")
    try:
        datatype: Datatype | str = as_datatype(raw_dt)
    except UnknownDatatypeError:
        # kept verbatim; coercion reports it per file
        datatype = raw_dt
    return SchemaEntry(
        key=key,
        datatype=datatype,
        required=parse_required(rec.get("required", "")),
        default=rec.get("default", NO_DEFAULT_VALUE),
    )


def load_schema(
    source: LineSource,
    *,
    column_names: Sequence[str] = DEFAULT_COLUMN_NAMES,
) -> dict[str, SchemaEntry]:
    """Load the field schema table.

    Every call returns a new, independent mapping (in file order).
    """

    columns = list(column_names)
    out: dict[str, SchemaEntry] = {}
    skipped = 0

    for line in iter_resource_lines(source):
        if is_skippable(line):
            continue
        if line.startswith(COLUMN_NAME_MARKER):
            flds = split_record(line)
            if len(flds) > 2:
                columns = flds[1:]
            continue
        flds = split_record(line)
        if len(flds) != len(columns) or not flds[0]:
            skipped += 1
            log.debug("Ignoring malformed schema line: %r", line)
            continue
        entry = _entry_from_record(columns, flds)
        out[entry.key] = entry

    log.debug("Read %d field information records (%d malformed lines ignored)", len(out), skipped)
    return out
