"""Output of resolved records: SQL insert scripts or JSON Lines.

One output file per run, created lazily inside the output directory as
``ffp-YYYYmmdd_HHMMSS-fff.<format>``. Every record is appended as soon as it
is produced, so a crash mid-run keeps everything written so far.

SQL layout (image)::

    -- name size path
    insert into sia.jwst (k1, k2, ...) values (v1, v2, ...);

SQL layout (catalog)::

    begin;
    -- name size path
    insert into sia.jcat values (c1,c2,...,0);
    commit;
"""

from __future__ import annotations

import dataclasses
from datetime import datetime
import enum
import json
import logging
import math
from pathlib import Path
from typing import Any, Iterable, Sequence

import numpy as np

from obscore_pipe.metadata.coercion import Datatype, format_value
from obscore_pipe.metadata.fields import FieldsInfo

log = logging.getLogger(__name__)

SQL_COMMENT = "--"
OUTPUT_FILE_PREFIX = "ffp"


def gen_output_path(output_dir: str | Path, output_format: str, now: datetime | None = None) -> Path:
    """Return ``<output_dir>/ffp-YYYYmmdd_HHMMSS-fff.<format>``."""

    now = now or datetime.now()
    stamp = now.strftime("%Y%m%d_%H%M%S") + f"-{now.microsecond // 1000:03d}"
    return Path(output_dir) / f"{OUTPUT_FILE_PREFIX}-{stamp}.{output_format}"


def _json_default(o: Any) -> Any:
    """Serializer for the few non-JSON types a record may hold."""

    if isinstance(o, datetime):
        return format_value(o, Datatype.DATE)
    if dataclasses.is_dataclass(o):
        return dataclasses.asdict(o)
    if isinstance(o, Path):
        return str(o)
    if isinstance(o, enum.Enum):
        return o.value
    if isinstance(o, np.generic):
        return o.item()
    if isinstance(o, np.ndarray):
        return o.tolist()
    if isinstance(o, bytes):
        return o.decode("ascii", errors="replace")
    return str(o)


def sql_literal(v: Any) -> str:
    """Render one value as an SQL literal (strings quoted, quotes doubled)."""

    if v is None:
        return "NULL"
    if isinstance(v, np.generic):
        v = v.item()
    if isinstance(v, bool):
        return "TRUE" if v else "FALSE"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        if not math.isfinite(v):
            return f"'{v}'"
        return repr(v)
    if isinstance(v, datetime):
        return f"'{format_value(v, Datatype.DATE)}'"
    s = v.decode("ascii", errors="replace") if isinstance(v, bytes) else str(v)
    return "'" + s.replace("'", "''") + "'"


def file_info_comment(name: Any, size: Any, path: Any) -> str:
    parts = [str(p) for p in (name, size, path) if p is not None]
    return " ".join([SQL_COMMENT, *parts])


def image_insert_sql(fields: FieldsInfo, table: str) -> str:
    valued = fields.valued()
    keys = ", ".join(valued)
    values = ", ".join(sql_literal(v) for v in valued.values())
    return f"insert into {table} ({keys}) values ({values});"


def catalog_insert_sql(row: Sequence[Any], table: str, is_public: int = 0) -> str:
    cols = [sql_literal(v) for v in row]
    cols.append(str(int(is_public)))
    return f"insert into {table} values ({','.join(cols)});"


def image_json(fields: FieldsInfo) -> str:
    return json.dumps(fields.valued(), default=_json_default, ensure_ascii=False)


class InformationOutputter:
    """Writes resolved image records and catalog rows to one output file."""

    def __init__(
        self,
        output_dir: str | Path = "out",
        output_format: str = "sql",
        *,
        image_table: str = "sia.jwst",
        catalog_table: str = "sia.jcat",
        is_public: int = 0,
        now: datetime | None = None,
    ):
        self.output_format = str(output_format).lower()
        if self.output_format not in ("sql", "json"):
            raise ValueError(f"Unsupported output format: {output_format!r}")
        self.image_table = image_table
        self.catalog_table = catalog_table
        self.is_public = int(is_public)
        self.output_path = gen_output_path(output_dir, self.output_format, now)
        self.n_records = 0
        self._catalog: dict[str, Any] | None = None

    @classmethod
    def from_config(cls, cfg: Any) -> "InformationOutputter":
        return cls(
            cfg.output_dir,
            cfg.output_format,
            image_table=cfg.image_table,
            catalog_table=cfg.catalog_table,
            is_public=cfg.is_public,
        )

    def _append(self, lines: Iterable[str]) -> None:
        with self.output_path.open("a", encoding="utf-8", newline="\n") as f:
            for line in lines:
                f.write(line)
                f.write("\n")

    # -----------------------------
    # Images
    # -----------------------------

    def output_image_info(self, fields: FieldsInfo) -> None:
        if self.output_format == "sql":
            comment = file_info_comment(
                fields.value_for("file_name"),
                fields.value_for("access_estsize"),
                fields.value_for("file_path"),
            )
            self._append([comment, image_insert_sql(fields, self.image_table)])
        else:
            self._append([image_json(fields)])
        self.n_records += 1
        log.debug("Wrote %s record for %s to %s", self.output_format, fields.value_for("file_name"), self.output_path)

    # -----------------------------
    # Catalogs
    # -----------------------------

    def output_catalog_header(self, path: str | Path) -> None:
        p = Path(path).resolve()
        try:
            size: int | None = p.stat().st_size
        except OSError:
            size = None
        if self.output_format == "sql":
            self._append(["begin;", file_info_comment(p.name, size, str(p))])
        self._catalog = {"file_name": p.name, "file_path": str(p), "access_estsize": size, "rows": 0}

    def output_catalog_row(self, row: Sequence[Any]) -> None:
        if self.output_format == "sql":
            self._append([catalog_insert_sql(row, self.catalog_table, self.is_public)])
        else:
            obj = {"table": self.catalog_table, "row": list(row), "is_public": self.is_public}
            if self._catalog:
                obj["file_name"] = self._catalog["file_name"]
            self._append([json.dumps(obj, default=_json_default, ensure_ascii=False)])
        self.n_records += 1
        if self._catalog is not None:
            self._catalog["rows"] += 1

    def output_catalog_footer(self) -> None:
        if self.output_format == "sql":
            self._append(["commit;"])
        self._catalog = None

    def output_catalog_rollback(self) -> None:
        """Close an open catalog block without committing its rows.

        JSON lines already written stay in the file.
        """

        if self._catalog is None:
            return
        if self.output_format == "sql":
            self._append(["rollback;"])
            self.n_records -= self._catalog["rows"]
        self._catalog = None
