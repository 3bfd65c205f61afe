"""Per-file working state: one :class:`FieldRecord` per schema key."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Mapping

from .coercion import Datatype
from .schema_table import SchemaEntry


@dataclass
class FieldRecord:
    """Mutable resolution state of one canonical field.

    ``value is None`` means "unset".
    """

    entry: SchemaEntry
    header_key: str | None = None
    header_value: str | None = None
    value: Any = None
    source: str | None = None  # file | header:<KEY> | default | computed:<rule>

    @property
    def key(self) -> str:
        return self.entry.key

    @property
    def datatype(self) -> Datatype | str:
        return self.entry.datatype

    @property
    def required(self) -> bool:
        return self.entry.required

    @property
    def has_value(self) -> bool:
        return self.value is not None

    def attach_header(self, header_key: str, header_value: str) -> None:
        self.header_key = header_key
        self.header_value = header_value

    def set_value(self, value: Any, source: str) -> bool:
        """Set the value unless one is already present. Returns True if set."""

        if value is None or self.value is not None:
            return False
        self.value = value
        self.source = source
        return True


class FieldsInfo:
    """Ordered container canonical key -> :class:`FieldRecord` for one file.

    The key set is fixed at construction.
    """

    def __init__(self, schema: Mapping[str, SchemaEntry]):
        self._records: dict[str, FieldRecord] = {k: FieldRecord(entry=e) for k, e in schema.items()}

    @classmethod
    def from_schema(cls, schema: Mapping[str, SchemaEntry]) -> "FieldsInfo":
        return cls(schema)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __getitem__(self, key: str) -> FieldRecord:
        return self._records[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def keys(self):
        return self._records.keys()

    def records(self) -> Iterator[FieldRecord]:
        return iter(self._records.values())

    def items(self):
        return self._records.items()

    def get(self, key: str) -> FieldRecord | None:
        return self._records.get(key)

    def has_all(self, *keys: str) -> bool:
        return all(k in self._records for k in keys)

    def value_for(self, key: str) -> Any:
        rec = self._records.get(key)
        return rec.value if rec is not None else None

    def has_value_for(self, key: str) -> bool:
        return self.value_for(key) is not None

    def set_value_for(self, key: str, value: Any, source: str) -> bool:
        rec = self._records.get(key)
        if rec is None:
            return False
        return rec.set_value(value, source)

    def copy_value(self, from_key: str, to_key: str) -> bool:
        """Copy a value between fields; never overwrites the target."""

        src = self._records.get(from_key)
        if src is None or not src.has_value:
            return False
        return self.set_value_for(to_key, src.value, f"copy:{from_key}")

    def valued(self) -> dict[str, Any]:
        """Return ``{key: value}`` for set fields, in schema order."""

        return {k: r.value for k, r in self._records.items() if r.has_value}

    def missing(self, *, required_only: bool = False) -> list[str]:
        return [
            k
            for k, r in self._records.items()
            if not r.has_value and (r.required or not required_only)
        ]

    def provenance(self) -> dict[str, str]:
        return {k: r.source for k, r in self._records.items() if r.source}

    def __repr__(self) -> str:
        return f"FieldsInfo({len(self._records)} fields, {len(self.valued())} set)"
