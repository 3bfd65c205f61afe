"""Field resolution engine: header strings -> one typed ObsCore record.

For a single file the engine runs these stages over one fresh
:class:`~obscore_pipe.metadata.fields.FieldsInfo`:

1. file identity (name, absolute path, size) and plate scale;
2. header aliasing (attach raw key/value to the canonical field);
3. type coercion of attached header strings;
4. default fill from the schema;
5. compute rules for the fields that are still unset;
6. required-field audit (warnings only).

No stage overwrites a value set by an earlier one. Field-level problems are
logged and leave the field unset. An unsupported projection aborts the file;
:meth:`FieldResolutionEngine.resolve` reports that as :class:`Aborted` rather
than raising, so callers have to handle both outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Mapping, Union

from .coercion import coerce
from .errors import AbortFileProcessing, ConversionError, UnknownDatatypeError
from .fields import FieldRecord, FieldsInfo
from .geometry import GeometryCalculator, TransformFactory
from .rules import ComputeRule, RuleContext, default_rules

# File identity keys filled before any header lookup.
FILE_NAME_KEY = "file_name"
FILE_PATH_KEY = "file_path"
FILE_SIZE_KEY = "access_estsize"
PLATE_SCALE_KEY = "im_scale"


@dataclass(frozen=True)
class FileIdentity:
    name: str
    path: str
    size: int | None = None

    @classmethod
    def from_path(cls, path: str | Path) -> "FileIdentity":
        p = Path(path).expanduser().resolve()
        try:
            size: int | None = p.stat().st_size
        except OSError:
            size = None
        return cls(name=p.name, path=str(p), size=size)


@dataclass(frozen=True)
class Resolved:
    """All stages completed; ``fields`` may still miss some required values."""

    fields: FieldsInfo
    missing_required: tuple[str, ...] = ()
    missing_optional: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return True

    @property
    def complete(self) -> bool:
        return not self.missing_required


@dataclass(frozen=True)
class Aborted:
    """Resolution of the whole file was given up."""

    reason: str
    path: str | None = None
    context: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False


ResolutionOutcome = Union[Resolved, Aborted]


class FieldResolutionEngine:
    """Resolve header fields into a :class:`FieldsInfo`.

    Parameters
    ----------
    aliases:
        Read-only mapping raw header keyword -> canonical key.
    rules:
        Compute-rule registry; :func:`~obscore_pipe.metadata.rules.default_rules`
        when omitted.
    transform_factory:
        Builds the pixel -> sky transform from header fields. Without one the
        footprint fields stay unset.
    logger:
        Where warnings and diagnostics go.
    """

    def __init__(
        self,
        aliases: Mapping[str, str],
        *,
        rules: Mapping[str, ComputeRule] | None = None,
        transform_factory: TransformFactory | None = None,
        logger: logging.Logger | None = None,
    ):
        self.aliases = aliases
        self.rules: Mapping[str, ComputeRule] = dict(rules) if rules is not None else default_rules()
        self.transform_factory = transform_factory
        self.log = logger or logging.getLogger(__name__)

    # -----------------------------
    # Stages
    # -----------------------------

    def inject_file_identity(self, identity: FileIdentity, fields: FieldsInfo) -> None:
        fields.set_value_for(FILE_NAME_KEY, identity.name, "file")
        fields.set_value_for(FILE_PATH_KEY, identity.path, "file")
        fields.set_value_for(FILE_SIZE_KEY, identity.size, "file")

    def inject_plate_scale(self, geometry: GeometryCalculator, fields: FieldsInfo) -> None:
        fields.set_value_for(PLATE_SCALE_KEY, geometry.scale, "computed:plate_scale")

    def attach_header_values(self, header: Mapping[str, str], fields: FieldsInfo) -> int:
        """Attach raw header key/value pairs to their canonical fields."""

        n = 0
        for hdr_key, hdr_value in header.items():
            key = self.aliases.get(hdr_key)
            if key is None:
                continue
            rec = fields.get(key)
            if rec is None:
                continue
            rec.attach_header(hdr_key, hdr_value)
            n += 1
        return n

    def _coerce_into(self, rec: FieldRecord, raw: str, source: str, what: str) -> bool:
        try:
            value = coerce(raw, rec.datatype)
        except ConversionError:
            self.log.warning(
                "Unable to convert %s %r for field %r to %r. Field value not set.",
                what,
                raw,
                rec.header_key if what == "value" and rec.header_key else rec.key,
                str(getattr(rec.datatype, "value", rec.datatype)),
            )
            return False
        except UnknownDatatypeError:
            self.log.warning(
                "Unknown datatype %r for field %r. Field value not set.",
                str(rec.datatype),
                rec.key,
            )
            return False
        return rec.set_value(value, source)

    def coerce_header_values(self, fields: FieldsInfo) -> int:
        n = 0
        for rec in fields.records():
            if rec.has_value or rec.header_value is None:
                continue
            if self._coerce_into(rec, rec.header_value, f"header:{rec.header_key}", "value"):
                n += 1
        return n

    def fill_defaults(self, fields: FieldsInfo) -> int:
        """Fill unset fields from their schema default. Safe to call repeatedly."""

        n = 0
        for rec in fields.records():
            if rec.has_value or not rec.entry.has_default:
                continue
            if self._coerce_into(rec, rec.entry.default, "default", "default value"):
                n += 1
        return n

    def compute_values(self, ctx: RuleContext) -> int:
        """Run the compute rule of every unset field that has one.

        :class:`AbortFileProcessing` propagates to :meth:`resolve`.
        """

        n = 0
        for rec in ctx.fields.records():
            if rec.has_value:
                continue
            fn = self.rules.get(rec.key)
            if fn is None:
                continue
            value = fn(ctx)
            if rec.set_value(value, f"computed:{getattr(fn, '__name__', 'rule')}"):
                n += 1
        return n

    def audit_required(self, fields: FieldsInfo) -> tuple[list[str], list[str]]:
        missing_required: list[str] = []
        missing_optional: list[str] = []
        for rec in fields.records():
            if rec.has_value:
                continue
            if rec.required:
                missing_required.append(rec.key)
                self.log.warning("Required field %r still does not have a value.", rec.key)
            else:
                missing_optional.append(rec.key)
                self.log.debug("Optional field %r still does not have a value.", rec.key)
        return missing_required, missing_optional

    # -----------------------------
    # Entry point
    # -----------------------------

    def resolve(
        self,
        identity: FileIdentity | str | Path,
        header: Mapping[str, str],
        fields: FieldsInfo,
    ) -> ResolutionOutcome:
        """Run all stages for one file.

        ``fields`` must be a fresh instance for this file; it is filled in place
        and returned inside :class:`Resolved`.
        """

        if not isinstance(identity, FileIdentity):
            identity = FileIdentity.from_path(identity)

        geometry = GeometryCalculator(header, self.transform_factory)

        self.inject_file_identity(identity, fields)
        self.inject_plate_scale(geometry, fields)
        self.attach_header_values(header, fields)
        n_hdr = self.coerce_header_values(fields)
        n_def = self.fill_defaults(fields)

        try:
            n_cmp = self.compute_values(RuleContext(header=header, fields=fields, geometry=geometry))
        except AbortFileProcessing as e:
            self.log.error("Failed to process file '%s': %s", identity.path, e)
            return Aborted(reason=str(e), path=identity.path, context=dict(e.context))

        self.log.debug(
            "%s: %d header values, %d defaults, %d computed",
            identity.name,
            n_hdr,
            n_def,
            n_cmp,
        )
        for key, src in fields.provenance().items():
            self.log.debug("  %s <- %s", key, src)

        missing_required, missing_optional = self.audit_required(fields)
        return Resolved(
            fields=fields,
            missing_required=tuple(missing_required),
            missing_optional=tuple(missing_optional),
        )
