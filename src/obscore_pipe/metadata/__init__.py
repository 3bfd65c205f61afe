"""Field resolution layer.

Turns the raw key/value cards of one FITS header into a typed ObsCore record:
schema and alias tables, type coercion, compute rules (geometry included) and
the engine that runs them in order.
"""

from __future__ import annotations

from .aliases import load_aliases
from .coercion import Datatype, coerce, format_value
from .engine import Aborted, FieldResolutionEngine, FileIdentity, ResolutionOutcome, Resolved
from .errors import AbortFileProcessing, CoercionError, ConversionError, ObscorePipeError, UnknownDatatypeError
from .fields import FieldRecord, FieldsInfo
from .geometry import GeometryCalculator
from .rules import RuleContext, default_rules, register_rule
from .schema_table import SchemaEntry, load_schema

__all__ = [
    "AbortFileProcessing",
    "Aborted",
    "CoercionError",
    "ConversionError",
    "Datatype",
    "FieldRecord",
    "FieldResolutionEngine",
    "FieldsInfo",
    "FileIdentity",
    "GeometryCalculator",
    "ObscorePipeError",
    "ResolutionOutcome",
    "Resolved",
    "RuleContext",
    "SchemaEntry",
    "UnknownDatatypeError",
    "coerce",
    "default_rules",
    "format_value",
    "load_aliases",
    "load_schema",
    "register_rule",
]
