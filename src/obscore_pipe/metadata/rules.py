"""Compute rules for fields that are still unset after header + default fill.

A rule is a plain function ``(RuleContext) -> value | None``. ``None`` means
"inputs missing, leave the field unset". Rules never write to the
:class:`FieldsInfo` themselves; the engine does, so a rule cannot overwrite a
value set by an earlier stage.

The registry is an explicit ``{canonical key: rule}`` mapping;
:func:`default_rules` returns a fresh copy that callers may extend with
:func:`register_rule`.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

from .fields import FieldsInfo
from .geometry import CORNER_KEYS, LIMIT_KEYS, GeometryCalculator, pixel_type, spatial_resolution


@dataclass(frozen=True)
class RuleContext:
    header: Mapping[str, str]
    fields: FieldsInfo
    geometry: GeometryCalculator


ComputeRule = Callable[[RuleContext], Any]

_RULES: dict[str, ComputeRule] = {}

ALL_CORNER_KEYS: tuple[str, ...] = tuple(k for pair in CORNER_KEYS for k in pair)

# File-name prefix -> target name. Longest prefix wins.
TARGET_NAME_PREFIXES: dict[str, str] = {
    "goods_s": "goods_south",
    "goods-s": "goods_south",
    "goods_n": "goods_north",
    "goods-n": "goods_north",
}

DEFAULT_INSTRUMENT = "NIRCam"


def rule(*keys: str) -> Callable[[ComputeRule], ComputeRule]:
    """Register the decorated function for each canonical key in ``keys``."""

    def deco(fn: ComputeRule) -> ComputeRule:
        for k in keys:
            _RULES[k] = fn
        return fn

    return deco


def default_rules() -> dict[str, ComputeRule]:
    return dict(_RULES)


def register_rule(registry: dict[str, ComputeRule], key: str, fn: ComputeRule) -> dict[str, ComputeRule]:
    registry[key] = fn
    return registry


# -----------------------------
# Coordinates (projection check)
# -----------------------------


@rule("s_ra")
def compute_s_ra(ctx: RuleContext) -> float | None:
    coords = ctx.geometry.coordinates
    return coords[0] if coords else None


@rule("s_dec")
def compute_s_dec(ctx: RuleContext) -> float | None:
    coords = ctx.geometry.coordinates
    return coords[1] if coords else None


# -----------------------------
# Footprint
# -----------------------------


def _corner_rule(index: int, axis: int) -> ComputeRule:
    def compute(ctx: RuleContext) -> float | None:
        if not ctx.fields.has_all(*ALL_CORNER_KEYS):
            return None
        corners = ctx.geometry.corners
        if not corners or corners[index] is None:
            return None
        return corners[index][axis]

    compute.__name__ = f"compute_{CORNER_KEYS[index][axis]}"
    return compute


for _i, (_ra_key, _dec_key) in enumerate(CORNER_KEYS):
    _RULES[_ra_key] = _corner_rule(_i, 0)
    _RULES[_dec_key] = _corner_rule(_i, 1)


def _limit_rule(index: int) -> ComputeRule:
    def compute(ctx: RuleContext) -> float | None:
        if not ctx.fields.has_all(*ALL_CORNER_KEYS):
            return None
        limits = ctx.geometry.limits
        return limits[index] if limits else None

    compute.__name__ = f"compute_{LIMIT_KEYS[index]}"
    return compute


for _i, _key in enumerate(LIMIT_KEYS):
    _RULES[_key] = _limit_rule(_i)


# -----------------------------
# Simple derived fields
# -----------------------------


@rule("im_naxis1")
def compute_im_naxis1(ctx: RuleContext) -> Any:
    return ctx.fields.value_for("s_xel1")


@rule("im_naxis2")
def compute_im_naxis2(ctx: RuleContext) -> Any:
    return ctx.fields.value_for("s_xel2")


@rule("s_resolution")
def compute_s_resolution(ctx: RuleContext) -> float | None:
    return spatial_resolution(ctx.fields.value_for("filter"))


@rule("im_pixtype")
def compute_im_pixtype(ctx: RuleContext) -> str | None:
    return pixel_type(ctx.header.get("BITPIX"))


@rule("im_scale")
def compute_im_scale(ctx: RuleContext) -> float | None:
    return ctx.geometry.scale


@rule("access_url")
def compute_access_url(ctx: RuleContext) -> str | None:
    path = ctx.fields.value_for("file_path")
    if path is None:
        return None
    return f"file://{path}"


@rule("instrument_name")
def compute_instrument_name(ctx: RuleContext) -> str:
    module = ctx.fields.value_for("nircam_module")
    return f"{DEFAULT_INSTRUMENT}-{module}" if module else DEFAULT_INSTRUMENT


def target_name_from_filename(name: str | None) -> str | None:
    if not name:
        return None
    low = Path(str(name)).name.lower()
    for prefix in sorted(TARGET_NAME_PREFIXES, key=len, reverse=True):
        if low.startswith(prefix):
            return TARGET_NAME_PREFIXES[prefix]
    return None


@rule("target_name")
def compute_target_name(ctx: RuleContext) -> str | None:
    return target_name_from_filename(ctx.fields.value_for("file_name"))
