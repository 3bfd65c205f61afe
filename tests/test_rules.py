from __future__ import annotations

import pytest

from obscore_pipe.metadata.fields import FieldsInfo
from obscore_pipe.metadata.geometry import GeometryCalculator
from obscore_pipe.metadata.rules import (
    RuleContext,
    default_rules,
    register_rule,
    target_name_from_filename,
)
from obscore_pipe.metadata.schema_table import load_schema


CORNERS_SCHEMA = [f"im_{a}{i}, double, true, *" for i in range(1, 5) for a in ("ra", "dec")]


class LinearTransform:
    def pixel_to_sky(self, x, y):
        return 10.0 + x, 20.0 + y


def _ctx(schema_lines, header=None, factory=None):
    fields = FieldsInfo(load_schema(schema_lines))
    header = header or {}
    return RuleContext(header=header, fields=fields, geometry=GeometryCalculator(header, factory))


def test_registry_is_enumerable_and_copied():
    rules = default_rules()
    for key in (
        "s_ra",
        "s_dec",
        "im_ra1",
        "im_dec4",
        "spat_lolimit1",
        "spat_hilimit2",
        "im_naxis1",
        "im_naxis2",
        "s_resolution",
        "im_pixtype",
        "access_url",
        "instrument_name",
        "target_name",
    ):
        assert key in rules, key
    rules.pop("s_ra")
    assert "s_ra" in default_rules()


def test_register_rule_extends_a_registry():
    rules = register_rule(default_rules(), "obs_id", lambda ctx: "X")
    assert rules["obs_id"](None) == "X"
    assert "obs_id" not in default_rules()


def test_corner_rules_need_all_eight_keys():
    header = {"CTYPE1": "RA---TAN", "CTYPE2": "DEC--TAN", "NAXIS1": "10", "NAXIS2": "5"}
    rules = default_rules()

    ctx = _ctx(CORNERS_SCHEMA, header, lambda h: LinearTransform())
    assert rules["im_ra3"](ctx) == pytest.approx(20.0)
    assert rules["im_dec3"](ctx) == pytest.approx(25.0)
    assert rules["spat_hilimit1"](ctx) == pytest.approx(20.0)

    partial = _ctx(CORNERS_SCHEMA[:-1], header, lambda h: LinearTransform())
    assert rules["im_ra1"](partial) is None
    assert rules["spat_lolimit1"](partial) is None


def test_simple_rules():
    ctx = _ctx(
        [
            "s_xel1, integer, true, *",
            "filter, string, false, *",
            "file_path, string, true, *",
            "nircam_module, string, false, *",
            "file_name, string, true, *",
        ],
        header={"BITPIX": "-32"},
    )
    f = ctx.fields
    f.set_value_for("s_xel1", 16160, "header:NAXIS1")
    f.set_value_for("filter", "F090W", "header:FILTER")
    f.set_value_for("file_path", "/images/goods_s_F090W.fits", "file")
    f.set_value_for("file_name", "goods_s_F090W.fits", "file")

    rules = default_rules()
    assert rules["im_naxis1"](ctx) == 16160
    assert rules["im_naxis2"](ctx) is None
    assert rules["s_resolution"](ctx) == pytest.approx(0.034)
    assert rules["im_pixtype"](ctx) == "float"
    assert rules["access_url"](ctx) == "file:///images/goods_s_F090W.fits"
    assert rules["instrument_name"](ctx) == "NIRCam"
    assert rules["target_name"](ctx) == "goods_south"

    f.set_value_for("nircam_module", "A", "header:MODULE")
    assert rules["instrument_name"](ctx) == "NIRCam-A"


def test_target_name_prefixes():
    assert target_name_from_filename("goods-n_F200W.fits") == "goods_north"
    assert target_name_from_filename("/data/GOODS_S_deep.fits.gz") == "goods_south"
    assert target_name_from_filename("cosmos_F200W.fits") is None
    assert target_name_from_filename(None) is None
