from __future__ import annotations

import logging
from pathlib import Path

import pytest

from obscore_pipe.metadata.engine import Aborted, FieldResolutionEngine, FileIdentity, Resolved
from obscore_pipe.metadata.fields import FieldsInfo
from obscore_pipe.metadata.schema_table import load_schema


SCHEMA_LINES = [
    "dataproduct_type, string, true, image",
    "calib_level, integer, true, 3",
    "file_name, string, true, *",
    "file_path, string, true, *",
    "access_estsize, integer, true, *",
    "access_url, string, true, *",
    "s_ra, double, true, *",
    "s_dec, double, true, *",
    "s_xel1, integer, true, *",
    "s_xel2, integer, true, *",
    "t_exptime, double, false, 0.0",
    "im_scale, double, true, *",
    "im_ra1, double, true, *",
    "im_dec1, double, true, *",
    "im_ra2, double, true, *",
    "im_dec2, double, true, *",
    "im_ra3, double, true, *",
    "im_dec3, double, true, *",
    "im_ra4, double, true, *",
    "im_dec4, double, true, *",
    "spat_lolimit1, double, true, *",
    "spat_hilimit1, double, true, *",
    "spat_lolimit2, double, true, *",
    "spat_hilimit2, double, true, *",
    "im_naxis1, integer, true, *",
    "im_pixtype, string, true, *",
    "gmt_date, date, false, *",
    "obs_id, string, true, *",
    "pupil, string, false, *",
]

ALIASES = {
    "NAXIS1": "s_xel1",
    "NAXIS2": "s_xel2",
    "EXPTIME": "t_exptime",
    "DATE-OBS": "gmt_date",
    "NOT_IN_SCHEMA": "nowhere",
}

IDENTITY = FileIdentity(name="goods_s_F090W.fits", path="/images/goods_s_F090W.fits", size=908847360)


class LinearTransform:
    def pixel_to_sky(self, x, y):
        return 53.0 + x * 1e-3, -28.0 + y * 1e-3


def _header(**extra):
    hdr = {
        "BITPIX": "-32",
        "NAXIS1": "100",
        "NAXIS2": "50",
        "CTYPE1": "RA---TAN",
        "CTYPE2": "DEC--TAN",
        "CRVAL1": "53.25",
        "CRVAL2": "-27.78",
        "CD1_1": "7.78e-6",
        "CD1_2": "0.0",
        "CD2_1": "0.0",
        "CD2_2": "7.78e-6",
        "EXPTIME": "1347.0",
        "DATE-OBS": "2018-08-29T12:41:07",
        "NOT_IN_SCHEMA": "x",
    }
    hdr.update(extra)
    return hdr


def _engine(**kw):
    kw.setdefault("transform_factory", lambda h: LinearTransform())
    return FieldResolutionEngine(ALIASES, **kw)


def _fields():
    return FieldsInfo(load_schema(SCHEMA_LINES))


def test_resolve_fills_header_defaults_and_computed_values():
    out = _engine().resolve(IDENTITY, _header(), _fields())
    assert isinstance(out, Resolved)
    assert out.ok
    f = out.fields

    assert f.value_for("file_name") == "goods_s_F090W.fits"
    assert f.value_for("access_estsize") == 908847360
    assert f.value_for("access_url") == "file:///images/goods_s_F090W.fits"
    assert f.value_for("dataproduct_type") == "image"
    assert f.value_for("calib_level") == 3
    assert f.value_for("s_xel1") == 100
    assert f.value_for("im_naxis1") == 100
    assert f.value_for("t_exptime") == pytest.approx(1347.0)
    assert f.value_for("gmt_date").year == 2018
    assert f.value_for("s_ra") == pytest.approx(53.25)
    assert f.value_for("s_dec") == pytest.approx(-27.78)
    assert f.value_for("im_pixtype") == "float"
    assert f.value_for("im_scale") == pytest.approx(3600.0 * (1.5 * 7.78e-6**2) ** 0.5)

    assert f.value_for("im_ra3") == pytest.approx(53.1)
    assert f.value_for("im_dec3") == pytest.approx(-27.95)
    assert f.value_for("spat_lolimit1") == pytest.approx(53.001)
    assert f.value_for("spat_hilimit2") == pytest.approx(-27.95)

    prov = f.provenance()
    assert prov["file_name"] == "file"
    assert prov["s_xel1"] == "header:NAXIS1"
    assert prov["calib_level"] == "default"
    assert prov["s_ra"].startswith("computed:")

    assert out.missing_required == ("obs_id",)
    assert out.missing_optional == ("pupil",)
    assert not out.complete


def test_dec_first_projection_swaps_reference_coordinates():
    out = _engine().resolve(IDENTITY, _header(CTYPE1="DEC--TAN", CTYPE2="RA---TAN"), _fields())
    assert isinstance(out, Resolved)
    assert out.fields.value_for("s_dec") == pytest.approx(53.25)
    assert out.fields.value_for("s_ra") == pytest.approx(-27.78)


@pytest.mark.parametrize("ctype1", ["RA---SIN", "GLAT-TAN", "RA---AIT"])
def test_unsupported_projection_aborts_without_coordinates(ctype1, caplog):
    fields = _fields()
    with caplog.at_level(logging.ERROR):
        out = _engine().resolve(IDENTITY, _header(CTYPE1=ctype1), fields)
    assert isinstance(out, Aborted)
    assert not out.ok
    assert out.path == IDENTITY.path
    assert "CTYPE1" in out.context
    for key in ("s_ra", "s_dec", "im_ra1", "im_dec1", "spat_lolimit1"):
        assert fields.value_for(key) is None
    assert "Failed to process file" in caplog.text


def test_bad_header_value_is_left_unset_with_warning(caplog):
    with caplog.at_level(logging.WARNING):
        out = _engine().resolve(IDENTITY, _header(NAXIS1="12.5"), _fields())
    assert isinstance(out, Resolved)
    assert out.fields.value_for("s_xel1") is None
    # the copy rule has nothing to copy either
    assert out.fields.value_for("im_naxis1") is None
    assert "NAXIS1" in caplog.text
    assert "s_xel1" in out.missing_required


def test_header_value_beats_default():
    out = _engine().resolve(IDENTITY, _header(EXPTIME="42"), _fields())
    assert out.fields.value_for("t_exptime") == pytest.approx(42.0)
    assert out.fields["t_exptime"].source == "header:EXPTIME"


def test_default_used_when_header_absent():
    hdr = _header()
    hdr.pop("EXPTIME")
    out = _engine().resolve(IDENTITY, hdr, _fields())
    assert out.fields.value_for("t_exptime") == 0.0
    assert out.fields["t_exptime"].source == "default"


def test_file_identity_is_never_overwritten_by_header():
    aliases = dict(ALIASES, FILENAME="file_name")
    eng = FieldResolutionEngine(aliases)
    out = eng.resolve(IDENTITY, _header(FILENAME="other.fits"), _fields())
    assert out.fields.value_for("file_name") == "goods_s_F090W.fits"


def test_fill_defaults_is_idempotent():
    eng = _engine()
    fields = _fields()
    eng.attach_header_values(_header(), fields)
    eng.coerce_header_values(fields)
    assert eng.fill_defaults(fields) == 2
    snapshot = dict(fields.valued())
    prov = fields.provenance()
    assert eng.fill_defaults(fields) == 0
    assert fields.valued() == snapshot
    assert fields.provenance() == prov


def test_bad_default_warns_and_leaves_field_unset(caplog):
    fields = FieldsInfo(load_schema(["calib_level, integer, true, three"]))
    with caplog.at_level(logging.WARNING):
        n = _engine().fill_defaults(fields)
    assert n == 0
    assert fields.value_for("calib_level") is None
    assert "three" in caplog.text


def test_unknown_datatype_is_field_local(caplog):
    fields = FieldsInfo(load_schema(["weird, complex, false, 1", "calib_level, integer, true, 3"]))
    with caplog.at_level(logging.WARNING):
        out = _engine().resolve(IDENTITY, {}, fields)
    assert isinstance(out, Resolved)
    assert out.fields.value_for("weird") is None
    assert out.fields.value_for("calib_level") == 3
    assert "Unknown datatype" in caplog.text


def test_no_transform_leaves_footprint_unset():
    out = FieldResolutionEngine(ALIASES).resolve(IDENTITY, _header(), _fields())
    assert isinstance(out, Resolved)
    assert out.fields.value_for("im_ra1") is None
    assert out.fields.value_for("spat_lolimit1") is None
    assert out.fields.value_for("s_ra") == pytest.approx(53.25)
    assert "im_ra1" in out.missing_required


def test_injected_logger_and_custom_rules(caplog):
    logger = logging.getLogger("test.engine.injected")
    rules = {"obs_id": lambda ctx: "FAKE_OBS_ID_1"}
    eng = FieldResolutionEngine(ALIASES, rules=rules, logger=logger)
    with caplog.at_level(logging.WARNING, logger="test.engine.injected"):
        out = eng.resolve(IDENTITY, _header(), _fields())
    assert out.fields.value_for("obs_id") == "FAKE_OBS_ID_1"
    # default rules are replaced, not merged
    assert out.fields.value_for("s_ra") is None
    assert any(r.name == "test.engine.injected" for r in caplog.records)


def test_identity_from_path(tmp_path: Path):
    p = tmp_path / "img.fits"
    p.write_bytes(b"x" * 2880)
    ident = FileIdentity.from_path(p)
    assert ident.name == "img.fits"
    assert ident.size == 2880
    assert Path(ident.path).is_absolute()
