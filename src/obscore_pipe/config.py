"""Run configuration (YAML + pydantic).

A run is described by a small YAML file; every key is optional and command
line flags override what the file says::

    aliases_file: my-aliases.txt      # relative to this file
    fields_file: obscore-fields.txt
    output_dir: out
    output_format: sql                # sql | json

Unknown keys are kept (``extra="allow"``) and reported as warnings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import yaml

from obscore_pipe.metadata.schema_table import DEFAULT_COLUMN_NAMES

log = logging.getLogger(__name__)

OUTPUT_FORMATS = ("sql", "json")
FILE_TYPES = (".fits", ".fits.gz")


class RunConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    aliases_file: Optional[str] = None
    fields_file: Optional[str] = None
    column_names: List[str] = Field(default_factory=lambda: list(DEFAULT_COLUMN_NAMES))

    output_dir: str = "out"
    output_format: Literal["sql", "json"] = "sql"

    hdu: int = Field(default=0, ge=0)
    file_types: List[str] = Field(default_factory=lambda: list(FILE_TYPES))

    image_table: str = "sia.jwst"
    catalog_table: str = "sia.jcat"
    is_public: int = 0

    verbose: bool = False
    debug: bool = False

    # injected by load_config
    config_path: Optional[str] = None
    config_dir: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_lists(cls, data: Any) -> Any:
        # Allow a single string where a list is expected (common user typo).
        if not isinstance(data, dict):
            return data
        out = dict(data)
        for k in ("file_types", "column_names"):
            v = out.get(k)
            if isinstance(v, str):
                out[k] = [s.strip() for s in v.split(",") if s.strip()]
        return out

    @field_validator("output_format", mode="before")
    @classmethod
    def _lower_format(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("file_types")
    @classmethod
    def _dotted_suffixes(cls, v: List[str]) -> List[str]:
        return [s if s.startswith(".") else f".{s}" for s in v]

    def unknown_keys(self) -> List[str]:
        return sorted((self.model_extra or {}).keys())


def _norm_path_str(p: str) -> str:
    """Normalize path separators to forward slashes for YAML round-trips."""
    return str(p).replace("\\", "/")


def resolve_path(p: str | Path, *, base_dir: Path) -> Path:
    pp = Path(_norm_path_str(str(p))).expanduser()
    return pp if pp.is_absolute() else (base_dir / pp).resolve()


def load_config(cfg_path: str | Path) -> RunConfig:
    """Load a YAML run config and resolve relative paths against its directory.

    Resource files that do not exist next to the config are left as given, so
    packaged resource names (``jwst-aliases.txt``) keep working.
    """

    cfg_path = Path(cfg_path).expanduser().resolve()
    cfg_dir = cfg_path.parent
    raw: Dict[str, Any] = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config root must be a mapping: {cfg_path}")

    raw["config_path"] = str(cfg_path)
    raw["config_dir"] = str(cfg_dir)

    if raw.get("output_dir"):
        raw["output_dir"] = str(resolve_path(raw["output_dir"], base_dir=cfg_dir))
    for k in ("aliases_file", "fields_file"):
        if raw.get(k):
            cand = resolve_path(raw[k], base_dir=cfg_dir)
            if cand.is_file():
                raw[k] = str(cand)

    cfg = RunConfig.model_validate(raw)
    unknown = cfg.unknown_keys()
    if unknown:
        log.warning("Unknown config keys in %s: %s", cfg_path, ", ".join(unknown))
    return cfg


def merge_overrides(cfg: RunConfig, **overrides: Any) -> RunConfig:
    """Return a copy of ``cfg`` with the non-None ``overrides`` applied."""

    upd = {k: v for k, v in overrides.items() if v is not None}
    if not upd:
        return cfg
    return RunConfig.model_validate({**cfg.model_dump(), **upd})


def _normalize_cfg_paths_for_yaml(obj: Any):
    if isinstance(obj, dict):
        return {k: _normalize_cfg_paths_for_yaml(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_normalize_cfg_paths_for_yaml(v) for v in obj]
    if isinstance(obj, str):
        return obj.replace("\\", "/")
    return obj


def write_config(cfg: RunConfig | dict[str, Any], out_path: str | Path) -> None:
    data = cfg.model_dump() if isinstance(cfg, RunConfig) else dict(cfg)
    for k in ("config_path", "config_dir"):
        data.pop(k, None)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(_normalize_cfg_paths_for_yaml(data), f, sort_keys=False, allow_unicode=True)
