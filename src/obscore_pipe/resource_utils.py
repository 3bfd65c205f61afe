from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path


DEFAULT_FIELDS_RESOURCE = "obscore-fields.txt"
DEFAULT_ALIASES_RESOURCE = "jwst-aliases.txt"


@dataclass(frozen=True)
class ResourceResolution:
    """Resolved resource location + provenance."""

    path: Path
    source: str  # absolute|cwd|config_dir|package


def _package_file(name: str) -> Path | None:
    """Return the on-disk path of a resource shipped in ``obscore_pipe/resources``."""

    ref = resources.files("obscore_pipe") / "resources" / name
    if not ref.is_file():
        return None
    return Path(str(ref))


def resolve_resource(
    name_or_path: str | Path,
    *,
    config_dir: str | Path | None = None,
    allow_package: bool = True,
) -> ResourceResolution:
    """Resolve a resource path with fallbacks.

    Resolution order for relative inputs:
      1) current directory / name
      2) config_dir / name
      3) packaged resource obscore_pipe/resources/<name>, bare names only

    A relative path with a directory part must exist under cwd or config_dir.

    Returns ResourceResolution(path, source) or raises FileNotFoundError.
    """

    p = Path(str(name_or_path)).expanduser()
    if p.is_absolute():
        if p.is_file():
            return ResourceResolution(path=p, source="absolute")
        raise FileNotFoundError(f"Resource not found: {p}")

    if p.is_file():
        return ResourceResolution(path=p.resolve(), source="cwd")

    if config_dir:
        cand = (Path(config_dir) / p).resolve()
        if cand.is_file():
            return ResourceResolution(path=cand, source="config_dir")

    if allow_package and len(p.parts) == 1:
        pkg = _package_file(p.name)
        if pkg is not None:
            return ResourceResolution(path=pkg, source="package")

    raise FileNotFoundError(f"Resource '{p}' not found. Tried cwd/config_dir/package.")


def packaged_resource(name: str) -> Path:
    p = _package_file(name)
    if p is None:
        raise FileNotFoundError(f"Packaged resource missing: {name}")
    return p


def default_fields_path() -> Path:
    return packaged_resource(DEFAULT_FIELDS_RESOURCE)


def default_aliases_path() -> Path:
    return packaged_resource(DEFAULT_ALIASES_RESOURCE)
