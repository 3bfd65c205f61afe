"""Run driver: one FITS file at a time, header -> resolved record -> output.

Image files go through :class:`~obscore_pipe.metadata.engine.FieldResolutionEngine`;
catalog files (any FITS table extension) are copied row by row to the catalog
table. A file that cannot be read or resolved is logged and skipped; it never
stops the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Iterable, Mapping

from obscore_pipe.config import RunConfig
from obscore_pipe.discovery import iter_input_files
from obscore_pipe.io.fits_header import is_catalog_file, iter_catalog_rows, read_header_fields
from obscore_pipe.io.output import InformationOutputter
from obscore_pipe.io.wcs_transform import build_transform
from obscore_pipe.log import timer
from obscore_pipe.metadata.aliases import load_aliases
from obscore_pipe.metadata.engine import Aborted, FieldResolutionEngine, FileIdentity
from obscore_pipe.metadata.fields import FieldsInfo
from obscore_pipe.metadata.schema_table import SchemaEntry, load_schema
from obscore_pipe.resource_utils import (
    DEFAULT_ALIASES_RESOURCE,
    DEFAULT_FIELDS_RESOURCE,
    ResourceResolution,
    resolve_resource,
)


def resolve_aliases_file(cfg: RunConfig) -> ResourceResolution:
    return resolve_resource(cfg.aliases_file or DEFAULT_ALIASES_RESOURCE, config_dir=cfg.config_dir)


def resolve_fields_file(cfg: RunConfig) -> ResourceResolution:
    return resolve_resource(cfg.fields_file or DEFAULT_FIELDS_RESOURCE, config_dir=cfg.config_dir)


@dataclass
class RunSummary:
    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    output_path: Path | None = None
    elapsed: float = 0.0

    @property
    def n_processed(self) -> int:
        return len(self.processed)

    @property
    def n_seen(self) -> int:
        return len(self.processed) + len(self.skipped)


class FitsFileProcessor:
    """Process FITS files with one alias table and one field schema.

    The alias table and the schema are read once; every file gets a fresh
    :class:`FieldsInfo`.
    """

    def __init__(
        self,
        cfg: RunConfig | None = None,
        *,
        aliases: Mapping[str, str] | None = None,
        schema: Mapping[str, SchemaEntry] | None = None,
        outputter: InformationOutputter | None = None,
        engine: FieldResolutionEngine | None = None,
        logger: logging.Logger | None = None,
    ):
        self.cfg = cfg or RunConfig()
        self.log = logger or logging.getLogger(__name__)

        if aliases is None:
            res = resolve_aliases_file(self.cfg)
            self.log.debug("Aliases file: %s (%s)", res.path, res.source)
            aliases = load_aliases(res.path)
        if schema is None:
            res = resolve_fields_file(self.cfg)
            self.log.debug("Fields file: %s (%s)", res.path, res.source)
            schema = load_schema(res.path, column_names=self.cfg.column_names)

        self.aliases = aliases
        self.schema = schema
        self.outputter = outputter or InformationOutputter.from_config(self.cfg)
        self.engine = engine or FieldResolutionEngine(
            aliases,
            transform_factory=build_transform,
            logger=self.log,
        )

    def new_fields(self) -> FieldsInfo:
        return FieldsInfo(self.schema)

    def process_catalog(self, path: Path) -> int:
        n_rows = 0
        try:
            self.outputter.output_catalog_header(path)
            for row in iter_catalog_rows(path):
                self.outputter.output_catalog_row(row)
                n_rows += 1
            self.outputter.output_catalog_footer()
        except Exception as e:  # astropy raises many unrelated types on bad tables
            self.log.error("Failed to process catalog file '%s': %s", path, e)
            try:
                self.outputter.output_catalog_rollback()
            except OSError as oe:
                self.log.error("Unable to close catalog block for '%s': %s", path, oe)
            return 0
        if self.cfg.verbose:
            self.log.info("Catalog '%s': %d rows", path, n_rows)
        return 1

    def process_file(self, path: str | Path) -> int:
        """Process one file; return 1 if a record was written, 0 otherwise."""

        path = Path(path)
        if is_catalog_file(path):
            return self.process_catalog(path)

        header = read_header_fields(path, self.cfg.hdu)
        if header is None:
            return 0

        if self.cfg.verbose:
            self.log.info("Processing FITS file '%s'", path.resolve())

        outcome = self.engine.resolve(FileIdentity.from_path(path), header, self.new_fields())
        if isinstance(outcome, Aborted):
            return 0

        try:
            self.outputter.output_image_info(outcome.fields)
        except OSError as e:
            self.log.error("Unable to write output for '%s': %s", path, e)
            return 0
        return 1

    def process_paths(self, paths: Iterable[str | Path]) -> RunSummary:
        summary = RunSummary(output_path=self.outputter.output_path)
        with timer("process FITS files", self.log) as t:
            for p in iter_input_files(paths, self.cfg.file_types):
                try:
                    ok = self.process_file(p)
                except Exception as e:
                    self.log.error("Failed to process file '%s': %s", p, e)
                    ok = 0
                if ok:
                    summary.processed.append(str(p))
                else:
                    summary.skipped.append(str(p))
        summary.elapsed = t.elapsed
        if self.cfg.verbose:
            self.log.info("Processed %d FITS files.", summary.n_processed)
        return summary
