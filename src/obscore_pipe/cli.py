from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError
from rich import print
import yaml

from obscore_pipe.config import OUTPUT_FORMATS, RunConfig, load_config, merge_overrides
from obscore_pipe.log import setup_logging
from obscore_pipe.processor import FitsFileProcessor, resolve_aliases_file, resolve_fields_file
from obscore_pipe.version import __version__, get_version_info

EXIT_OK = 0
EXIT_BAD_FORMAT = 2
EXIT_BAD_OUTDIR = 4
EXIT_BAD_ALIASES = 10
EXIT_BAD_FIELDS = 11


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="obscore-pipe",
        description="Extract ObsCore metadata from FITS files into SQL or JSON.",
    )
    p.add_argument("paths", nargs="*", help="FITS files and/or directories (searched recursively)")
    p.add_argument(
        "-a",
        "--aliases",
        default=None,
        help="File of aliases (FITS keyword to ObsCore keyword) [default: jwst-aliases.txt]",
    )
    p.add_argument(
        "-i",
        "--info",
        default=None,
        help="File listing information on fields to be processed [default: obscore-fields.txt]",
    )
    p.add_argument("-f", "--format", default=None, help="Output format: sql|json [default: sql]")
    p.add_argument(
        "-o",
        "--outdir",
        default=None,
        help="Existing writable directory for the output file [default: out]",
    )
    p.add_argument("-c", "--config", default=None, help="YAML run configuration")
    p.add_argument(
        "--log-level",
        default=None,
        help="CRITICAL|ERROR|WARNING|INFO|DEBUG (or env OBSCORE_LOG_LEVEL)",
    )
    p.add_argument("-v", "--verbose", action="store_true", default=None, help="Run in verbose mode")
    p.add_argument("-d", "--debug", action="store_true", default=None, help="Print debugging output")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def _writable_dir(p: str | Path) -> bool:
    pp = Path(p)
    return pp.is_dir() and os.access(pp, os.W_OK)


def main(argv: Sequence[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if not args.paths:
        p.print_usage()
        return EXIT_OK

    if args.format is not None and args.format.strip().lower() not in OUTPUT_FORMATS:
        print(f"[red]ERROR:[/red] Output format argument must be one of: {', '.join(OUTPUT_FORMATS)}")
        return EXIT_BAD_FORMAT

    try:
        cfg = load_config(args.config) if args.config else RunConfig()
        cfg = merge_overrides(
            cfg,
            aliases_file=args.aliases,
            fields_file=args.info,
            output_format=args.format,
            output_dir=args.outdir,
            verbose=args.verbose,
            debug=args.debug,
        )
    except ValidationError as e:
        print(f"[red]ERROR:[/red] Invalid run configuration:\n{e}")
        return EXIT_BAD_FORMAT
    except (OSError, yaml.YAMLError, ValueError) as e:
        print(f"[red]ERROR:[/red] Unable to read run configuration '{args.config}': {e}")
        return EXIT_BAD_FORMAT

    setup_logging(args.log_level, verbose=cfg.verbose, debug=cfg.debug)
    log = logging.getLogger("obscore_pipe")
    v = get_version_info()
    log.debug("obscore-pipe %s (python %s, %s)", v.package_version, v.python, v.platform)

    try:
        resolve_aliases_file(cfg)
    except FileNotFoundError:
        print(f"[red]ERROR:[/red] Unable to find and read the specified aliases file '{cfg.aliases_file}'. Exiting...")
        return EXIT_BAD_ALIASES
    try:
        resolve_fields_file(cfg)
    except FileNotFoundError:
        print(f"[red]ERROR:[/red] Unable to find and read the specified fields info file '{cfg.fields_file}'. Exiting...")
        return EXIT_BAD_FIELDS

    if not _writable_dir(cfg.output_dir):
        print(f"[red]ERROR:[/red] Directory '{cfg.output_dir}' must exist and be writable. Exiting...")
        return EXIT_BAD_OUTDIR

    processor = FitsFileProcessor(cfg, logger=log)
    summary = processor.process_paths(args.paths)

    print(
        f"[bold]FITS files processed/seen:[/bold] {summary.n_processed} / {summary.n_seen}"
        f" ({summary.elapsed:.2f} s)"
    )
    if summary.skipped:
        print("[yellow]Skipped:[/yellow]")
        for s in summary.skipped:
            print(f" - {s}")
    if summary.n_processed:
        print(f"[bold]Output:[/bold] {summary.output_path}")
    return EXIT_OK
