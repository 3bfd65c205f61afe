"""Console logging for obscore-pipe runs.

Quiet by default: only warnings and errors (skipped files, fields left
without a value). ``verbose`` adds per-file progress, ``debug`` adds field
provenance and logger names.
"""

from __future__ import annotations

import logging
import os
import time

from rich.logging import RichHandler

LOG_LEVEL_ENV = "OBSCORE_LOG_LEVEL"
_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def resolve_level(level: str | None = None, *, verbose: bool = False, debug: bool = False) -> str:
    """Pick the console level of a run.

    ``debug`` wins; then an explicit ``level``, then ``OBSCORE_LOG_LEVEL``.
    Unknown names are ignored. Without any of these the level is INFO for
    verbose runs and WARNING otherwise.
    """

    if debug:
        return "DEBUG"
    for cand in (level, os.environ.get(LOG_LEVEL_ENV)):
        if cand is None:
            continue
        name = str(cand).upper().strip()
        if name in _LEVELS:
            return name
    return "INFO" if verbose else "WARNING"


def setup_logging(level: str | None = None, *, verbose: bool = False, debug: bool = False) -> str:
    """Install a single RichHandler on the root logger and return the level used."""

    name = resolve_level(level, verbose=verbose, debug=debug)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = RichHandler(
        show_path=debug,
        rich_tracebacks=debug,
        markup=False,
        log_time_format="[%H:%M:%S]",
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s" if debug else "%(message)s"))
    root.addHandler(handler)
    root.setLevel(name)
    return name


class timer:
    """Measure a block; ``elapsed`` holds its wall time in seconds afterwards.

    with timer("process FITS files", log) as t:
        ...
    summary.elapsed = t.elapsed
    """

    def __init__(self, name: str, logger: logging.Logger | None = None):
        self.name = name
        self.logger = logger or logging.getLogger("obscore_pipe")
        self.elapsed = 0.0
        self._start = 0.0

    def __enter__(self) -> "timer":
        self._start = time.perf_counter()
        self.logger.debug("Starting: %s", self.name)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.elapsed = time.perf_counter() - self._start
        if exc is None:
            self.logger.info("Finished: %s in %.2f s", self.name, self.elapsed)
        else:
            self.logger.error("Interrupted: %s after %.2f s (%s)", self.name, self.elapsed, exc)
        return False
