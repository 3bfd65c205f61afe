"""Module entry-point.

This enables running the project as a module:

    python -m obscore_pipe path/to/images

The canonical CLI entry-point is the console script ``obscore-pipe``.
"""

from __future__ import annotations

import sys

from obscore_pipe.cli import main


def _run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    _run()
