"""Header keyword aliases: raw FITS keyword -> canonical (ObsCore) key."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Mapping

from .schema_table import COLUMN_NAME_MARKER, LineSource, is_skippable, iter_resource_lines, split_record

log = logging.getLogger(__name__)


def load_aliases(source: LineSource) -> Mapping[str, str]:
    """Load the alias table as a read-only mapping.

    Two columns per line (``rawHeaderKey, canonicalKey``); everything else is
    ignored. When a header key is listed twice the last line wins.
    """

    aliases: dict[str, str] = {}
    for line in iter_resource_lines(source):
        if is_skippable(line) or line.startswith(COLUMN_NAME_MARKER):
            continue
        flds = split_record(line)
        if len(flds) != 2 or not flds[0] or not flds[1]:
            log.debug("Ignoring malformed alias line: %r", line)
            continue
        aliases[flds[0]] = flds[1]

    log.debug("Read %d field name aliases", len(aliases))
    return MappingProxyType(aliases)
