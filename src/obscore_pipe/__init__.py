"""obscore-pipe package.

Extracts ObsCore metadata from FITS image headers and writes it out as SQL
insert scripts or JSON Lines.
"""

from .version import __version__

__all__ = ["__version__"]
