"""I/O collaborators: FITS decoding, WCS transform and record output."""
