"""Error taxonomy for field resolution.

Field-local errors (:class:`ConversionError`, :class:`UnknownDatatypeError`)
are caught by the engine and downgraded to warnings. :class:`AbortFileProcessing`
is the only error that terminates the resolution of a whole file.
"""

from __future__ import annotations

from typing import Any


class ObscorePipeError(RuntimeError):
    """Base class for all errors raised by obscore-pipe."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        self.context = context or {}
        base = message
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in list(self.context.items())[:8])
            base += f" | ctx: {ctx}"
        super().__init__(base)


class CoercionError(ObscorePipeError, ValueError):
    """A string could not be turned into a typed value."""


class ConversionError(CoercionError):
    """Raised when a value string cannot be parsed as the target datatype."""

    def __init__(self, value: str, datatype: str):
        self.value = value
        self.datatype = str(datatype)
        super().__init__(f"Unable to convert value {value!r} to {self.datatype!r}")


class UnknownDatatypeError(CoercionError):
    """Raised when a datatype tag is not one of the supported ones."""

    def __init__(self, datatype: Any):
        self.datatype = datatype
        super().__init__(f"Unknown datatype {datatype!r} specified for conversion")


class AbortFileProcessing(ObscorePipeError):
    """Raised when a file cannot be resolved at all (e.g. unsupported projection)."""

    def __init__(self, message: str, *, path: str | None = None, context: dict[str, Any] | None = None):
        self.path = path
        super().__init__(message, context=context)
