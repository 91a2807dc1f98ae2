"""
Error types for the ELSDc bindings.

Every error carries the operation that failed and, when available, the
underlying cause so callers can log a meaningful line.
"""


class ElsdcError(Exception):
    """Base error for everything raised by this package."""

    def __init__(self, message, operation=None, cause=None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.cause = cause

    def __str__(self):
        text = self.message
        if self.operation:
            text = f"{self.operation}: {text}"
        if self.cause is not None:
            text = f"{text} ({type(self.cause).__name__}: {self.cause})"
        return text


class ImageReadError(ElsdcError):
    """Input image is missing or could not be decoded."""


class DetectionError(ElsdcError):
    """Native detector reported failure or returned inconsistent outputs."""


class ImageConversionError(ElsdcError):
    """A pixel grid could not be adapted into a drawing surface."""


class ElsdcIOError(ElsdcError):
    """Filesystem failure while writing results."""


class RenderError(ElsdcError):
    """Drawing backend failure for a single primitive."""


class RasterizationError(ElsdcError):
    """A primitive pair could not be rasterized for overlap scoring."""


class ConfigError(ElsdcError):
    """Configuration file is unreadable or not a mapping of sections."""
