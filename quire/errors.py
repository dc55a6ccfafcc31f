"""Exception types raised while reading and building a Quire site."""

from __future__ import annotations

from pathlib import Path


class QuireError(Exception):
    """Base class for all errors raised by Quire."""


class ConfigError(QuireError):
    """Raised when ``_config.yml`` or a data file cannot be used."""

    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class FrontMatterError(QuireError):
    """Raised when a document's front-matter is not a valid YAML mapping."""


class LayoutError(QuireError):
    """Raised for missing layouts and layout inheritance cycles."""


class ThemeNotFoundError(QuireError):
    """Raised when the configured theme cannot be located."""


class BuildError(QuireError):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")
