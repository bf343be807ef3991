"""Build errors for Folio.

Every failure surfaced to the operator during a build is a ``BuildError``
carrying the file that caused it. The CLI catches the base class and reports
file and message.

Classes:
    BuildError: Base error with file context.
    ConfigError: Missing or malformed site configuration.
    ContentParseError: Malformed front matter in a content file.
    UnknownCollectionError: Content declares a collection that is not configured.
    TemplateResolutionError: Undefined variable or missing layout.
"""

from __future__ import annotations

from pathlib import Path


class BuildError(Exception):
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


class ConfigError(BuildError):
    """Site configuration is missing or malformed."""


class ContentParseError(BuildError):
    """Front matter of a content file could not be parsed."""


class UnknownCollectionError(ContentParseError):
    """A content item names a collection absent from the configuration."""

    def __init__(self, source_path: Path, collection: str):
        self.collection = collection
        super().__init__(
            source_path, f"Collection '{collection}' is not declared in _config.yml"
        )


class TemplateResolutionError(BuildError):
    """A template referenced an undefined variable or a missing layout."""
