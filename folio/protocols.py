"""Protocol definitions for Folio.

This module defines the interfaces (protocols) used at the seams of the
build pipeline, so that loaders, builders, extractors and renderers can be
replaced independently and mocked in tests.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import ContentItem, SourceFile
    from .renderers import Heading


@runtime_checkable
class ContentRenderer(Protocol):
    """Protocol for converting an item body to HTML.

    Implementations handle one source type (Markdown, HTML, plain text).
    """

    @abstractmethod
    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render content to its output form.

        Args:
            content: Body after template substitution.

        Returns:
            Tuple of (rendered output, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier (e.g., 'markdown', 'html')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Protocol for deriving item metadata from front matter and body."""

    @abstractmethod
    def extract(
        self, front_matter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        """Extract metadata.

        Args:
            front_matter: Parsed front matter merged over defaults.
            body: Body text without the front matter block.
            path: Path to the source file.

        Returns:
            Dictionary of extracted metadata.
        """
        ...


@runtime_checkable
class TemplateRenderer(Protocol):
    """Protocol for rendering content items through templates.

    Rendering is split in two passes so that every item's content is
    available to layouts of every other item.
    """

    @abstractmethod
    def render_content(self, item: ContentItem) -> str:
        """Substitute variables in the body and convert it to HTML."""
        ...

    @abstractmethod
    def render_layout(self, item: ContentItem) -> str:
        """Wrap rendered content in the item's layout chain."""
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for discovering source files."""

    @abstractmethod
    def iter_files(self, include_drafts: bool = False) -> list[SourceFile]:
        """List source files in discovery order.

        Args:
            include_drafts: Whether to include draft files.

        Returns:
            Discovered source files.
        """
        ...


@runtime_checkable
class ItemBuilder(Protocol):
    """Protocol for building ContentItem objects from source files."""

    @abstractmethod
    def build(self, source: SourceFile, text: str) -> ContentItem:
        """Build a ContentItem.

        Args:
            source: Discovered source file.
            text: Full file content.

        Returns:
            ContentItem without URL.
        """
        ...
