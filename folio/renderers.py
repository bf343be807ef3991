"""Content renderers for Folio.

This module contains implementations of the ContentRenderer protocol
for different content types. Each renderer handles a single content type.

Key classes:
- MarkdownRenderer: Renders Markdown to HTML with syntax highlighting.
- HTMLRenderer: Passes through HTML content.
- TextRenderer: Passes through any other text (XML, CSS, JSON, ...).
- RendererRegistry: Picks the renderer for an item's source type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import mistune
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound


@dataclass
class Heading:
    """Represents a heading extracted from markdown content for TOC generation.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: The text content of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = re.sub(r"<[^>]+>", "", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


class _HighlightRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading anchors and syntax highlighting.

    Attributes:
        headings: List of Heading objects extracted during rendering.
    """

    def __init__(self):
        super().__init__(escape=False)
        self.headings: list[Heading] = []
        self._heading_id_counts: dict[str, int] = {}

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with auto-generated ID and track for TOC.

        Args:
            text: Heading text content.
            level: Heading level (1-6).
            **attrs: Additional attributes.

        Returns:
            HTML heading tag with id attribute.
        """
        base_id = _generate_heading_id(text)

        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id

        self.headings.append(Heading(id=heading_id, text=text, level=level))

        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'java').

        Returns:
            HTML string with highlighted code.
        """
        lang = info.split()[0] if info else ""
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        escaped = code.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        lang_class = f' class="language-{lang}"' if lang else ""
        return f"<pre><code{lang_class}>{escaped}</code></pre>\n"


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    Converts Markdown with syntax highlighting and heading extraction for TOC.
    """

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "markdown"

    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content.

        Returns:
            Tuple of (rendered HTML, list of Heading objects).
        """
        renderer = _HighlightRenderer()
        markdown = mistune.create_markdown(
            renderer=renderer, plugins=["strikethrough", "footnotes", "table", "url"]
        )
        html = markdown(content)
        return html, renderer.headings


class HTMLRenderer:
    """Passes through HTML content unchanged."""

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "html"

    def render(self, content: str) -> tuple[str, list[Heading]]:
        return content, []


class TextRenderer:
    """Passes through non-HTML text such as XML feeds or CSS."""

    @property
    def source_type(self) -> str:
        """Return the source type identifier."""
        return "text"

    def render(self, content: str) -> tuple[str, list[Heading]]:
        return content, []


class RendererRegistry:
    """Registry for content renderers keyed by source type.

    New renderers can be registered without modifying existing code.
    """

    def __init__(self):
        """Initialize the registry with default renderers."""
        self._renderers: dict[str, object] = {}
        self.register(MarkdownRenderer())
        self.register(HTMLRenderer())
        self.register(TextRenderer())

    def register(self, renderer) -> None:
        """Register a renderer, replacing any for the same source type.

        Args:
            renderer: A ContentRenderer implementation.
        """
        self._renderers[renderer.source_type] = renderer

    def get_renderer(self, source_type: str):
        """Get the renderer for a source type.

        Args:
            source_type: "markdown", "html" or "text".

        Returns:
            The matching renderer, or None.
        """
        return self._renderers.get(source_type)


# Default renderer registry instance
default_renderer_registry = RendererRegistry()
