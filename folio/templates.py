"""Template rendering engine for Folio.

This module uses Jinja2 to substitute variables in item bodies and to wrap
rendered content in layouts from ``_layouts``. Partials are included from
``_includes``. Layouts may carry their own front matter, including a
``layout`` key that nests them in a parent layout.

Strictness is a configuration choice: with ``liquid.strict_variables`` an
undefined variable or a missing layout raises TemplateResolutionError;
otherwise undefined variables render as the empty string and a missing
layout renders the content alone with a warning.

Key class:
- TemplateEngine: Builds the template context and renders items.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import (
    ChainableUndefined,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
    select_autoescape,
)
from markupsafe import Markup

from .errors import BuildError, ContentParseError, TemplateResolutionError
from .extractors import extract_front_matter
from .html_utils import absolute_url, emojize_html, escape_html, relative_url
from .navigation import build_navigation
from .renderers import Heading, RendererRegistry, default_renderer_registry
from .utils import coerce_datetime, slugify

if TYPE_CHECKING:
    from .collections import SiteContent
    from .config import SiteConfig
    from .content import ContentItem, StaticFile

__all__ = ["TemplateEngine", "render_toc"]

logger = logging.getLogger(__name__)

LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja", "")
NO_LAYOUT = ("none", "null", "false")


class FrontMatterLoader(FileSystemLoader):
    """FileSystemLoader that strips front matter from templates."""

    def get_source(self, environment: Environment, template: str):
        source, filename, uptodate = super().get_source(environment, template)
        try:
            _, body = extract_front_matter(source, Path(filename))
        except ContentParseError:
            # The front matter is reported when the layout is resolved.
            body = source
        return body, filename, uptodate


def render_toc(page: Any) -> Markup:
    """Render a table of contents as nested HTML from page headings.

    Generates properly nested `<ul><li><a href="#id">text</a></li></ul>` structure
    based on heading levels.

    Args:
        page: ContentItem or page mapping holding a ``toc`` list of Headings.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    headings = page.get("toc") if hasattr(page, "get") else getattr(page, "toc", None)
    if not headings:
        return Markup("")
    return _render_toc_from_headings(headings)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists if going to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        config: Site configuration.
        data: Contents of the ``_data`` directory.
        env: Jinja2 environment.
        site: The ``site`` mapping shared by every render.
        strict: Whether undefined variables and missing layouts are errors.
    """

    def __init__(
        self,
        config: SiteConfig,
        data: dict[str, Any],
        content: SiteContent | None = None,
        static_files: Iterable[StaticFile] = (),
        renderer_registry: RendererRegistry | None = None,
    ):
        """Initialize the template engine.

        Args:
            config: Site configuration.
            data: Site data from ``_data``.
            content: Aggregated site content exposed to templates.
            static_files: Static files exposed as ``site.static_files``.
            renderer_registry: Optional custom renderer registry.
        """
        self.config = config
        self.data = data
        self.strict = config.strict_variables
        self.layout_dir = config.source / "_layouts"
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.env = Environment(
            loader=FrontMatterLoader(
                [self.layout_dir, config.source / "_includes"]
            ),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined if self.strict else ChainableUndefined,
            keep_trailing_newline=True,
            enable_async=False,
        )
        self._layout_cache: dict[str, tuple[Any, dict[str, Any]] | None] = {}
        self.site: dict[str, Any] = {}
        self._install_filters()
        self.update_content(content, static_files)

    def _install_filters(self) -> None:
        """Install Jekyll-compatible filters and globals."""
        self.env.filters["relative_url"] = self._relative_url
        self.env.filters["absolute_url"] = self._absolute_url
        self.env.filters["markdownify"] = self._markdownify
        self.env.filters["date_to_string"] = _date_to_string
        self.env.filters["date_to_xmlschema"] = _date_to_xmlschema
        self.env.filters["slugify"] = slugify
        self.env.filters["xml_escape"] = _xml_escape
        self.env.filters["jsonify"] = _jsonify
        self.env.filters["where"] = _where
        self.env.filters["sort_by"] = _sort_by
        self.env.globals["url_for"] = self._relative_url
        self.env.globals["render_toc"] = render_toc

    def update_content(
        self, content: SiteContent | None, static_files: Iterable[StaticFile] = ()
    ) -> None:
        """Rebuild the ``site`` mapping from aggregated content.

        Args:
            content: Aggregated site content.
            static_files: Static files of the build.
        """
        site = self.config.to_context()
        site["data"] = self.data
        site["static_files"] = list(static_files)
        if content is not None:
            site["pages"] = content.pages
            site["posts"] = content.posts
            site["documents"] = content.documents
            site["collections"] = content.collections
            site["tags"] = content.tags()
            site["categories"] = content.categories()
            site["navigation"] = build_navigation(content.pages, self.config)
            for name, collection in content.collections.items():
                if name not in site:
                    site[name] = collection
        self.site = site
        self.env.globals["site"] = site

    def _relative_url(self, path: Any) -> str:
        return relative_url(str(path or ""), self.config.baseurl)

    def _absolute_url(self, path: Any) -> str:
        return absolute_url(str(path or ""), self.config.url, self.config.baseurl)

    def _markdownify(self, text: Any) -> Markup:
        renderer = self.renderer_registry.get_renderer("markdown")
        html, _ = renderer.render(str(text or ""))
        return Markup(html)

    def _context(self, item: ContentItem, layout: dict[str, Any] | None = None) -> dict[str, Any]:
        return {
            "site": self.site,
            "page": item.to_context(),
            "layout": layout or {},
            "paginator": None,
        }

    def render_content(self, item: ContentItem) -> str:
        """Substitute variables in an item's body and convert it.

        The result is stored on ``item.content`` so later layouts and other
        items can reference it.

        Args:
            item: Content item to render.

        Returns:
            Converted body (HTML for Markdown items).

        Raises:
            TemplateResolutionError: Undefined variable in strict mode.
            BuildError: Template syntax error in the body.
        """
        substituted = self._render_source(item, item.body, self._context(item), item.path)
        renderer = self.renderer_registry.get_renderer(item.source_type)
        if renderer is None:
            converted, toc = substituted, []
        else:
            converted, toc = renderer.render(substituted)
        if item.output_ext == ".html" and self.config.has_plugin("jemoji"):
            converted = emojize_html(converted)
        item.content, item.toc = Markup(converted), toc
        return item.content

    def render_layout(self, item: ContentItem) -> str:
        """Wrap an item's rendered content in its layout chain.

        Args:
            item: Content item whose content was rendered by render_content.

        Returns:
            Final output document.

        Raises:
            TemplateResolutionError: Missing layout or undefined variable in
                strict mode.
        """
        output = item.content
        name = item.layout
        seen: set[str] = set()
        while name and name.lower() not in NO_LAYOUT:
            if name in seen:
                raise TemplateResolutionError(
                    item.path, f"Layout '{name}' includes itself"
                )
            seen.add(name)
            resolved = self._resolve_layout(name)
            if resolved is None:
                if self.strict:
                    raise TemplateResolutionError(
                        item.path, f"Layout '{name}' not found in _layouts"
                    )
                logger.warning(
                    "Layout '%s' requested by %s does not exist; rendering content only",
                    name,
                    item.rel_path,
                )
                break
            template, layout_front_matter = resolved
            context = self._context(item, layout_front_matter)
            context["content"] = Markup(output)
            output = self._render_template(item, template, context)
            parent = layout_front_matter.get("layout")
            name = str(parent) if parent else None
        return output

    def render_string(self, template: str, context: dict[str, Any]) -> str:
        """Render a template string.

        Args:
            template: Template string to render.
            context: Variables to make available in the template.

        Returns:
            Rendered string.
        """
        tmpl = self.env.from_string(template)
        return tmpl.render(**context)

    def _render_source(
        self, item: ContentItem, source: str, context: dict[str, Any], origin: Path
    ) -> str:
        try:
            template = self.env.from_string(source)
        except TemplateSyntaxError as exc:
            raise BuildError(
                origin,
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        return self._render_template(item, template, context)

    def _render_template(self, item: ContentItem, template, context: dict[str, Any]) -> str:
        try:
            return template.render(**context)
        except UndefinedError as exc:
            raise TemplateResolutionError(
                item.path, f"Undefined variable: {exc.message}", exc
            ) from exc
        except TemplateNotFound as exc:
            raise TemplateResolutionError(
                item.path, f"Included template not found: {exc.name}", exc
            ) from exc
        except TemplateSyntaxError as exc:
            raise BuildError(
                Path(exc.filename) if exc.filename else item.path,
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc

    def _resolve_layout(self, name: str) -> tuple[Any, dict[str, Any]] | None:
        """Find a layout template and its front matter.

        Args:
            name: Layout name as written in front matter.

        Returns:
            Tuple of (template, layout front matter), or None if missing.
        """
        if name in self._layout_cache:
            return self._layout_cache[name]
        resolved = None
        for suffix in LAYOUT_SUFFIXES:
            candidate = self.layout_dir / f"{name}{suffix}"
            if not candidate.is_file():
                continue
            front_matter, _ = extract_front_matter(
                candidate.read_text(encoding="utf-8"), candidate
            )
            try:
                template = self.env.get_template(f"{name}{suffix}")
            except TemplateSyntaxError as exc:
                raise BuildError(
                    candidate,
                    f"Template syntax error on line {exc.lineno}: {exc.message}",
                    exc,
                ) from exc
            resolved = (template, front_matter)
            break
        self._layout_cache[name] = resolved
        return resolved


def _date_to_string(value: Any, fmt: str = "%d %b %Y") -> str:
    parsed = coerce_datetime(value)
    return parsed.strftime(fmt) if parsed else ""


def _date_to_xmlschema(value: Any) -> str:
    parsed = coerce_datetime(value)
    return parsed.isoformat() if parsed else ""


def _jsonify(value: Any) -> Markup:
    def default(obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if hasattr(obj, "to_context"):
            return {k: v for k, v in obj.to_context().items() if k not in ("previous", "next", "toc")}
        if isinstance(obj, Mapping):
            return dict(obj)
        if isinstance(obj, Sequence):
            return list(obj)
        return str(obj)

    return Markup(json.dumps(value, default=default, sort_keys=True))


def _where(items: Iterable[Any], key: str, value: Any) -> list[Any]:
    """Keep items whose ``key`` equals ``value`` (Jekyll's ``where``)."""
    selected = []
    for entry in items or []:
        if isinstance(entry, dict) or hasattr(entry, "get"):
            candidate = entry.get(key)
        else:
            candidate = getattr(entry, key, None)
        if candidate == value or (isinstance(candidate, list) and value in candidate):
            selected.append(entry)
    return selected


def _sort_by(items: Iterable[Any], key: str, reverse: bool = False) -> list[Any]:
    """Sort items by ``key``; items missing it keep their order at the end."""
    entries = list(items or [])

    def value(entry: Any) -> Any:
        if isinstance(entry, dict) or hasattr(entry, "get"):
            return entry.get(key)
        return getattr(entry, key, None)

    keyed = [e for e in entries if value(e) is not None]
    missing = [e for e in entries if value(e) is None]
    try:
        keyed.sort(key=value, reverse=reverse)
    except TypeError:
        keyed.sort(key=lambda e: str(value(e)), reverse=reverse)
    return keyed + missing


def _xml_escape(value: Any) -> Markup:
    return Markup(escape_html(value))
