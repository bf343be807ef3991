"""Permalink resolution for Folio.

A permalink pattern is a URL template such as ``/blog/:title`` or
``/projects/:name``. Each ``:placeholder`` is replaced with the item's front
matter value of the same name when present, otherwise with a value derived
from the filename and date. The resolved URL determines the output path.

Key class:
- PermalinkResolver: Computes URLs and output paths for content items.

Key functions:
- output_path_for: Map a URL to a file path inside the destination.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from .utils import slugify, split_dated_name

if TYPE_CHECKING:
    from .config import SiteConfig
    from .content import ContentItem

PLACEHOLDER_RE = re.compile(r":([a-z_]+)")

PAGE_PERMALINK = "/:path:output_ext"

# Placeholders that never take a front matter override.
_DERIVED_ONLY = frozenset({"path", "collection", "categories", "output_ext"})


def output_path_for(url: str) -> PurePosixPath:
    """Map a URL to the file written for it.

    Args:
        url: Resolved URL beginning with ``/``.

    Returns:
        Relative path: ``<url>/index.html`` for directory URLs, the URL itself
        when it has an extension, ``<url>.html`` otherwise.

    Examples:
        >>> output_path_for("/projects/demo")
        PurePosixPath('projects/demo.html')

        >>> output_path_for("/about/")
        PurePosixPath('about/index.html')
    """
    rel = url.lstrip("/")
    if not rel or url.endswith("/"):
        return PurePosixPath(rel) / "index.html"
    path = PurePosixPath(rel)
    if path.suffix:
        return path
    return path.with_name(f"{path.name}.html")


class PermalinkResolver:
    """Computes URLs for content items from permalink patterns.

    Resolution is a pure function of the item's front matter, its source
    location, the collection pattern and the site configuration.

    Attributes:
        config: Site configuration providing collection patterns.
    """

    def __init__(self, config: SiteConfig):
        self.config = config

    def pattern_for(self, item: ContentItem) -> str:
        """Return the permalink pattern applying to an item.

        Front matter ``permalink`` wins over the collection pattern; pages
        outside collections mirror their source path.
        """
        override = item.front_matter.get("permalink")
        if override:
            return str(override)
        if item.collection:
            collection = self.config.collection(item.collection)
            if collection is not None:
                return collection.permalink
        return PAGE_PERMALINK

    def placeholders(self, item: ContentItem) -> dict[str, str]:
        """Compute the derived value of every supported placeholder.

        Args:
            item: Content item being resolved.

        Returns:
            Mapping of placeholder name to its derived value.
        """
        _, name = split_dated_name(PurePosixPath(item.rel_path).stem)
        values = {
            "collection": item.collection or "",
            "path": self._relative_path(item),
            "name": slugify(name),
            "title": item.slug,
            "slug": item.slug,
            "categories": "/".join(slugify(c) for c in item.categories),
            "output_ext": item.output_ext,
        }
        date = item.date
        if date is not None:
            values.update(
                year=f"{date.year:04d}",
                short_year=f"{date.year % 100:02d}",
                month=f"{date.month:02d}",
                i_month=str(date.month),
                day=f"{date.day:02d}",
                i_day=str(date.day),
                y_day=f"{date.timetuple().tm_yday:03d}",
            )
        return values

    def resolve(self, item: ContentItem, pattern: str) -> str:
        """Resolve a permalink pattern for an item.

        Args:
            item: Content item being resolved.
            pattern: Pattern with ``:placeholder`` segments.

        Returns:
            URL beginning with ``/``. Unknown placeholders are kept literally.
        """
        derived = self.placeholders(item)

        def repl(match: re.Match) -> str:
            key = match.group(1)
            override = item.front_matter.get(key)
            if key not in _DERIVED_ONLY and _is_scalar(override):
                return slugify(str(override))
            if key in derived:
                return derived[key]
            return match.group(0)

        url = _clean_segments(PLACEHOLDER_RE.sub(repl, pattern))
        if url.endswith("/index.html"):
            url = url[: -len("index.html")]
        return url

    def url_for(self, item: ContentItem) -> str:
        """Return the URL of an item."""
        return self.resolve(item, self.pattern_for(item))

    def _relative_path(self, item: ContentItem) -> str:
        """Source path without extension, relative to its collection directory."""
        rel = PurePosixPath(item.rel_path)
        parts = rel.parts
        if parts and parts[0].startswith("_"):
            parts = parts[1:]
        stem_path = PurePosixPath(*parts) if parts else rel
        return stem_path.with_suffix("").as_posix()


def _clean_segments(url: str) -> str:
    """Drop empty, ``.`` and ``..`` segments so a URL stays under the site root."""
    segments = [s for s in url.split("/") if s not in ("", ".", "..")]
    cleaned = "/" + "/".join(segments)
    if url.endswith("/") and segments:
        cleaned += "/"
    return cleaned


def _is_scalar(value: object) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool) and str(value) != ""
