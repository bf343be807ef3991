"""Navigation bar entries for Folio.

The navbar lists standalone pages that have a title, except those whose
source path appears in the ``nav_exclude`` setting. Pages are ordered by an
optional ``nav_order`` (or ``weight``) front matter field, then by path.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import SiteConfig
    from .content import ContentItem


@dataclass(frozen=True)
class NavEntry:
    """One navbar link."""

    title: str
    url: str
    path: str


def build_navigation(pages: Iterable[ContentItem], config: SiteConfig) -> list[NavEntry]:
    """Build navbar entries from standalone pages.

    Args:
        pages: Standalone pages (not collection documents).
        config: Site configuration providing ``nav_exclude``.

    Returns:
        Entries ordered by ``nav_order`` (or ``weight``), then title.
    """
    excluded = {path.strip("/") for path in config.nav_exclude}
    candidates = [
        page
        for page in pages
        if page.title
        and page.output_ext == ".html"
        and page.rel_path not in excluded
        and page.front_matter.get("nav", True) is not False
    ]

    def order(page: ContentItem):
        weight = page.front_matter.get("nav_order", page.front_matter.get("weight"))
        numeric = weight if isinstance(weight, (int, float)) else float("inf")
        return (numeric, page.title.lower(), page.rel_path)

    return [NavEntry(p.title, p.url, p.rel_path) for p in sorted(candidates, key=order)]
