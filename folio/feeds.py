"""Feed generation for Folio.

This module generates the files provided by the ``jekyll-sitemap`` and
``jekyll-feed`` plugins: ``sitemap.xml`` and an Atom ``feed.xml``. A generator
is enabled only when its plugin is listed in ``_config.yml``; other plugin
names are reported and ignored.

Feeds carry no build timestamps: the Atom ``updated`` element is the date of
the newest post, so unchanged input yields byte-identical output.

Classes:
    FeedGenerator: Abstract base class for feed generators.
    SitemapGenerator: Generates sitemap.xml files.
    AtomFeedGenerator: Generates the Atom feed of recent posts.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_feed_registry: Create a registry for the configured plugins.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from .config import CONTENT_PLUGINS
from .html_utils import absolute_url, escape_html

if TYPE_CHECKING:
    from .collections import SiteContent
    from .config import SiteConfig

logger = logging.getLogger(__name__)

FEED_LIMIT = 10


class FeedGenerator(ABC):
    """Abstract base class for feed generators.

    Subclasses implement specific feed formats (sitemap, Atom, ...).
    """

    plugin: str = ""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Return the output filename for this feed."""
        ...

    @abstractmethod
    def generate(self, content: SiteContent, config: SiteConfig) -> str | None:
        """Generate feed content.

        Args:
            content: Aggregated site content.
            config: Site configuration providing ``url`` and ``baseurl``.

        Returns:
            Feed content as a string, or None if the feed cannot be generated
            (e.g., missing ``url`` setting).
        """
        ...

    def write(self, output_dir: Path, content: SiteContent, config: SiteConfig) -> bool:
        """Generate and write feed to the output directory.

        Args:
            output_dir: Directory to write the feed file to.
            content: Aggregated site content.
            config: Site configuration.

        Returns:
            True if the feed was written, False if skipped.
        """
        payload = self.generate(content, config)
        if payload is None:
            return False
        output_path = output_dir / self.filename
        output_path.write_text(payload, encoding="utf-8")
        return True


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml for search engine indexing.

    Lists every written HTML item except those with ``sitemap: false`` in
    front matter. Requires ``url`` in the configuration.
    """

    plugin = "jekyll-sitemap"

    @property
    def filename(self) -> str:
        """Return sitemap filename."""
        return "sitemap.xml"

    def generate(self, content: SiteContent, config: SiteConfig) -> str | None:
        if not config.url:
            logger.info("Skipping %s: no 'url' configured", self.filename)
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for item in content.output_items:
            if item.output_ext != ".html" or item.front_matter.get("sitemap") is False:
                continue
            loc = escape_html(absolute_url(item.url, config.url, config.baseurl))
            if item.date is not None:
                lastmod = item.date.strftime("%Y-%m-%d")
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class AtomFeedGenerator(FeedGenerator):
    """Generates an Atom feed of the most recent posts.

    Requires ``url`` in the configuration. Uses the site title, description
    and author.
    """

    plugin = "jekyll-feed"

    @property
    def filename(self) -> str:
        """Return feed filename."""
        return "feed.xml"

    def generate(self, content: SiteContent, config: SiteConfig) -> str | None:
        if not config.url:
            logger.info("Skipping %s: no 'url' configured", self.filename)
            return None

        posts = content.posts.published().latest(FEED_LIMIT)
        site_url = absolute_url("/", config.url, config.baseurl)
        feed_url = absolute_url(f"/{self.filename}", config.url, config.baseurl)
        updated = posts[0].date.isoformat() if len(posts) else "1970-01-01T00:00:00"

        lines = [
            '<?xml version="1.0" encoding="utf-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f'<link href="{escape_html(feed_url)}" rel="self" type="application/atom+xml" />',
            f'<link href="{escape_html(site_url)}" rel="alternate" type="text/html" />',
            f"<updated>{updated}</updated>",
            f"<id>{escape_html(feed_url)}</id>",
            f"<title>{escape_html(config.title)}</title>",
        ]
        if config.description:
            lines.append(f"<subtitle>{escape_html(config.description)}</subtitle>")
        if config.author.name:
            lines.append(f"<author><name>{escape_html(config.author.name)}</name></author>")
        for post in posts:
            link = escape_html(absolute_url(post.url, config.url, config.baseurl))
            lines.append(
                "<entry>"
                f"<title>{escape_html(post.title)}</title>"
                f'<link href="{link}" rel="alternate" type="text/html" />'
                f"<id>{link}</id>"
                f"<published>{post.date.isoformat()}</published>"
                f"<updated>{post.date.isoformat()}</updated>"
                f'<content type="html">{escape_html(post.content)}</content>'
                f"<summary>{escape_html(post.excerpt)}</summary>"
                + "".join(f'<category term="{escape_html(tag)}" />' for tag in post.tags)
                + "</entry>"
            )
        lines.append("</feed>")
        return "\n".join(lines) + "\n"


class FeedRegistry:
    """Registry for managing feed generators.

    Attributes:
        _generators: List of registered feed generators.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        """Register a feed generator.

        Args:
            generator: Feed generator to register.
        """
        self._generators.append(generator)

    def generate_all(
        self, output_dir: Path, content: SiteContent, config: SiteConfig
    ) -> list[str]:
        """Generate all registered feeds.

        Args:
            output_dir: Directory to write feed files to.
            content: Aggregated site content.
            config: Site configuration.

        Returns:
            List of filenames that were generated.
        """
        generated = []
        for generator in self._generators:
            if generator.write(output_dir, content, config):
                generated.append(generator.filename)
        return generated


AVAILABLE_GENERATORS = (SitemapGenerator, AtomFeedGenerator)


def create_feed_registry(config: SiteConfig) -> FeedRegistry:
    """Create a registry with the generators for the configured plugins.

    Args:
        config: Site configuration listing plugins.

    Returns:
        FeedRegistry with one generator per supported, enabled plugin.
    """
    registry = FeedRegistry()
    supported = {cls.plugin: cls for cls in AVAILABLE_GENERATORS}
    for plugin in config.enabled_plugins:
        if plugin in CONTENT_PLUGINS:
            continue
        generator_cls = supported.get(plugin)
        if generator_cls is None:
            logger.info("Plugin '%s' is not supported; ignoring", plugin)
            continue
        registry.register(generator_cls())
    return registry
