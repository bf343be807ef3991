"""Content processing for Folio.

This module discovers source files, splits their front matter from the body,
applies scoped front matter defaults and builds ContentItem objects. Files
without front matter are StaticFiles and are copied verbatim.

Key classes:
- ContentItem: Dataclass representing one page, post or collection document.
- StaticFile: A source file copied to the destination unchanged.
- FileContentLoader: Discovers source files and their collection membership.
- DefaultItemBuilder: Builds ContentItem objects from source files.
- ContentProcessor: Facade returning items and static files for a build.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

from .errors import ContentParseError
from .extractors import (
    CompositeMetadataExtractor,
    default_metadata_extractor,
    extract_front_matter,
    has_front_matter,
)
from .utils import is_excluded, is_html, is_markdown, slugify, split_dated_name, titleize

if TYPE_CHECKING:
    from .config import SiteConfig
    from .protocols import ContentLoader, ItemBuilder
    from .renderers import Heading

logger = logging.getLogger(__name__)

DRAFTS_DIR = "_drafts"


@dataclass
class ContentItem:
    """Represents one page, post or collection document.

    Attributes:
        path: Path to the source file.
        rel_path: Source path relative to the site source, POSIX style.
        front_matter: Front matter merged over the configured defaults.
        body: Raw body text without the front matter block.
        collection: Name of the owning collection, or None for pages.
        slug: URL-friendly name derived from the filename.
        title: Title from front matter (or filename for documents).
        date: Publication date, if any.
        tags: Tags from front matter.
        categories: Categories from front matter.
        excerpt: First paragraph or front matter excerpt.
        description: Front matter description or truncated excerpt.
        source_type: "markdown", "html" or "text".
        output_ext: Extension of the written file.
        draft: Whether the item comes from ``_drafts``.
        url: URL resolved from the permalink.
        output_path: Destination path relative to the output directory.
        content: Rendered body (before layout wrapping).
    """

    path: Path
    rel_path: str
    front_matter: dict[str, Any]
    body: str
    collection: str | None
    slug: str
    title: str
    date: datetime | None
    tags: list[str]
    categories: list[str]
    excerpt: str
    description: str
    source_type: str
    output_ext: str
    draft: bool = False
    url: str = ""
    output_path: PurePosixPath | None = None
    content: str = ""
    toc: list[Heading] = field(default_factory=list)
    previous: ContentItem | None = field(default=None, repr=False, compare=False)
    next: ContentItem | None = field(default=None, repr=False, compare=False)

    @property
    def layout(self) -> str | None:
        value = self.front_matter.get("layout")
        return str(value) if value else None

    @property
    def type(self) -> str:
        return self.collection or "pages"

    @property
    def name(self) -> str:
        return self.path.name

    def __getitem__(self, key: str) -> Any:
        # Lets templates reach arbitrary front matter fields (``post.tools``).
        if key in self.front_matter:
            return self.front_matter[key]
        if not key.startswith("_") and hasattr(self, key):
            return getattr(self, key)
        raise KeyError(key)

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def to_context(self) -> dict[str, Any]:
        """Return the ``page`` mapping exposed to templates.

        Front matter keys come first; computed values override them except
        for ``title``, ``date`` and ``excerpt`` which already honour front
        matter.
        """
        context = dict(self.front_matter)
        context.update(
            title=self.title,
            url=self.url,
            date=self.date,
            slug=self.slug,
            tags=self.tags,
            categories=self.categories,
            excerpt=self.excerpt,
            description=self.description,
            collection=self.collection,
            path=self.rel_path,
            name=self.front_matter.get("name", self.name),
            id=self.url.rstrip("/") or "/",
            content=self.content,
            toc=self.toc,
            draft=self.draft,
            previous=_neighbour_context(self.previous),
            next=_neighbour_context(self.next),
        )
        return context


def _neighbour_context(item: ContentItem | None) -> dict[str, Any] | None:
    if item is None:
        return None
    return {"title": item.title, "url": item.url, "date": item.date}


@dataclass(frozen=True)
class StaticFile:
    """A source file without front matter, copied verbatim.

    Attributes:
        path: Path to the source file.
        rel_path: Path relative to the site source, reused in the output.
    """

    path: Path
    rel_path: str

    @property
    def url(self) -> str:
        return f"/{self.rel_path}"


@dataclass(frozen=True)
class SourceFile:
    """A discovered source file and the collection its directory implies."""

    path: Path
    rel: PurePosixPath
    collection: str | None
    draft: bool = False


class FileContentLoader:
    """Discovers source files under the site source directory.

    Underscore directories are internal (``_layouts``, ``_includes``,
    ``_data``, ...) unless they are declared collections, or ``_drafts``
    when drafts are requested. The destination directory and files matching
    the ``exclude`` patterns are skipped.

    Attributes:
        config: Site configuration.
    """

    def __init__(self, config: SiteConfig):
        """Initialize the content loader.

        Args:
            config: Site configuration.
        """
        self.config = config
        self.source_dir = config.source

    def iter_files(self, include_drafts: bool = False) -> list[SourceFile]:
        """List all source files in discovery order.

        Args:
            include_drafts: Whether to include files from ``_drafts``.

        Returns:
            Source files sorted by relative path.
        """
        files: list[SourceFile] = []
        destination = self.config.destination.resolve()
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir():
                continue
            if path.resolve().is_relative_to(destination):
                continue
            rel = PurePosixPath(path.relative_to(self.source_dir).as_posix())
            if rel.name in ("_config.yml", "_config.yaml"):
                continue
            if self._is_excluded(rel):
                continue
            source = self._classify(path, rel, include_drafts)
            if source is not None:
                files.append(source)
        return files

    def _is_excluded(self, rel: PurePosixPath) -> bool:
        if self.config.include and is_excluded(rel, self.config.include):
            return False
        return is_excluded(rel, self.config.exclude)

    def _classify(
        self, path: Path, rel: PurePosixPath, include_drafts: bool
    ) -> SourceFile | None:
        """Decide whether a file is processed and which collection owns it."""
        parts = rel.parts
        if rel.name.startswith("_"):
            return None
        if any(part.startswith("_") for part in parts[1:-1]):
            return None
        top = parts[0]
        if len(parts) > 1 and top.startswith("_"):
            if top == DRAFTS_DIR:
                if not include_drafts:
                    return None
                return SourceFile(path, rel, "posts", draft=True)
            name = top[1:]
            if self.config.collection(name) is None:
                return None
            return SourceFile(path, rel, name)
        return SourceFile(path, rel, None)


class DefaultItemBuilder:
    """Builds ContentItem objects from source files.

    Attributes:
        config: Site configuration used for front matter defaults.
        metadata_extractor: Composite metadata extractor.
    """

    def __init__(
        self,
        config: SiteConfig,
        metadata_extractor: CompositeMetadataExtractor | None = None,
    ):
        """Initialize the item builder.

        Args:
            config: Site configuration.
            metadata_extractor: Optional custom metadata extractor.
        """
        self.config = config
        self.metadata_extractor = metadata_extractor or default_metadata_extractor

    def build(self, source: SourceFile, text: str) -> ContentItem:
        """Build a ContentItem from a source file with front matter.

        Args:
            source: The discovered source file.
            text: Full file content.

        Returns:
            ContentItem without URL; permalinks are assigned by the aggregator.

        Raises:
            ContentParseError: If the front matter is malformed or a post has
                no date.
        """
        path = source.path
        declared, body = extract_front_matter(text, path)
        item_type = source.collection or "pages"
        front_matter = self.config.defaults_for(source.rel.as_posix(), item_type)
        front_matter.update(declared)

        collection = front_matter.get("collection", source.collection)
        collection = str(collection) if collection else None

        metadata = self.metadata_extractor.extract(front_matter, body, path)
        date = metadata.get("date")
        if source.draft and date is None:
            date = datetime.fromtimestamp(path.stat().st_mtime)
        if collection == "posts" and date is None:
            raise ContentParseError(
                path, "Post has no date; name it YYYY-MM-DD-title or set 'date'"
            )

        _, name = split_dated_name(path.stem)
        slug = slugify(front_matter.get("slug") or name)
        title = metadata.get("title") or ""
        if not title and collection:
            title = titleize(path.name)

        if is_markdown(path):
            source_type, output_ext = "markdown", ".html"
        elif is_html(path):
            source_type, output_ext = "html", ".html"
        else:
            source_type, output_ext = "text", path.suffix

        return ContentItem(
            path=path,
            rel_path=source.rel.as_posix(),
            front_matter=front_matter,
            body=body,
            collection=collection,
            slug=slug,
            title=title,
            date=date,
            tags=metadata.get("tags", []),
            categories=metadata.get("categories", []),
            excerpt=metadata.get("excerpt", ""),
            description=metadata.get("description", ""),
            source_type=source_type,
            output_ext=output_ext,
            draft=source.draft,
        )


@dataclass
class LoadResult:
    """Items and static files discovered for one build.

    Attributes:
        items: Content items in discovery order.
        static_files: Files copied verbatim.
        skipped: Files dropped because their front matter was malformed.
    """

    items: list[ContentItem]
    static_files: list[StaticFile]
    skipped: list[Path] = field(default_factory=list)


class ContentProcessor:
    """Facade for discovering sources and building content items.

    Malformed front matter fails the build under ``strict_front_matter``;
    otherwise the file is skipped with a warning.

    Attributes:
        config: Site configuration.
    """

    def __init__(
        self,
        config: SiteConfig,
        content_loader: ContentLoader | None = None,
        item_builder: ItemBuilder | None = None,
    ):
        """Initialize the content processor.

        Args:
            config: Site configuration.
            content_loader: Optional custom content loader.
            item_builder: Optional custom item builder.
        """
        self.config = config
        self._content_loader = content_loader or FileContentLoader(config)
        self._item_builder = item_builder or DefaultItemBuilder(config)

    def load(self, include_drafts: bool = False) -> LoadResult:
        """Load all source files.

        Args:
            include_drafts: Whether to include ``_drafts`` and unpublished items.

        Returns:
            LoadResult with items, static files and skipped paths.

        Raises:
            ContentParseError: On malformed front matter in strict mode.
        """
        result = LoadResult(items=[], static_files=[])
        for source in self._content_loader.iter_files(include_drafts):
            text = _read_text(source.path)
            if text is None or not has_front_matter(text):
                result.static_files.append(StaticFile(source.path, source.rel.as_posix()))
                continue
            try:
                item = self._item_builder.build(source, text)
            except ContentParseError as exc:
                if self.config.strict_front_matter:
                    raise
                logger.warning("Skipping %s: %s", source.rel, exc.message)
                result.skipped.append(source.path)
                continue
            if item.front_matter.get("published") is False and not include_drafts:
                logger.debug("Skipping unpublished %s", source.rel)
                continue
            result.items.append(item)
        return result


def _read_text(path: Path) -> str | None:
    """Read a file as UTF-8 text, or None for binary files."""
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return None
