"""Collection aggregation for Folio.

This module groups content items by their declared collection, assigns each
item its URL and output path, orders every collection and links neighbours.

Key classes:
- Collection: Ordered, read-only sequence of items with template helpers.
- TagCollection: Mapping of tag name to Collection.
- SiteContent: Result of aggregation (pages plus collections).
- CollectionAggregator: Performs the grouping, permalink and ordering steps.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .config import CollectionConfig
from .errors import UnknownCollectionError
from .permalinks import PermalinkResolver, output_path_for
from .utils import build_tags_index

if TYPE_CHECKING:
    from .config import SiteConfig
    from .content import ContentItem

logger = logging.getLogger(__name__)


class Collection(Sequence["ContentItem"]):
    """Lightweight helper for working with lists of items in templates and code."""

    def __init__(
        self,
        items: Iterable[ContentItem],
        name: str = "",
        config: CollectionConfig | None = None,
    ):
        self._items = list(items)
        self.name = name
        self.config = config

    def __iter__(self) -> Iterator[ContentItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, item):
        return self._items[item]

    @property
    def output(self) -> bool:
        return bool(self.config and self.config.output)

    @property
    def docs(self) -> Collection:
        return self

    def with_tag(self, tag: str) -> Collection:
        return Collection((i for i in self._items if tag in i.tags), self.name, self.config)

    def in_category(self, category: str) -> Collection:
        return Collection(
            (i for i in self._items if category in i.categories), self.name, self.config
        )

    def drafts(self) -> Collection:
        return Collection((i for i in self._items if i.draft), self.name, self.config)

    def published(self) -> Collection:
        return Collection((i for i in self._items if not i.draft), self.name, self.config)

    def latest(self, count: int = 5) -> Collection:
        """Return the ``count`` most recent dated items, newest first."""
        dated = [i for i in self._items if i.date is not None]
        dated.sort(key=lambda i: i.date, reverse=True)
        return Collection(dated[:count], self.name, self.config)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Collection({self.name!r}, {len(self._items)} items)"


class TagCollection(Mapping[str, Collection]):
    """Mapping of tag name to Collection with convenience helpers."""

    def __init__(self, mapping: dict[str, Iterable[ContentItem]]):
        self._mapping = {k: Collection(v) for k, v in sorted(mapping.items())}

    def __getitem__(self, key: str) -> Collection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"


@dataclass
class SiteContent:
    """Aggregated content for one build.

    Attributes:
        pages: Standalone items outside any collection, in discovery order.
        collections: Collections by name, in configuration order.
        dropped: Items dropped because their collection is undeclared.
    """

    pages: list[ContentItem]
    collections: dict[str, Collection]
    dropped: list[ContentItem] = field(default_factory=list)

    @property
    def posts(self) -> Collection:
        return self.collections.get("posts") or Collection([], "posts")

    @property
    def documents(self) -> list[ContentItem]:
        """Every collection document, grouped by collection."""
        return [item for collection in self.collections.values() for item in collection]

    @property
    def items(self) -> list[ContentItem]:
        """Pages followed by all collection documents."""
        return self.pages + self.documents

    @property
    def output_items(self) -> list[ContentItem]:
        """Items that are written to the destination."""
        written = [
            item
            for collection in self.collections.values()
            if collection.output
            for item in collection
        ]
        return self.pages + written

    def tags(self) -> TagCollection:
        return TagCollection(build_tags_index(self.posts))

    def categories(self) -> TagCollection:
        index: dict[str, list[ContentItem]] = {}
        for post in self.posts:
            for category in post.categories:
                index.setdefault(category, []).append(post)
        return TagCollection(index)


class CollectionAggregator:
    """Groups content items into collections and resolves their permalinks.

    Items naming a collection that is not declared are dropped with a
    warning, or fail the build with UnknownCollectionError when the
    configuration enables ``strict_front_matter``.

    Attributes:
        config: Site configuration with collection definitions.
        resolver: Permalink resolver.
    """

    def __init__(self, config: SiteConfig, resolver: PermalinkResolver | None = None):
        self.config = config
        self.resolver = resolver or PermalinkResolver(config)

    def aggregate(self, items: Iterable[ContentItem]) -> SiteContent:
        """Group, resolve and order items.

        Args:
            items: Content items in discovery order.

        Returns:
            SiteContent with pages and ordered collections.

        Raises:
            UnknownCollectionError: In strict mode, for an undeclared collection.
        """
        pages: list[ContentItem] = []
        grouped: dict[str, list[ContentItem]] = {name: [] for name in self.config.collections}
        dropped: list[ContentItem] = []

        for item in items:
            name = item.collection
            if name and self.config.collection(name) is None:
                if self.config.strict_front_matter:
                    raise UnknownCollectionError(item.path, name)
                logger.warning(
                    "Dropping %s: collection '%s' is not declared in _config.yml",
                    item.rel_path,
                    name,
                )
                dropped.append(item)
                continue
            self.assign_url(item)
            if name:
                grouped[name].append(item)
            else:
                pages.append(item)

        collections = {
            name: Collection(
                self.order(members, self.config.collections[name]),
                name,
                self.config.collections[name],
            )
            for name, members in grouped.items()
        }
        for collection in collections.values():
            self._link_neighbours(collection)

        content = SiteContent(pages=pages, collections=collections, dropped=dropped)
        self._warn_conflicts(content.output_items)
        return content

    def assign_url(self, item: ContentItem) -> None:
        """Set the URL and output path of an item from its permalink."""
        item.url = self.resolver.url_for(item)
        item.output_path = output_path_for(item.url)

    def order(
        self, items: list[ContentItem], collection: CollectionConfig
    ) -> list[ContentItem]:
        """Order collection members.

        Without ``sort_by`` the discovery order is kept. Otherwise items
        carrying the field are sorted by it (stable) and items missing it
        follow in discovery order.

        Args:
            items: Members in discovery order.
            collection: Collection definition.

        Returns:
            Ordered list of members.
        """
        key = collection.sort_by
        if not key:
            return list(items)
        keyed = [i for i in items if _sort_value(i, key) is not None]
        missing = [i for i in items if _sort_value(i, key) is None]
        try:
            keyed.sort(key=lambda i: _sort_value(i, key), reverse=collection.reverse)
        except TypeError:
            keyed.sort(key=lambda i: str(_sort_value(i, key)), reverse=collection.reverse)
        return keyed + missing

    def _link_neighbours(self, collection: Collection) -> None:
        # previous/next follow reading order: oldest to newest for reversed collections.
        chronological = list(collection)
        if collection.config and collection.config.reverse:
            chronological.reverse()
        for index, item in enumerate(chronological):
            item.previous = chronological[index - 1] if index > 0 else None
            item.next = chronological[index + 1] if index + 1 < len(chronological) else None

    def _warn_conflicts(self, items: Iterable[ContentItem]) -> None:
        seen: dict[Any, ContentItem] = {}
        for item in items:
            other = seen.get(item.output_path)
            if other is not None:
                logger.warning(
                    "Conflict: %s and %s both write to %s",
                    other.rel_path,
                    item.rel_path,
                    item.output_path,
                )
            seen[item.output_path] = item


def _sort_value(item: ContentItem, key: str) -> Any:
    if key == "date":
        return item.date
    return item.front_matter.get(key)
