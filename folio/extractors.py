"""Front matter parsing and metadata extractors for Folio.

This module splits the YAML front matter from a content file and derives the
metadata an item needs (title, date, excerpt, tags). Each extractor handles a
single kind of metadata and implements the MetadataExtractor protocol.

Key functions:
- has_front_matter: Whether a file is content (processed) or static (copied).
- extract_front_matter: Split and parse the ``---`` delimited header.

Key classes:
- TitleExtractor: Title from front matter or filename.
- DateExtractor: Date from front matter or ``YYYY-MM-DD-`` filename prefix.
- ExcerptExtractor: Excerpt and description from front matter or first paragraph.
- TaxonomyExtractor: Tags and categories.
- CompositeMetadataExtractor: Runs extractors in order and merges results.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from .errors import ContentParseError
from .utils import as_list, coerce_datetime, first_paragraph, split_dated_name, titleize

FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)(?:\r?\n)?^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


def has_front_matter(text: str) -> bool:
    """Check whether text starts with a front matter block.

    Args:
        text: Raw file content.

    Returns:
        True if the text opens with a ``---`` delimited block.
    """
    return bool(FRONTMATTER_RE.match(text))


def extract_front_matter(text: str, path: Path) -> tuple[dict[str, Any], str]:
    """Extract YAML front matter from content.

    Args:
        text: Raw file content.
        path: Path to the source file, for error reporting.

    Returns:
        Tuple of (front matter dict, remaining body). Text without a front
        matter block yields an empty dict and the text unchanged.

    Raises:
        ContentParseError: If the block is not valid YAML or not a mapping.
    """
    match = FRONTMATTER_RE.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise ContentParseError(path, f"Invalid front matter: {exc}", exc) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ContentParseError(
            path, f"Front matter must be a mapping, got {type(data).__name__}"
        )
    return data, text[match.end() :]


class TitleExtractor:
    """Extracts the title from front matter.

    Dated files (posts) fall back to the titleized filename; other items
    without a title stay untitled and are left out of navigation.
    """

    def extract(
        self, front_matter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        title = front_matter.get("title")
        if title:
            return {"title": str(title)}
        date, _ = split_dated_name(path.stem)
        return {"title": titleize(path.name) if date else ""}


class DateExtractor:
    """Extracts the date from front matter or the filename prefix.

    Front matter ``date`` wins; otherwise a ``YYYY-MM-DD-`` filename prefix
    is used. Items with neither have no date.
    """

    def extract(
        self, front_matter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        """Extract date from front matter or filename.

        Args:
            front_matter: Parsed front matter (after defaults).
            body: Body text (unused).
            path: Path to the source file.

        Returns:
            Dictionary with 'date' key (datetime or None).
        """
        date = coerce_datetime(front_matter.get("date"))
        if date is None:
            date, _ = split_dated_name(path.stem)
        return {"date": date}


class ExcerptExtractor:
    """Extracts excerpt and description.

    The excerpt is the front matter ``excerpt`` or the first paragraph of
    the body; the description is the front matter ``description`` or the
    excerpt truncated to 160 characters.
    """

    def extract(
        self, front_matter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        excerpt = front_matter.get("excerpt")
        if excerpt is None:
            excerpt = first_paragraph(body, limit=10_000)
        description = front_matter.get("description")
        if description is None:
            description = str(excerpt)[:160]
        return {"excerpt": str(excerpt), "description": str(description)}


class TaxonomyExtractor:
    """Extracts tags and categories.

    Accepts both singular and plural keys, as lists or space separated
    strings.
    """

    def extract(
        self, front_matter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        tags = as_list(front_matter.get("tags")) + as_list(front_matter.get("tag"))
        categories = as_list(front_matter.get("categories")) + as_list(
            front_matter.get("category")
        )
        return {
            "tags": list(dict.fromkeys(tags)),
            "categories": list(dict.fromkeys(categories)),
        }


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    This class aggregates multiple extractors and runs them
    all on the content, merging their results. Later extractors
    can override earlier ones.
    """

    def __init__(self, extractors: list | None = None):
        """Initialize with a list of extractors.

        Args:
            extractors: List of MetadataExtractor implementations.
                       If None, uses default extractors.
        """
        if extractors is None:
            self._extractors = [
                TitleExtractor(),
                DateExtractor(),
                ExcerptExtractor(),
                TaxonomyExtractor(),
            ]
        else:
            self._extractors = list(extractors)

    def add_extractor(self, extractor) -> None:
        """Add an extractor to the composite.

        Args:
            extractor: A MetadataExtractor implementation.
        """
        self._extractors.append(extractor)

    def extract(
        self, front_matter: dict[str, Any], body: str, path: Path
    ) -> dict[str, Any]:
        """Extract all metadata for an item.

        Args:
            front_matter: Parsed front matter (after defaults).
            body: Body text without front matter.
            path: Path to the source file.

        Returns:
            Dictionary with all extracted metadata.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(front_matter, body, path))
        return result


# Default composite extractor instance
default_metadata_extractor = CompositeMetadataExtractor()
