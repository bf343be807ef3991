"""Utility functions for Folio.

This module contains various utility functions used throughout the Folio codebase.
These include string processing, path handling, date handling, and content helpers.

Key functions:
    slugify: Convert strings to URL slugs.
    titleize: Convert filenames to human-readable titles.
    split_dated_name: Split a ``YYYY-MM-DD-`` prefix off a filename stem.
    coerce_datetime: Normalise front matter date values.
    build_tags_index: Build index of items by tags.
    is_markdown: Check if a path is a Markdown file.
    is_html: Check if a path is an HTML file.
    is_excluded: Match a relative path against exclude patterns.
    ensure_clean_dir: Ensure a directory exists and is empty.

Note:
    HTML-related utilities (escape_html, join_root_url) live in html_utils.py.
"""

from __future__ import annotations

import fnmatch
import re
import shutil
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path, PurePosixPath

MARKDOWN_EXTENSIONS = (".md", ".markdown", ".mkd", ".mkdn")
HTML_EXTENSIONS = (".html", ".htm")
_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def slugify(name: str) -> str:
    """Convert a string to a URL slug.

    Args:
        name: Any text, typically a filename stem or a title.

    Returns:
        Lowercase slug of ASCII letters, digits and hyphens.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", str(name))
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def split_dated_name(stem: str) -> tuple[datetime | None, str]:
    """Split a ``YYYY-MM-DD-`` prefix from a filename stem.

    Args:
        stem: Filename stem (without extension).

    Returns:
        Tuple of (date or None, remaining name).

    Examples:
        >>> split_dated_name("2024-01-15-hello-world")
        (datetime.datetime(2024, 1, 15, 0, 0), 'hello-world')

        >>> split_dated_name("hello-world")
        (None, 'hello-world')
    """
    parts = stem.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        try:
            parsed = datetime(int(parts[0]), int(parts[1]), int(parts[2]))
        except ValueError:
            return None, stem
        return parsed, "-".join(parts[3:])
    return None, stem


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("getting-started.md")
        'Getting Started'
    """
    _, base = split_dated_name(Path(filename).stem)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def coerce_datetime(value: object) -> datetime | None:
    """Normalise a front matter date value to a naive datetime.

    YAML yields ``date`` or ``datetime`` objects for well-formed values and
    strings for everything else.

    Args:
        value: Raw front matter value.

    Returns:
        A naive datetime, or None if the value cannot be interpreted.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).replace(tzinfo=None)
            except ValueError:
                continue
    return None


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first paragraph from text.

    Skips headings, strips HTML tags and template syntax, collapses
    whitespace and truncates to the specified limit.

    Args:
        text: Text content to extract from.
        limit: Maximum character length of result.

    Returns:
        Cleaned first paragraph, truncated to limit characters.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "{%")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"\{[%#{].*?[%#}]\}", "", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def as_list(value: object) -> list[str]:
    """Normalise a tags/categories front matter value to a list of strings.

    Accepts a YAML list or a whitespace separated string.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, Iterable):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path), ignore_errors=True)
        if path.exists():
            # Fallback for stubborn directories
            for item in path.rglob("*"):
                if item.is_file():
                    item.unlink()
            for item in sorted(
                [p for p in path.rglob("*") if p.is_dir()], reverse=True
            ):
                item.rmdir()
            path.rmdir()
    path.mkdir(parents=True, exist_ok=True)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has a Markdown extension (case-insensitive).
    """
    return path.suffix.lower() in MARKDOWN_EXTENSIONS


def is_html(path: Path) -> bool:
    """Check if a path is an HTML file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .html or .htm extension.
    """
    return path.suffix.lower() in HTML_EXTENSIONS


def is_excluded(rel: PurePosixPath, patterns: Iterable[str]) -> bool:
    """Check whether a relative path matches any exclude pattern.

    A pattern matches the full relative path, the file name, or any leading
    directory, so ``node_modules`` excludes everything beneath it.

    Args:
        rel: Path relative to the source directory.
        patterns: Glob patterns from the configuration.

    Returns:
        True if the path should be skipped.
    """
    posix = rel.as_posix()
    prefixes = [PurePosixPath(*rel.parts[: i + 1]).as_posix() for i in range(len(rel.parts))]
    for pattern in patterns:
        pattern = pattern.strip("/")
        if fnmatch.fnmatch(posix, pattern) or fnmatch.fnmatch(rel.name, pattern):
            return True
        if any(fnmatch.fnmatch(prefix, pattern) for prefix in prefixes):
            return True
    return False


def build_tags_index(items: Iterable) -> dict[str, list]:
    """Build an index mapping tags to lists of items containing that tag.

    Args:
        items: Iterable of ContentItem objects with a 'tags' attribute.

    Returns:
        Dictionary mapping tag names to lists of items.
    """
    tags: dict[str, list] = {}
    for item in items:
        for tag in item.tags:
            tags.setdefault(tag, []).append(item)
    return tags
