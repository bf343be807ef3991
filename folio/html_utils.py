"""HTML utility functions for Folio.

This module provides HTML and URL string helpers used by templates and feeds.

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    relative_url: Prefix a site path with the configured baseurl.
    absolute_url: Turn a site path into a full URL.
    emojize_html: Replace :shortcode: emoji outside code in rendered HTML.
"""

from __future__ import annotations

import re

import emoji

# URL prefixes that should not be modified
_URL_SKIP_PREFIXES = (
    "http://",
    "https://",
    "//",
    "mailto:",
    "tel:",
    "#",
    "javascript:",
)


def escape_html(text: str) -> str:
    """Escape &, <, > and double quotes for HTML and XML text.

    Example:
        >>> escape_html('Tom & "Jerry"')
        'Tom &amp; &quot;Jerry&quot;'
    """
    return (
        str(text)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com', '/about')
        'https://example.com/about'

        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def relative_url(path: str, baseurl: str = "") -> str:
    """Prefix a site path with the baseurl, like Jekyll's ``relative_url``.

    Examples:
        >>> relative_url("assets/app.css", "/blog")
        '/blog/assets/app.css'

        >>> relative_url("https://cdn.example.com/lib.js", "/blog")
        'https://cdn.example.com/lib.js'
    """
    path = str(path or "")
    if path.startswith(_URL_SKIP_PREFIXES):
        return path
    path = path if path.startswith("/") else f"/{path}"
    return join_root_url(baseurl, path) if baseurl else path


def absolute_url(path: str, url: str = "", baseurl: str = "") -> str:
    """Turn a site path into a full URL using ``url`` and ``baseurl``."""
    path = str(path or "")
    if path.startswith(_URL_SKIP_PREFIXES):
        return path
    return join_root_url(url, relative_url(path, baseurl))


# Code is left untouched, as are tag attributes.
_EMOJI_SKIP_RE = re.compile(r"(<pre\b.*?</pre>|<code\b.*?</code>|<[^>]+>)", re.DOTALL | re.IGNORECASE)


def emojize_html(html: str) -> str:
    """Replace GitHub-style ``:shortcode:`` emoji in text outside code blocks.

    Examples:
        >>> emojize_html("<p>Ship it :rocket:</p><code>:rocket:</code>")
        '<p>Ship it 🚀</p><code>:rocket:</code>'
    """
    parts = _EMOJI_SKIP_RE.split(html)
    for index in range(0, len(parts), 2):
        parts[index] = emoji.emojize(parts[index], language="alias")
    return "".join(parts)
