"""Site configuration for Folio.

This module loads ``_config.yml`` into a read-only ``SiteConfig`` and the
``_data`` directory into the site data mapping. The configuration is created
once per build and shared by every downstream component.

Key functions:
- load_config: Parse and validate the configuration file.
- load_data: Load YAML/JSON data files (timeline, skills, ...).

Key classes:
- SiteConfig: Frozen settings record with collection definitions.
- CollectionConfig: Output flag, permalink pattern and ordering of a collection.
- FrontMatterDefault: Scoped front matter defaults (the ``defaults`` key).
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAMES = ("_config.yml", "_config.yaml")

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title:output_ext",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title:output_ext",
    "none": "/:categories/:title:output_ext",
}

DEFAULT_COLLECTION_PERMALINK = "/:collection/:path:output_ext"

# Plugins applied while rendering content rather than by a generator.
CONTENT_PLUGINS = ("jemoji",)

DEFAULT_EXCLUDE = (
    "Gemfile",
    "Gemfile.lock",
    "node_modules",
    "vendor",
    ".*",
)

DEFAULT_CONFIG: dict[str, Any] = {
    "description": "",
    "url": "",
    "baseurl": "",
    "destination": "_site",
    "permalink": "date",
    "plugins": [],
    "whitelist": [],
    "nav_exclude": [],
    "exclude": [],
    "include": [],
    "collections": {},
    "defaults": [],
    "analytics": {},
    "show_drafts": False,
    "safe": False,
    "strict_front_matter": False,
    "liquid": {},
}

# Keys consumed into typed fields; everything else lands in ``extras``.
_KNOWN_KEYS = set(DEFAULT_CONFIG) | {"title", "author", "repository", "source"}


def resolve_permalink_style(pattern: str) -> str:
    """Expand a built-in permalink style name into its pattern.

    Args:
        pattern: A style name (``date``, ``pretty``, ...) or a pattern.

    Returns:
        The permalink pattern.
    """
    return PERMALINK_STYLES.get(pattern, pattern)


@dataclass(frozen=True)
class AuthorInfo:
    """Site author details.

    Attributes:
        name: Display name.
        email: Contact address.
        image: Path to the profile image.
        social: Remaining keys (github, website, mobile, ...).
    """

    name: str = ""
    email: str = ""
    image: str = ""
    social: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.social)
        data.update(name=self.name, email=self.email, image=self.image)
        return data


@dataclass(frozen=True)
class CollectionConfig:
    """Definition of a content collection.

    Attributes:
        name: Collection name; sources live in ``_<name>/``.
        output: Whether collection documents are written to the destination.
        permalink: Permalink pattern applied to each document.
        sort_by: Front matter field used to order documents, if any.
        reverse: Sort descending when ``sort_by`` is set.
        metadata: Any other keys declared for the collection.
    """

    name: str
    output: bool = True
    permalink: str = DEFAULT_COLLECTION_PERMALINK
    sort_by: str | None = None
    reverse: bool = False
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


@dataclass(frozen=True)
class FrontMatterDefault:
    """One entry of the ``defaults`` list.

    Attributes:
        path: Relative path prefix the scope applies to ("" matches all).
        type: ``pages``, ``posts`` or a collection name; None matches all.
        values: Front matter values to apply.
    """

    path: str
    type: str | None
    values: Mapping[str, Any]

    def applies_to(self, rel_path: str, item_type: str) -> bool:
        if self.type and self.type != item_type:
            return False
        scope = self.path.strip("/")
        if not scope:
            return True
        return rel_path == scope or rel_path.startswith(f"{scope}/")


@dataclass(frozen=True)
class SiteConfig:
    """Read-only site configuration for one build.

    Attributes:
        title: Site title (required).
        source: Directory containing the site sources.
        destination: Directory receiving the generated site.
        collections: Declared collections, including the implicit ``posts``.
        extras: Every top-level key without a dedicated field.
    """

    title: str
    source: Path
    destination: Path
    config_path: Path
    description: str = ""
    url: str = ""
    baseurl: str = ""
    repository: str = ""
    author: AuthorInfo = field(default_factory=AuthorInfo)
    plugins: tuple[str, ...] = ()
    whitelist: tuple[str, ...] = ()
    nav_exclude: tuple[str, ...] = ()
    analytics: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    permalink: str = PERMALINK_STYLES["date"]
    collections: Mapping[str, CollectionConfig] = field(
        default_factory=lambda: MappingProxyType({})
    )
    defaults: tuple[FrontMatterDefault, ...] = ()
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    include: tuple[str, ...] = ()
    show_drafts: bool = False
    safe: bool = False
    strict_front_matter: bool = False
    strict_variables: bool = False
    environment: str = "development"
    extras: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def collection(self, name: str) -> CollectionConfig | None:
        """Return the definition of a collection, or None if undeclared."""
        return self.collections.get(name)

    @property
    def enabled_plugins(self) -> tuple[str, ...]:
        """Plugins in effect; a safe build keeps only whitelisted ones."""
        if not self.safe:
            return self.plugins
        return tuple(p for p in self.plugins if p in self.whitelist)

    def has_plugin(self, name: str) -> bool:
        return name in self.enabled_plugins

    def defaults_for(self, rel_path: str, item_type: str) -> dict[str, Any]:
        """Merge the scoped front matter defaults applying to an item.

        Later entries override earlier ones, matching the order in the file.

        Args:
            rel_path: Source path relative to the site source, POSIX style.
            item_type: ``pages`` or the item's collection name.

        Returns:
            Merged default values.
        """
        merged: dict[str, Any] = {}
        for entry in self.defaults:
            if entry.applies_to(rel_path, item_type):
                merged.update(entry.values)
        return merged

    def to_context(self) -> dict[str, Any]:
        """Return the configuration as the ``site`` mapping for templates."""
        context: dict[str, Any] = dict(self.extras)
        context.update(
            title=self.title,
            description=self.description,
            url=self.url,
            baseurl=self.baseurl,
            repository=self.repository,
            author=self.author.to_dict(),
            plugins=list(self.enabled_plugins),
            nav_exclude=list(self.nav_exclude),
            analytics=dict(self.analytics),
            permalink=self.permalink,
            environment=self.environment,
        )
        return context


def check_destination(source_dir: Path, destination: Path, config_path: Path) -> None:
    """Refuse a destination that is the source directory or one of its parents.

    The destination is wiped before each build, so it must never contain the
    sources.

    Raises:
        ConfigError: If the destination would hold the site sources.
    """
    source = source_dir.resolve()
    target = destination.resolve()
    if target == source or target in source.parents:
        raise ConfigError(
            config_path,
            f"Destination {destination} contains the site sources; choose another directory",
        )


def _find_config_file(source_dir: Path) -> Path:
    for name in CONFIG_FILENAMES:
        candidate = source_dir / name
        if candidate.exists():
            return candidate
    raise ConfigError(source_dir / CONFIG_FILENAMES[0], "Configuration file not found")


def _string_list(config_path: Path, raw: dict[str, Any], key: str) -> tuple[str, ...]:
    value = raw.get(key) or []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(config_path, f"'{key}' must be a list of strings")
    return tuple(value)


def _mapping(config_path: Path, raw: dict[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(config_path, f"'{key}' must be a mapping")
    return value


def _parse_author(config_path: Path, raw: dict[str, Any]) -> AuthorInfo:
    value = raw.get("author")
    if value is None:
        return AuthorInfo()
    if isinstance(value, str):
        return AuthorInfo(name=value)
    if not isinstance(value, dict):
        raise ConfigError(config_path, "'author' must be a mapping or a name")
    social = {k: v for k, v in value.items() if k not in ("name", "email", "image")}
    return AuthorInfo(
        name=str(value.get("name") or ""),
        email=str(value.get("email") or ""),
        image=str(value.get("image") or ""),
        social=MappingProxyType(social),
    )


def _parse_collections(
    config_path: Path, raw: dict[str, Any], posts_permalink: str
) -> dict[str, CollectionConfig]:
    declared = raw.get("collections") or {}
    if isinstance(declared, list):
        declared = {name: {} for name in declared}
    if not isinstance(declared, dict):
        raise ConfigError(config_path, "'collections' must be a mapping")

    collections: dict[str, CollectionConfig] = {}
    for name, settings in declared.items():
        settings = settings or {}
        if not isinstance(settings, dict):
            raise ConfigError(config_path, f"Collection '{name}' must be a mapping")
        permalink = settings.get("permalink", DEFAULT_COLLECTION_PERMALINK)
        if not isinstance(permalink, str):
            raise ConfigError(
                config_path, f"Permalink of collection '{name}' must be a string"
            )
        sort_by = settings.get("sort_by")
        if sort_by is not None and not isinstance(sort_by, str):
            raise ConfigError(
                config_path, f"'sort_by' of collection '{name}' must be a string"
            )
        extra = {
            k: v
            for k, v in settings.items()
            if k not in ("output", "permalink", "sort_by", "reverse")
        }
        collections[str(name)] = CollectionConfig(
            name=str(name),
            output=bool(settings.get("output", True)),
            permalink=resolve_permalink_style(permalink),
            sort_by=sort_by,
            reverse=bool(settings.get("reverse", False)),
            metadata=MappingProxyType(extra),
        )

    # Posts always exist, are always written and default to newest first.
    posts = collections.get("posts")
    posts_settings = declared.get("posts") or {}
    collections["posts"] = CollectionConfig(
        name="posts",
        output=True,
        permalink=posts.permalink if "permalink" in posts_settings else posts_permalink,
        sort_by=posts.sort_by if posts and posts.sort_by else "date",
        reverse=posts.reverse if posts and posts.sort_by else True,
        metadata=posts.metadata if posts else MappingProxyType({}),
    )
    return collections


def _parse_defaults(config_path: Path, raw: dict[str, Any]) -> tuple[FrontMatterDefault, ...]:
    entries = raw.get("defaults") or []
    if not isinstance(entries, list):
        raise ConfigError(config_path, "'defaults' must be a list")
    defaults = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not isinstance(entry.get("values"), dict):
            raise ConfigError(
                config_path, f"'defaults' entry {index} must have a 'values' mapping"
            )
        scope = entry.get("scope") or {}
        if not isinstance(scope, dict):
            raise ConfigError(config_path, f"'defaults' entry {index} has a bad scope")
        defaults.append(
            FrontMatterDefault(
                path=str(scope.get("path") or ""),
                type=scope.get("type"),
                values=MappingProxyType(dict(entry["values"])),
            )
        )
    return tuple(defaults)


def load_config(
    source_dir: Path, overrides: Mapping[str, Any] | None = None
) -> SiteConfig:
    """Load site configuration from ``_config.yml``.

    Args:
        source_dir: Root directory of the site sources.
        overrides: Values that replace top-level keys of the file (CLI flags).

    Returns:
        The validated, read-only site configuration.

    Raises:
        ConfigError: If the file is missing, unparsable, or has malformed or
            missing required fields.
    """
    config_path = _find_config_file(source_dir)
    try:
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(config_path, f"Invalid YAML: {exc}", exc) from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigError(config_path, "Configuration must be a mapping")

    raw = dict(DEFAULT_CONFIG)
    raw.update(loaded)
    if overrides:
        raw.update(overrides)

    title = raw.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ConfigError(config_path, "Required setting 'title' is missing or empty")

    permalink = raw.get("permalink") or "date"
    if not isinstance(permalink, str):
        raise ConfigError(config_path, "'permalink' must be a string")
    permalink = resolve_permalink_style(permalink)

    for key in ("url", "baseurl", "description", "destination"):
        if raw.get(key) is not None and not isinstance(raw[key], str):
            raise ConfigError(config_path, f"'{key}' must be a string")

    liquid = _mapping(config_path, raw, "liquid")
    destination = Path(raw.get("destination") or "_site")
    if not destination.is_absolute():
        destination = source_dir / destination
    check_destination(source_dir, destination, config_path)

    return SiteConfig(
        title=title.strip(),
        source=source_dir,
        destination=destination,
        config_path=config_path,
        description=str(raw.get("description") or "").strip(),
        url=str(raw.get("url") or "").rstrip("/"),
        baseurl=str(raw.get("baseurl") or "").rstrip("/"),
        repository=str(raw.get("repository") or ""),
        author=_parse_author(config_path, raw),
        plugins=_string_list(config_path, raw, "plugins"),
        whitelist=_string_list(config_path, raw, "whitelist"),
        nav_exclude=_string_list(config_path, raw, "nav_exclude"),
        analytics=MappingProxyType(_mapping(config_path, raw, "analytics")),
        permalink=permalink,
        collections=MappingProxyType(_parse_collections(config_path, raw, permalink)),
        defaults=_parse_defaults(config_path, raw),
        exclude=DEFAULT_EXCLUDE + _string_list(config_path, raw, "exclude"),
        include=_string_list(config_path, raw, "include"),
        show_drafts=bool(raw.get("show_drafts")),
        safe=bool(raw.get("safe")),
        strict_front_matter=bool(raw.get("strict_front_matter")),
        strict_variables=bool(liquid.get("strict_variables")),
        environment=os.environ.get("FOLIO_ENV", "development"),
        extras=MappingProxyType({k: v for k, v in raw.items() if k not in _KNOWN_KEYS}),
    )


def load_data(source_dir: Path, data_dir: str = "_data") -> dict[str, Any]:
    """Load site data from YAML and JSON files in the data directory.

    Each file is stored under its stem, so ``_data/timeline.yml`` becomes
    ``site.data.timeline`` in templates.

    Args:
        source_dir: Root directory of the site sources.
        data_dir: Name of the data directory.

    Returns:
        Dictionary mapping file stems to their parsed content.

    Raises:
        ConfigError: If a data file cannot be parsed.
    """
    root = source_dir / data_dir
    data: dict[str, Any] = {}
    if not root.exists():
        return data
    for path in sorted(root.iterdir()):
        suffix = path.suffix.lower()
        if not path.is_file() or suffix not in (".yml", ".yaml", ".json"):
            continue
        try:
            with open(path, encoding="utf-8") as f:
                payload = json.load(f) if suffix == ".json" else yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError(path, f"Invalid data file: {exc}", exc) from exc
        data[path.stem] = payload
    return data
