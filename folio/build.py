"""Site building functionality for Folio.

This module contains the core logic for building a static site from source files.
It loads configuration and data, processes content, aggregates collections,
renders templates, and writes output files. The build is a single synchronous
pass with no state kept between invocations.

Key functions:
- build_site: Main function to build the entire site.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .collections import CollectionAggregator, SiteContent
from .config import SiteConfig, check_destination, load_config, load_data
from .content import ContentItem, ContentProcessor, StaticFile
from .errors import BuildError
from .feeds import create_feed_registry
from .templates import TemplateEngine
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        config: Configuration used for the build.
        content: Aggregated pages and collections.
        static_files: Files copied verbatim.
        output_dir: Directory where the site was built.
        data: Site data from ``_data``.
        written: Output paths written, relative to output_dir.
    """

    config: SiteConfig
    content: SiteContent
    static_files: list[StaticFile]
    output_dir: Path
    data: dict[str, Any]
    written: list[str]

    @property
    def items(self) -> list[ContentItem]:
        return self.content.output_items


def build_site(
    source_dir: Path,
    include_drafts: bool = False,
    overrides: Mapping[str, Any] | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        source_dir: Directory containing ``_config.yml`` and the site sources.
        include_drafts: Whether to include ``_drafts`` and unpublished items.
        overrides: Configuration values that replace those of ``_config.yml``.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Optional path to write the build output instead
            of the configured destination.

    Returns:
        BuildResult describing what was built.

    Raises:
        BuildError: ConfigError, ContentParseError or TemplateResolutionError
            (all BuildError subclasses) on any fatal problem.
    """
    config = load_config(source_dir, overrides)
    include_drafts = include_drafts or config.show_drafts
    output_dir = output_dir_override or config.destination
    if output_dir_override is not None:
        check_destination(source_dir, output_dir_override, config.config_path)

    data = load_data(source_dir)
    loaded = ContentProcessor(config).load(include_drafts=include_drafts)
    content = CollectionAggregator(config).aggregate(loaded.items)
    logger.debug(
        "Loaded %d pages, %d documents, %d static files",
        len(content.pages),
        len(content.documents),
        len(loaded.static_files),
    )

    engine = TemplateEngine(config, data, content, loaded.static_files)
    # Documents first, so page bodies can list post and project content.
    for item in content.documents + content.pages:
        _guarded(item, engine.render_content)
    rendered = [(item, _guarded(item, engine.render_layout)) for item in content.output_items]

    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for item, document in rendered:
        written.append(_write_item(output_dir, item, document))
    for static in loaded.static_files:
        written.append(_copy_static(output_dir, static))
    written.extend(create_feed_registry(config).generate_all(output_dir, content, config))

    logger.info("Wrote %d files to %s", len(written), output_dir)
    return BuildResult(
        config=config,
        content=content,
        static_files=loaded.static_files,
        output_dir=output_dir,
        data=data,
        written=written,
    )


def _guarded(item: ContentItem, render) -> str:
    """Run a render step, attaching the item's path to unexpected errors."""
    try:
        return render(item)
    except BuildError:
        raise
    except Exception as exc:
        raise BuildError(item.path, _format_error_message(exc), exc) from exc


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _write_item(output_dir: Path, item: ContentItem, rendered: str) -> str:
    """Write a rendered item to its output path.

    Args:
        output_dir: Base output directory.
        item: Item carrying the resolved output path.
        rendered: Final document.

    Returns:
        The written path relative to output_dir.

    Raises:
        BuildError: If the output path resolves outside output_dir.
    """
    target = output_dir / item.output_path
    root = output_dir.resolve()
    if root not in target.resolve().parents:
        raise BuildError(item.path, f"Output path {item.output_path} leaves the destination")
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8", newline="") as f:
        f.write(rendered)
    return item.output_path.as_posix()


def _copy_static(output_dir: Path, static: StaticFile) -> str:
    target = output_dir / static.rel_path
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(static.path, target)
    return static.rel_path
