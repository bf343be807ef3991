"""Command-line interface for Folio.

This module defines the CLI commands using Click framework.
It provides commands for creating new sites, building them, and running the development server.

Commands:
- new: Scaffold a new Folio site.
- build: Build the site into the destination directory.
- serve: Run development server with live reload.
- post: Create a new blog post interactively.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .config import CONFIG_FILENAMES
from .utils import slugify, titleize

# Path to the files copied by ``folio new``
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"

_LEVEL_COLORS = {
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "red",
}


class ClickEchoHandler(logging.Handler):
    """Logging handler that writes records to stderr through click."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            color = _LEVEL_COLORS.get(record.levelno)
            if color:
                message = click.style(message, fg=color)
            click.echo(message, err=True)
        except Exception:
            self.handleError(record)


def _configure_logging(verbose: bool) -> None:
    """Route ``folio`` loggers through click.

    Args:
        verbose: Show DEBUG and INFO records; otherwise WARNING and above.
    """
    logger = logging.getLogger("folio")
    logger.handlers.clear()
    handler = ClickEchoHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="folio")
@click.option("-v", "--verbose", is_flag=True, help="Show detailed build output")
def cli(verbose: bool):
    """Folio static site generator."""
    _configure_logging(verbose)


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new Folio site."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New Folio site created at {target}")


@cli.command()
@click.option(
    "-s",
    "--source",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    help="Site source directory",
)
@click.option(
    "-d",
    "--destination",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (overrides _config.yml)",
)
@click.option("--drafts", is_flag=True, help="Include _drafts and unpublished content")
@click.option(
    "--strict",
    is_flag=True,
    help="Fail on malformed front matter, undefined variables and missing layouts",
)
@click.option("--baseurl", default=None, help="Serve the site from a subpath")
@click.option("--safe", is_flag=True, help="Only run plugins listed in the whitelist")
def build(
    source: Path,
    destination: Path | None,
    drafts: bool,
    strict: bool,
    baseurl: str | None,
    safe: bool,
):
    """Build the site into the destination directory."""
    source_dir = source.resolve()
    overrides = _build_overrides(destination, strict, baseurl, safe)
    from .build import build_site
    from .errors import BuildError

    try:
        result = build_site(source_dir, include_drafts=drafts, overrides=overrides)
    except BuildError as exc:
        _report_build_error(exc, source_dir)
        raise SystemExit(1) from None
    click.echo(
        f"Built {len(result.items)} pages and copied {len(result.static_files)} "
        f"files into {result.output_dir}"
    )


def _build_overrides(
    destination: Path | None, strict: bool, baseurl: str | None, safe: bool = False
) -> dict:
    overrides: dict = {}
    if destination is not None:
        overrides["destination"] = str(destination.resolve())
    if baseurl is not None:
        overrides["baseurl"] = baseurl
    if strict:
        overrides["strict_front_matter"] = True
        overrides["liquid"] = {"strict_variables": True}
    if safe:
        overrides["safe"] = True
    return overrides


def _report_build_error(exc, source_dir: Path) -> None:
    """Display a build error with the offending file."""
    try:
        rel_path = exc.source_path.relative_to(source_dir)
    except ValueError:
        rel_path = exc.source_path
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {rel_path}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


@cli.command()
@click.option(
    "-s",
    "--source",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Site source directory",
)
@click.option("--drafts", is_flag=True, help="Include draft content")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the dev server (overrides _config.yml port)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides livereload_port)",
)
def serve(source: Path, drafts: bool, port: int | None, ws_port: int | None):
    """Run dev server with live reload."""
    source_dir = source.resolve()
    from .errors import BuildError
    from .server import DevServer

    try:
        server = DevServer(source_dir, http_port=port, ws_port=ws_port)
        server.start(include_drafts=drafts)
    except BuildError as exc:
        _report_build_error(exc, source_dir)
        raise SystemExit(1) from None


@cli.command()
def post():
    """Create a new blog post interactively."""
    source_dir = Path.cwd()
    if not any((source_dir / name).exists() for name in CONFIG_FILENAMES):
        raise click.ClickException(
            "No _config.yml found. Run this command from a Folio site root."
        )

    title = questionary.text(
        "Post title:",
        validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
        style=_questionary_style(),
    ).ask()
    if title is None:
        raise click.Abort()
    title = title.strip()

    tags = questionary.text(
        "Tags (space separated, optional):",
        style=_questionary_style(),
    ).ask()
    if tags is None:
        raise click.Abort()

    draft = questionary.confirm(
        "Save as draft in _drafts/?",
        default=False,
        style=_questionary_style(),
    ).ask()
    if draft is None:
        raise click.Abort()

    slug = slugify(title)
    if draft:
        target_dir = source_dir / "_drafts"
        filename = f"{slug}.md"
    else:
        target_dir = source_dir / "_posts"
        filename = f"{datetime.now().strftime('%Y-%m-%d-')}{slug}.md"
    target_path = target_dir / filename

    existing = _get_existing_slugs(target_dir)
    if slug in existing:
        raise click.ClickException(f"A post with slug '{slug}' already exists in {target_dir.name}/")

    front_matter = {"title": title}
    if tags.split():
        front_matter["tags"] = tags.split()
    target_dir.mkdir(parents=True, exist_ok=True)
    header = yaml.safe_dump(front_matter, sort_keys=False, allow_unicode=True)
    target_path.write_text(f"---\n{header}---\n\n", encoding="utf-8")

    click.echo(f"Created {target_path.relative_to(source_dir)}")


def _get_existing_slugs(folder: Path) -> set[str]:
    """Get set of existing post slugs in a folder."""
    slugs = set()
    if folder.exists():
        for f in folder.iterdir():
            if f.is_file() and f.suffix == ".md":
                slugs.add(_extract_slug(f.name))
    return slugs


def _extract_slug(filename: str) -> str:
    """Extract slug from filename, removing date prefix and extension."""
    return slugify(titleize(filename))


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
            ("pointer", "fg:cyan bold"),
            ("highlighted", "fg:cyan bold"),
            ("selected", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Create the directory structure and files for a new Folio site.

    Args:
        root: Root directory for the new site.
    """
    for src_path in sorted(_SCAFFOLD_DIR.rglob("*")):
        if src_path.is_dir():
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    config_path = root / "_config.yml"
    config_text = config_path.read_text(encoding="utf-8")
    config_path.write_text(
        config_text.replace("__TITLE__", titleize(root.name)), encoding="utf-8"
    )

    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("FOLIO_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        # Non-fatal: user can run git init manually
        pass
