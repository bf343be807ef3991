"""Folio static site generator.

This package builds Jekyll-style portfolio and blog sites: a ``_config.yml``,
``_data`` files, Markdown/HTML content with YAML front matter, collection
directories such as ``_posts`` and ``_projects``, and Jinja2 layouts.

The main entry point is the CLI module, which provides commands for scaffolding
new sites, building them, and running the development server.

Pipeline:
- config: Loads the read-only site configuration and data files.
- content: Discovers source files and builds content items from front matter.
- collections: Groups items into collections and assigns permalinks.
- templates: Renders items through Jinja2 layouts into HTML.
- build: Orchestrates the single-pass build into the destination directory.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
