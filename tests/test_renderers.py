"""Tests for renderers, the renderer registry and pluggable pipeline components."""

from pathlib import Path, PurePosixPath

from folio.config import load_config
from folio.content import ContentProcessor, DefaultItemBuilder, SourceFile
from folio.protocols import ContentRenderer
from folio.renderers import (
    Heading,
    HTMLRenderer,
    MarkdownRenderer,
    RendererRegistry,
    TextRenderer,
)

# --- Renderer Tests ---


def test_markdown_renderer():
    """Test MarkdownRenderer renders markdown to HTML."""
    renderer = MarkdownRenderer()
    assert renderer.source_type == "markdown"
    html, headings = renderer.render("# Hello\n\nWorld ~~old~~")
    assert html == '<h1 id="hello">Hello</h1>\n<p>World <del>old</del></p>\n'
    assert headings == [Heading(id="hello", text="Hello", level=1)]


def test_markdown_renderer_deduplicates_heading_ids():
    html, headings = MarkdownRenderer().render("## Setup\n\n## Setup\n")
    assert [h.id for h in headings] == ["setup", "setup-1"]
    assert '<h2 id="setup-1">' in html


def test_markdown_renderer_unknown_language():
    html, _ = MarkdownRenderer().render("```nosuchlang\na < b\n```\n")
    assert html == '<pre><code class="language-nosuchlang">a &lt; b\n</code></pre>\n'


def test_markdown_renderer_tables():
    html, _ = MarkdownRenderer().render("| a | b |\n|---|---|\n| 1 | 2 |\n")
    assert "<table>" in html


def test_passthrough_renderers():
    """Test HTMLRenderer and TextRenderer pass content through."""
    assert HTMLRenderer().render("<p>Test</p>") == ("<p>Test</p>", [])
    assert TextRenderer().render("a { }") == ("a { }", [])


def test_renderer_registry():
    """Test RendererRegistry finds renderers by source type."""
    registry = RendererRegistry()
    assert registry.get_renderer("markdown").source_type == "markdown"
    assert registry.get_renderer("html").source_type == "html"
    assert registry.get_renderer("text").source_type == "text"
    assert registry.get_renderer("asciidoc") is None


def test_renderer_registry_register_replaces():
    class ShoutingRenderer:
        source_type = "text"

        def render(self, content):
            return content.upper(), []

    registry = RendererRegistry()
    registry.register(ShoutingRenderer())
    assert registry.get_renderer("text").render("hi") == ("HI", [])


def test_renderers_implement_protocol():
    """Verify renderers implement ContentRenderer protocol."""
    for renderer in (MarkdownRenderer(), HTMLRenderer(), TextRenderer()):
        assert isinstance(renderer, ContentRenderer)


# --- Pluggable components ---


def test_content_processor_with_custom_components(site):
    """Test ContentProcessor accepts custom loader and builder."""
    source = site / "virtual.md"

    class OneFileLoader:
        def iter_files(self, include_drafts=False):
            source.write_text("---\ntitle: Virtual\n---\n", encoding="utf-8")
            return [SourceFile(source, PurePosixPath("virtual.md"), None)]

    class RecordingBuilder:
        def __init__(self, inner):
            self.inner = inner
            self.seen = []

        def build(self, source_file, text):
            self.seen.append(source_file.rel)
            return self.inner.build(source_file, text)

    config = load_config(site)
    builder = RecordingBuilder(DefaultItemBuilder(config))
    result = ContentProcessor(config, content_loader=OneFileLoader(), item_builder=builder).load()
    assert [item.title for item in result.items] == ["Virtual"]
    assert builder.seen == [PurePosixPath("virtual.md")]
    assert isinstance(result.items[0].path, Path)
