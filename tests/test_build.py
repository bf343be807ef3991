import logging
from pathlib import Path

import pytest

from folio.build import build_site
from folio.errors import BuildError, ConfigError, ContentParseError, TemplateResolutionError
from folio.feeds import AtomFeedGenerator, SitemapGenerator, create_feed_registry
from folio.config import load_config


def _portfolio(root: Path, write) -> Path:
    write(
        root,
        "_config.yml",
        """
title: Jane Doe
description: Projects & notes
url: https://jane.example.com
author:
  name: Jane Doe
plugins: [jekyll-feed, jekyll-sitemap, jemoji]
collections:
  projects:
    output: true
    permalink: /projects/:name
    sort_by: weight
defaults:
  - scope: {path: ""}
    values: {layout: default}
nav_exclude: [index.md]
""",
    )
    write(
        root,
        "_layouts/default.html",
        "<html><head><title>{{ page.title }} | {{ site.title }}</title></head>"
        "<body>{% for n in site.navigation %}<a href=\"{{ n.url | relative_url }}\">{{ n.title }}</a>{% endfor %}"
        "{{ content }}</body></html>\n",
    )
    write(root, "_data/timeline.yml", "- {year: 2022, title: Joined Acme}\n")
    write(
        root,
        "index.md",
        "---\ntitle: Home\n---\n{% for e in site.data.timeline %}- {{ e.year }} {{ e.title }}\n{% endfor %}",
    )
    write(root, "about.md", "---\ntitle: About\npermalink: /about/\n---\nHello!\n")
    write(root, "_posts/2024-01-15-first-post.md", "---\ntitle: First Post\ntags: [python]\n---\nFirst.\n")
    write(root, "_posts/2024-02-20-second-post.md", "---\ntitle: Second Post\n---\nSecond.\n")
    write(root, "_projects/demo.md", "---\nname: demo\ntitle: Demo\nweight: 1\n---\nDemo project.\n")
    write(root, "assets/css/site.css", "body { margin: 0; }\n")
    (root / "assets" / "img").mkdir(parents=True)
    (root / "assets" / "img" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\xff")
    return root


def _snapshot(directory: Path) -> dict[str, bytes]:
    return {
        p.relative_to(directory).as_posix(): p.read_bytes()
        for p in sorted(directory.rglob("*"))
        if p.is_file()
    }


def test_build_writes_pages_collections_and_static_files(tmp_path, write):
    root = _portfolio(tmp_path, write)
    result = build_site(root)

    out = root / "_site"
    assert result.output_dir == out
    assert sorted(_snapshot(out)) == [
        "2024/01/15/first-post.html",
        "2024/02/20/second-post.html",
        "about/index.html",
        "assets/css/site.css",
        "assets/img/logo.png",
        "feed.xml",
        "index.html",
        "projects/demo.html",
        "sitemap.xml",
    ]
    assert (out / "assets/img/logo.png").read_bytes() == b"\x89PNG\r\n\x1a\n\x00\xff"

    index = (out / "index.html").read_text(encoding="utf-8")
    assert "<title>Home | Jane Doe</title>" in index
    assert "2022 Joined Acme" in index
    assert '<a href="/about/">About</a>' in index
    assert ">Home</a>" not in index

    assert [item.url for item in result.items] == [
        "/about/",
        "/",
        "/projects/demo",
        "/2024/02/20/second-post.html",
        "/2024/01/15/first-post.html",
    ]


def test_build_is_idempotent(tmp_path, write):
    root = _portfolio(tmp_path, write)
    build_site(root)
    first = _snapshot(root / "_site")
    build_site(root)
    assert _snapshot(root / "_site") == first


def test_build_removes_stale_output(tmp_path, write):
    root = _portfolio(tmp_path, write)
    stale = root / "_site" / "old.html"
    stale.parent.mkdir(parents=True)
    stale.write_text("old", encoding="utf-8")
    build_site(root)
    assert not stale.exists()


def test_empty_front_matter_renders_with_defaults(tmp_path, write):
    root = _portfolio(tmp_path, write)
    write(root, "notes.html", "---\n---\n<p>Just notes</p>\n")
    build_site(root)
    html = (root / "_site" / "notes.html").read_text(encoding="utf-8")
    assert html.startswith("<html><head><title> | Jane Doe</title>")
    assert "<p>Just notes</p>\n</body></html>\n" in html


def test_html_body_round_trips_without_layout(site, write):
    body = "<div>\n  <span>{ not a tag }</span>\n</div>\n"
    write(site, "raw.html", f"---\nlayout: none\n---\n{body}")
    build_site(site)
    assert (site / "_site" / "raw.html").read_text(encoding="utf-8") == body


def test_drafts_are_built_on_request(site, write):
    write(site, "_drafts/idea.md", "---\ntitle: Idea\ndate: 2024-05-01\n---\nSoon\n")
    assert build_site(site).items == []
    result = build_site(site, include_drafts=True)
    assert [item.url for item in result.items] == ["/2024/05/01/idea.html"]


def test_output_directory_override(site, write, tmp_path):
    write(site, "index.html", "---\n---\nhome")
    target = tmp_path / "elsewhere"
    result = build_site(site, output_dir_override=target)
    assert result.output_dir == target
    assert (target / "index.html").read_text(encoding="utf-8") == "home"
    assert not (site / "_site").exists()


def test_feeds(tmp_path, write):
    root = _portfolio(tmp_path, write)
    build_site(root)
    feed = (root / "_site" / "feed.xml").read_text(encoding="utf-8")
    assert "<updated>2024-02-20T00:00:00</updated>" in feed
    assert "<title>Projects &amp; notes</title>" not in feed
    assert "<subtitle>Projects &amp; notes</subtitle>" in feed
    assert feed.index("Second Post") < feed.index("First Post")
    assert '<category term="python" />' in feed
    assert "&lt;p&gt;First.&lt;/p&gt;" in feed

    sitemap = (root / "_site" / "sitemap.xml").read_text(encoding="utf-8")
    assert "<loc>https://jane.example.com/about/</loc>" in sitemap
    assert "<loc>https://jane.example.com/projects/demo</loc>" in sitemap
    assert "<lastmod>2024-01-15</lastmod>" in sitemap


def test_feeds_need_a_site_url(site, write, caplog):
    write(site, "_config.yml", "title: Site\nplugins: [jekyll-feed, jekyll-sitemap]\n")
    write(site, "_posts/2024-01-01-a.md", "---\n---\nA\n")
    with caplog.at_level(logging.INFO, logger="folio"):
        result = build_site(site)
    assert "feed.xml" not in result.written
    assert not (site / "_site" / "sitemap.xml").exists()
    assert "no 'url' configured" in caplog.text


def test_feed_registry_follows_plugins(tmp_path, write, caplog):
    write(tmp_path, "_config.yml", "title: Site\nplugins: [jekyll-sitemap, jemoji, jekyll-gist]\n")
    with caplog.at_level(logging.INFO, logger="folio"):
        registry = create_feed_registry(load_config(tmp_path))
    assert [type(g) for g in registry._generators] == [SitemapGenerator]
    assert "jekyll-gist" in caplog.text
    assert "jemoji" not in caplog.text
    assert AtomFeedGenerator().filename == "feed.xml"


def test_sitemap_respects_opt_out(site, write):
    write(site, "_config.yml", "title: Site\nurl: https://example.com\nplugins: [jekyll-sitemap]\n")
    write(site, "404.html", "---\nsitemap: false\n---\nMissing")
    write(site, "index.html", "---\n---\nHome")
    build_site(site)
    sitemap = (site / "_site" / "sitemap.xml").read_text(encoding="utf-8")
    assert "404" not in sitemap
    assert "<loc>https://example.com/</loc>" in sitemap


def test_config_errors_propagate(tmp_path):
    with pytest.raises(ConfigError):
        build_site(tmp_path)


def test_strict_build_stops_on_malformed_front_matter(tmp_path, write):
    root = _portfolio(tmp_path, write)
    write(root, "broken.md", "---\ntitle: [unclosed\n---\n")
    assert "broken" not in " ".join(build_site(root).written)
    with pytest.raises(ContentParseError):
        build_site(root, overrides={"strict_front_matter": True})


def test_strict_build_stops_on_undefined_variable(tmp_path, write):
    root = _portfolio(tmp_path, write)
    write(root, "typo.md", "---\ntitle: Typo\n---\nHi {{ site.autor.name }}!\n")
    build_site(root)
    assert "<p>Hi !</p>" in (root / "_site" / "typo.html").read_text(encoding="utf-8")
    with pytest.raises(TemplateResolutionError):
        build_site(root, overrides={"liquid": {"strict_variables": True}})


def test_failed_build_keeps_previous_output(tmp_path, write):
    root = _portfolio(tmp_path, write)
    build_site(root)
    write(root, "typo.md", "---\n---\n{{ missing.value }}\n")
    with pytest.raises(TemplateResolutionError):
        build_site(root, overrides={"liquid": {"strict_variables": True}})
    assert (root / "_site" / "index.html").exists()


def test_unexpected_render_errors_carry_the_file(site, write):
    path = write(site, "math.html", "---\n---\n{{ 1 // 0 }}")
    with pytest.raises(BuildError) as excinfo:
        build_site(site)
    assert excinfo.value.source_path == path
    assert "ZeroDivisionError" in excinfo.value.message
    assert isinstance(excinfo.value.original_error, ZeroDivisionError)


def test_destination_at_source_root_leaves_sources_alone(tmp_path, write):
    write(tmp_path, "_config.yml", "title: Site\ndestination: .\n")
    write(tmp_path, "index.md", "---\n---\nHome\n")
    with pytest.raises(ConfigError):
        build_site(tmp_path)
    assert (tmp_path / "_config.yml").exists()
    assert (tmp_path / "index.md").exists()


def test_output_override_may_not_contain_the_sources(site, write):
    write(site, "index.md", "---\n---\nHome\n")
    with pytest.raises(ConfigError):
        build_site(site, output_dir_override=site)
    assert (site / "index.md").exists()


def test_permalink_cannot_escape_the_destination(tmp_path, write):
    root = tmp_path / "site"
    write(root, "_config.yml", "title: Site\n")
    write(root, "page.md", "---\npermalink: /../../escaped\n---\nOut\n")
    result = build_site(root)
    assert result.written == ["escaped.html"]
    assert (root / "_site" / "escaped.html").exists()
    assert not (tmp_path / "escaped.html").exists()


def test_collection_documents_are_written_by_default(tmp_path, write):
    write(
        tmp_path,
        "_config.yml",
        'title: Site\ncollections:\n  projects:\n    permalink: "/projects/:name"\n',
    )
    write(tmp_path, "_projects/x.md", "---\nname: demo\n---\nDemo\n")
    result = build_site(tmp_path)
    assert [item.url for item in result.items] == ["/projects/demo"]
    assert result.written == ["projects/demo.html"]
    assert (tmp_path / "_site" / "projects" / "demo.html").exists()


def test_jemoji_converts_shortcodes(site, write):
    write(site, "_config.yml", "title: Site\nplugins: [jemoji]\n")
    write(site, "note.md", "---\n---\nShipped :rocket:\n\n`:rocket:`\n")
    build_site(site)
    html = (site / "_site" / "note.html").read_text(encoding="utf-8")
    assert "<p>Shipped \U0001F680</p>" in html
    assert "<code>:rocket:</code>" in html


def test_safe_build_skips_plugins_outside_whitelist(site, write):
    write(site, "_config.yml", "title: Site\nplugins: [jemoji]\nwhitelist: []\n")
    write(site, "note.md", "---\n---\nShipped :rocket:\n")
    build_site(site, overrides={"safe": True})
    assert ":rocket:" in (site / "_site" / "note.html").read_text(encoding="utf-8")
