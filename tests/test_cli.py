import logging
import subprocess
from datetime import datetime

from click.testing import CliRunner

from folio import __version__
from folio.cli import ClickEchoHandler, _extract_slug, _get_existing_slugs, _try_git_init, cli

SKIP_GIT = {"FOLIO_SKIP_GIT_INIT": "1"}


def _questions(monkeypatch, answers):
    responses = iter(answers)

    class MockQuestion:
        def ask(self):
            return next(responses)

    monkeypatch.setattr("folio.cli.questionary.text", lambda *a, **k: MockQuestion())
    monkeypatch.setattr("folio.cli.questionary.confirm", lambda *a, **k: MockQuestion())


def test_cli_new_scaffolds_project(tmp_path):
    runner = CliRunner()
    target = tmp_path / "jane-doe"
    result = runner.invoke(cli, ["new", str(target)], env=SKIP_GIT)
    assert result.exit_code == 0
    assert "title: Jane Doe" in (target / "_config.yml").read_text(encoding="utf-8")
    assert (target / "_layouts" / "default.html").exists()
    assert (target / "_includes" / "nav.html").exists()
    assert (target / "_projects" / "demo.md").exists()
    assert list((target / "_posts").glob("*-welcome.md"))

    # fails on non-empty directory
    (target / "extra.txt").write_text("x", encoding="utf-8")
    result = runner.invoke(cli, ["new", str(target)], env=SKIP_GIT)
    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_scaffolded_site_builds_strictly(tmp_path):
    runner = CliRunner()
    target = tmp_path / "portfolio"
    runner.invoke(cli, ["new", str(target)], env=SKIP_GIT)

    result = runner.invoke(cli, ["build", "--source", str(target), "--strict"], catch_exceptions=False)
    assert result.exit_code == 0, result.output
    out = target / "_site"
    for rel in (
        "index.html",
        "about/index.html",
        "404.html",
        "projects/demo.html",
        "blog/2024/01/15/welcome-to-folio/index.html",
        "assets/style.css",
        "feed.xml",
        "sitemap.xml",
    ):
        assert (out / rel).exists(), rel
    demo = (out / "projects" / "demo.html").read_text(encoding="utf-8")
    assert "Python, Jinja2" in demo
    index = (out / "index.html").read_text(encoding="utf-8")
    assert "Started this site" in index
    assert 'href="/projects/demo"' in index


def test_build_options_override_config(tmp_path):
    runner = CliRunner()
    target = tmp_path / "portfolio"
    runner.invoke(cli, ["new", str(target)], env=SKIP_GIT)
    dest = tmp_path / "public"

    result = runner.invoke(
        cli,
        ["build", "-s", str(target), "-d", str(dest), "--baseurl", "/me"],
        catch_exceptions=False,
    )
    assert result.exit_code == 0
    assert str(dest) in result.output
    assert 'href="/me/about/"' in (dest / "index.html").read_text(encoding="utf-8")


def test_build_failure_reports_file(tmp_path, write):
    write(tmp_path, "_config.yml", "title: Site\n")
    write(tmp_path, "bad.md", "---\ntitle: [oops\n---\n")
    runner = CliRunner()

    lenient = runner.invoke(cli, ["build", "--source", str(tmp_path)])
    assert lenient.exit_code == 0
    assert "Skipping bad.md" in lenient.output

    strict = runner.invoke(cli, ["build", "--source", str(tmp_path), "--strict"])
    assert strict.exit_code == 1
    assert "Build failed:" in strict.output
    assert "File: bad.md" in strict.output


def test_build_missing_config(tmp_path):
    result = CliRunner().invoke(cli, ["build", "--source", str(tmp_path)])
    assert result.exit_code == 1
    assert "Configuration file not found" in result.output


def test_verbose_flag_enables_debug_logging(tmp_path, write):
    write(tmp_path, "_config.yml", "title: Site\n")
    write(tmp_path, "index.html", "---\n---\nhome")
    result = CliRunner().invoke(cli, ["-v", "build", "--source", str(tmp_path)])
    assert result.exit_code == 0
    assert "Wrote 1 files" in result.output
    assert logging.getLogger("folio").level == logging.DEBUG


def test_click_echo_handler_formats_records(capsys):
    handler = ClickEchoHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    record = logging.LogRecord("folio", logging.WARNING, __file__, 1, "careful %s", ("now",), None)
    handler.emit(record)
    assert "WARNING careful now" in capsys.readouterr().err


def test_cli_serve(monkeypatch, tmp_path):
    runner = CliRunner()
    called = {}

    class DummyServer:
        def __init__(self, source_dir, http_port=None, ws_port=None):
            called["source"] = source_dir
            called["port"] = http_port
            called["ws_port"] = ws_port

        def start(self, include_drafts=False):
            called["drafts"] = include_drafts

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("folio.server.DevServer", DummyServer)
    result = runner.invoke(
        cli, ["serve", "--drafts", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called == {"source": tmp_path, "port": 5050, "ws_port": 5051, "drafts": True}


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_module_main_entrypoint():
    from folio.__main__ import main

    assert callable(main)


def test_main_invokes_cli(monkeypatch):
    import folio.cli as cli_mod

    called = {}
    monkeypatch.setattr(cli_mod, "cli", lambda: called.setdefault("ran", True))
    cli_mod.main()
    assert called["ran"]


def test_try_git_init(monkeypatch, tmp_path):
    called = {}
    monkeypatch.delenv("FOLIO_SKIP_GIT_INIT", raising=False)
    monkeypatch.setattr("folio.cli.shutil.which", lambda cmd: "/usr/bin/git")

    def fake_run(cmd, cwd=None, check=None, capture_output=None):
        called["cmd"] = cmd
        called["cwd"] = cwd
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr("folio.cli.subprocess.run", fake_run)
    _try_git_init(tmp_path)
    assert called == {"cmd": ["/usr/bin/git", "init"], "cwd": tmp_path}


def test_try_git_init_tolerates_failure(monkeypatch, tmp_path):
    monkeypatch.delenv("FOLIO_SKIP_GIT_INIT", raising=False)
    monkeypatch.setattr("folio.cli.shutil.which", lambda cmd: "/usr/bin/git")

    def fake_run(cmd, cwd=None, check=None, capture_output=None):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr("folio.cli.subprocess.run", fake_run)
    _try_git_init(tmp_path)  # should not raise

    monkeypatch.setattr("folio.cli.shutil.which", lambda cmd: None)
    _try_git_init(tmp_path)  # no git available


def test_slug_helpers(tmp_path):
    assert _extract_slug("2024-01-15-my-post.md") == "my-post"
    assert _extract_slug("simple.md") == "simple"

    posts = tmp_path / "_posts"
    posts.mkdir()
    (posts / "2024-01-01-first-post.md").write_text("x", encoding="utf-8")
    (posts / "notes.txt").write_text("x", encoding="utf-8")
    assert _get_existing_slugs(posts) == {"first-post"}
    assert _get_existing_slugs(tmp_path / "missing") == set()


def test_post_requires_site_root(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "No _config.yml found" in result.output


def test_post_creates_dated_file(tmp_path, monkeypatch, write):
    write(tmp_path, "_config.yml", "title: Site\n")
    monkeypatch.chdir(tmp_path)
    _questions(monkeypatch, ["My New Post", "python notes", False])

    result = CliRunner().invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0
    date_prefix = datetime.now().strftime("%Y-%m-%d")
    created = tmp_path / "_posts" / f"{date_prefix}-my-new-post.md"
    assert created.read_text(encoding="utf-8") == (
        "---\ntitle: My New Post\ntags:\n- python\n- notes\n---\n\n"
    )


def test_post_as_draft(tmp_path, monkeypatch, write):
    write(tmp_path, "_config.yml", "title: Site\n")
    monkeypatch.chdir(tmp_path)
    _questions(monkeypatch, ["Idea", "", True])

    result = CliRunner().invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (tmp_path / "_drafts" / "idea.md").read_text(encoding="utf-8") == "---\ntitle: Idea\n---\n\n"


def test_post_duplicate_detection(tmp_path, monkeypatch, write):
    write(tmp_path, "_config.yml", "title: Site\n")
    write(tmp_path, "_posts/2020-01-01-existing-post.md", "---\n---\n")
    monkeypatch.chdir(tmp_path)
    _questions(monkeypatch, ["Existing Post", "", False])

    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_post_aborts_on_cancel(tmp_path, monkeypatch, write):
    write(tmp_path, "_config.yml", "title: Site\n")
    monkeypatch.chdir(tmp_path)
    _questions(monkeypatch, [None])

    result = CliRunner().invoke(cli, ["post"])
    assert result.exit_code == 1
    assert not (tmp_path / "_posts").exists()


def test_cli_serve_accepts_source(monkeypatch, tmp_path):
    called = {}

    class DummyServer:
        def __init__(self, source_dir, http_port=None, ws_port=None):
            called["source"] = source_dir

        def start(self, include_drafts=False):
            called["drafts"] = include_drafts

    site = tmp_path / "site"
    site.mkdir()
    monkeypatch.setattr("folio.server.DevServer", DummyServer)
    result = CliRunner().invoke(cli, ["serve", "--source", str(site)], catch_exceptions=False)
    assert result.exit_code == 0
    assert called == {"source": site.resolve(), "drafts": False}


def test_post_accepts_yaml_extension_config(tmp_path, monkeypatch, write):
    write(tmp_path, "_config.yaml", "title: Site\n")
    monkeypatch.chdir(tmp_path)
    _questions(monkeypatch, ["Yaml Site", "", True])

    result = CliRunner().invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0
    assert (tmp_path / "_drafts" / "yaml-site.md").exists()


def test_build_safe_flag(tmp_path, write):
    write(tmp_path, "_config.yml", "title: Site\nplugins: [jemoji]\n")
    write(tmp_path, "note.md", "---\n---\nHi :wave:\n")
    runner = CliRunner()

    runner.invoke(cli, ["build", "-s", str(tmp_path)], catch_exceptions=False)
    assert ":wave:" not in (tmp_path / "_site" / "note.html").read_text(encoding="utf-8")

    runner.invoke(cli, ["build", "-s", str(tmp_path), "--safe"], catch_exceptions=False)
    assert ":wave:" in (tmp_path / "_site" / "note.html").read_text(encoding="utf-8")


def test_build_refuses_source_as_destination(tmp_path, write):
    write(tmp_path, "_config.yml", "title: Site\n")
    result = CliRunner().invoke(cli, ["build", "-s", str(tmp_path), "-d", str(tmp_path)])
    assert result.exit_code == 1
    assert "contains the site sources" in result.output
    assert (tmp_path / "_config.yml").exists()
