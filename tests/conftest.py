import logging
from pathlib import Path

import pytest


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def write():
    """Write a file relative to a site root, creating parent directories."""
    return _write


@pytest.fixture
def site(tmp_path):
    """A minimal site source directory with only a title configured."""
    _write(tmp_path, "_config.yml", "title: Test Site\n")
    return tmp_path


@pytest.fixture(autouse=True)
def _no_folio_env(monkeypatch):
    monkeypatch.delenv("FOLIO_ENV", raising=False)


@pytest.fixture(autouse=True)
def _reset_folio_logger():
    logger = logging.getLogger("folio")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
