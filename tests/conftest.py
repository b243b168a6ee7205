"""Shared fixtures."""

from pathlib import Path

import pytest

from repodocs.indexer.parser import SymbolExtractor
from repodocs.storage.session_store import MemorySessionStore, SqliteSessionStore
from tests.helpers import SAMPLE_FILES, StaticSource, make_provider


@pytest.fixture(scope="session")
def extractor():
    """Tree-sitter parsers are reusable across tests."""
    return SymbolExtractor()


@pytest.fixture
def provider():
    return make_provider()


@pytest.fixture
def source():
    return StaticSource()


@pytest.fixture
def memory_store():
    return MemorySessionStore()


@pytest.fixture
def sqlite_store(tmp_path: Path):
    s = SqliteSessionStore(tmp_path / "session.db")
    yield s
    s.close()


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """The sample repository written to disk."""
    repo = tmp_path / "repo"
    for rel, content in SAMPLE_FILES.items():
        p = repo / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
    return repo
