"""Shared pytest fixtures for all tests."""

import io
import tempfile
import zipfile
from pathlib import Path
from typing import Dict, Generator

import pytest

from filesync.blob_store import InMemoryBlobStore
from filesync.database import init_database
from filesync.service_locator import set_blob_store


def make_zip(files: Dict[str, bytes]) -> bytes:
    """
    Build an in-memory zip archive.

    Args:
        files: Mapping of archive entry name to content

    Returns:
        Archive bytes
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("filesync.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("filesync.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


@pytest.fixture
def blob_store() -> Generator[InMemoryBlobStore, None, None]:
    """
    In-memory blob store installed as the global store for the test.
    """
    store = InMemoryBlobStore()
    set_blob_store(store)
    yield store
    set_blob_store(None)


@pytest.fixture
def scratch_root(tmp_path, monkeypatch) -> Path:
    """
    Route scratch directories into a per-test folder so leftovers can be
    detected.
    """
    root = tmp_path / 'scratch'
    root.mkdir()
    monkeypatch.setattr("filesync.config.SCRATCH_DIR", str(root))
    return root


@pytest.fixture
def zip_factory():
    """Return the make_zip helper."""
    return make_zip


@pytest.fixture
def corrupt_zip_factory():
    """
    Return a builder for archives whose directory is intact but whose first
    entry holds damaged deflate data.
    """
    def build(name: str = 'a.txt') -> bytes:
        data = bytearray(make_zip({name: bytes(range(256)) * 200}))
        # Local header is 30 bytes plus the entry name
        start = 30 + len(name.encode()) + 2
        for offset in range(start, start + 20):
            data[offset] ^= 0xFF
        return bytes(data)

    return build
