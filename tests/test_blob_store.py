"""Tests for local and in-memory blob stores."""

import io

import pytest

from filesync.blob_store import InMemoryBlobStore, LocalBlobStore


@pytest.fixture(params=["local", "memory"])
def store(request, tmp_path):
    if request.param == "local":
        return LocalBlobStore(tmp_path / "blobs")
    return InMemoryBlobStore()


def test_write_then_read(store):
    written = store.write("file-1", io.BytesIO(b"payload"))

    assert written == 7
    assert store.exists("file-1")
    with store.read("file-1") as stream:
        assert stream.read() == b"payload"


def test_write_replaces_previous_content(store):
    store.write_bytes("file-1", b"first version")
    store.write_bytes("file-1", b"second")

    with store.read("file-1") as stream:
        assert stream.read() == b"second"


def test_read_missing_raises(store):
    with pytest.raises(FileNotFoundError):
        store.read("missing")


def test_delete(store):
    store.write_bytes("file-1", b"x")

    assert store.delete("file-1")
    assert not store.exists("file-1")
    assert not store.delete("file-1")


def test_read_streaming_yields_all_pieces(store):
    data = b"0123456789" * 10
    store.write_bytes("file-1", data)

    pieces = list(store.read_streaming("file-1", piece_size=16))

    assert b"".join(pieces) == data
    assert len(pieces) == 7


def test_read_streaming_missing_fails_eagerly(store):
    with pytest.raises(FileNotFoundError):
        store.read_streaming("missing")


def test_local_store_leaves_no_temp_files(tmp_path):
    store = LocalBlobStore(tmp_path / "blobs")
    store.write_bytes("file-1", b"a")
    store.write_bytes("file-1", b"b")

    assert [p.name for p in (tmp_path / "blobs").iterdir()] == ["file-1.blob"]


@pytest.mark.parametrize("bad_id", ["", "..", "a/b", "a\\b"])
def test_local_store_rejects_path_like_ids(tmp_path, bad_id):
    store = LocalBlobStore(tmp_path / "blobs")
    with pytest.raises(ValueError):
        store.get_blob_path(bad_id)
