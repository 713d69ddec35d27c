"""
Tests for index persistence.
"""

import json

import pytest

from semindex.errors import IndexFormatError, PersistenceError
from semindex.store import IndexStore, entry_to_dict, index_from_dict, index_to_dict, read_index

from conftest import make_index


@pytest.fixture
def index():
    return make_index({
        "u1": [0.1, 0.2, 0.3],
        "u2": [1.0, 0.0, -0.5],
    })


class TestIndexStore:
    """Tests for IndexStore."""

    def test_round_trip(self, tmp_path, index):
        store = IndexStore(tmp_path)
        store.save(index)

        loaded = store.load()

        assert store.path == tmp_path / ".semindex" / "index.json"
        assert loaded.provider_name == "fake:bow"
        assert loaded.dimension == 3
        assert loaded.complete
        assert [entry_to_dict(e) for e in loaded] == [entry_to_dict(e) for e in index]

    def test_missing_index(self, tmp_path):
        assert IndexStore(tmp_path).load() is None

    def test_other_major_version_ignored(self, tmp_path, index):
        store = IndexStore(tmp_path)
        store.save(index)
        data = json.loads(store.path.read_text())
        data["format_version"] = "2.0"
        store.path.write_text(json.dumps(data))

        assert store.load() is None

    def test_minor_version_accepted(self, tmp_path, index):
        store = IndexStore(tmp_path)
        store.save(index)
        data = json.loads(store.path.read_text())
        data["format_version"] = "1.7"
        store.path.write_text(json.dumps(data))

        assert len(store.load()) == 2

    def test_corrupt_index_ignored(self, tmp_path, index):
        store = IndexStore(tmp_path)
        store.save(index)
        store.path.write_text('{"format_version": "1.0", "entries": [')

        assert store.load() is None

    def test_atomic_write_failure_keeps_previous(self, tmp_path, index, monkeypatch):
        """A failure before the rename leaves the old index loadable."""
        store = IndexStore(tmp_path)
        store.save(index)
        before = store.path.read_bytes()

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("semindex.store.os.replace", failing_replace)
        bigger = make_index({"u1": [1.0, 1.0, 1.0], "u2": [2.0, 2.0, 2.0], "u3": [0.0, 1.0, 0.0]})

        with pytest.raises(PersistenceError):
            store.save(bigger)

        assert store.path.read_bytes() == before
        assert len(store.load()) == 2
        assert sorted(p.name for p in store.directory.iterdir()) == ["index.json"]

    def test_clear(self, tmp_path, index):
        store = IndexStore(tmp_path)
        store.save(index)

        assert store.clear()
        assert not store.exists()
        assert not store.clear()


class TestDocument:
    """Tests for the JSON document format."""

    def test_document_fields(self, index):
        data = index_to_dict(index)

        assert data["format_version"] == "1.0"
        assert data["provider_name"] == "fake:bow"
        assert data["dimension"] == 3
        entry = data["entries"][0]
        assert set(entry) == {
            "id", "file_path", "symbol_name", "start_line", "end_line", "language",
            "loc", "complexity", "parameter_count", "kind", "vector",
        }

    def test_missing_field(self, index):
        data = index_to_dict(index)
        del data["entries"][0]["symbol_name"]
        with pytest.raises(IndexFormatError):
            index_from_dict(data)

    def test_wrong_vector_length(self, index):
        data = index_to_dict(index)
        data["entries"][0]["vector"] = [1.0]
        with pytest.raises(IndexFormatError):
            index_from_dict(data)

    def test_infinite_dimension(self, index):
        data = json.loads(json.dumps(index_to_dict(index)))
        data["dimension"] = json.loads("1e400")
        with pytest.raises(IndexFormatError):
            index_from_dict(data)

    def test_invalid_utf8(self, tmp_path):
        store = IndexStore(tmp_path)
        store.ensure_directory()
        store.path.write_bytes(b'{"format_version": "1.0", "provider_name": "\xff\xfe"}')

        with pytest.raises(IndexFormatError):
            read_index(store.path)
        assert store.load() is None

    def test_not_json(self, tmp_path):
        path = tmp_path / "index.json"
        path.write_text("nope")
        with pytest.raises(IndexFormatError):
            read_index(path)
