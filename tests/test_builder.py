"""
Tests for IndexBuilder: full builds, incremental updates, failures.
"""

import pytest

from semindex.builder import BuildState, CancelToken, IndexBuilder
from semindex.errors import PersistenceError
from semindex.providers import HybridProvider
from semindex.scanner import scan_repository
from semindex.store import IndexStore, entry_to_dict

from conftest import FakeProvider, python_function, write_files


def ten_functions(failing=()):
    """Ten one-function files; names in failing get an unembeddable body."""
    files = {}
    for i in range(10):
        name = f"func_{i}"
        body = "return 'FAIL_ME'" if name in failing else f"return x + {i}"
        files[f"mod_{i}.py"] = python_function(name, body)
    return files


def entries_by_file(index):
    return {
        path: [entry_to_dict(e) for e in index.entries_for_files([path])]
        for path in index.files()
    }


class CancellingProvider(FakeProvider):
    """Cancels the build token after a number of calls."""

    def __init__(self, token, after, **kwargs):
        super().__init__(**kwargs)
        self.token = token
        self.after = after

    def generate_embedding(self, text):
        vector = super().generate_embedding(text)
        if self.calls >= self.after:
            self.token.cancel()
        return vector


class TestFullBuild:
    """Tests for IndexBuilder.build."""

    def test_build_persists_index(self, repo, fake_provider):
        builder = IndexBuilder(fake_provider)
        report = builder.build(repo, scan_repository(repo))

        assert report.state is BuildState.PERSISTED
        assert report.ok
        assert report.units_total == 3
        assert report.units_embedded == 3
        assert report.provider_name == "fake:bow"

        index = IndexStore(repo).load()
        assert index.complete
        assert [e.unit.symbol_name for e in index] == ["alpha", "beta", "gamma"]
        assert all(e.vector.unit_id == e.unit.id for e in index)

    def test_partial_failure(self, tmp_path):
        """Two of ten units failing leaves an eight-entry index."""
        pytest.importorskip("tree_sitter_python")
        write_files(tmp_path, ten_functions(failing={"func_3", "func_7"}))
        provider = FakeProvider(fail_on={"FAIL_ME"})

        report = IndexBuilder(provider).build(tmp_path, scan_repository(tmp_path))

        assert report.state is BuildState.PERSISTED_PARTIAL
        assert report.ok
        assert len(report.embedding_errors) == 2
        assert report.units_embedded == 8
        assert report.units_omitted == 2
        failed_ids = {e.unit_id for e in report.embedding_errors}
        assert len(failed_ids) == 2

        index = IndexStore(tmp_path).load()
        assert len(index) == 8
        assert not index.complete
        assert not failed_ids & {e.unit.id for e in index}

    def test_extraction_error_recorded(self, repo, fake_provider):
        write_files(repo, {"broken.py": "def broken(:\n"})

        report = IndexBuilder(fake_provider).build(repo, scan_repository(repo))

        assert report.state is BuildState.PERSISTED_PARTIAL
        assert [e.file_path for e in report.extraction_errors] == ["broken.py"]
        assert len(IndexStore(repo).load()) == 3

    def test_provider_unavailable_fails_without_writing(self, repo, fake_provider):
        IndexBuilder(fake_provider).build(repo, scan_repository(repo))
        store = IndexStore(repo)
        before = store.path.read_bytes()

        report = IndexBuilder(FakeProvider(unavailable=True)).build(repo, scan_repository(repo))

        assert report.state is BuildState.FAILED
        assert not report.ok
        assert report.provider_unavailable == 3
        assert store.path.read_bytes() == before

    def test_write_failure_is_failed_state(self, repo, fake_provider, monkeypatch):
        def failing_write(index, path):
            raise PersistenceError("disk full")

        monkeypatch.setattr("semindex.store.write_index", failing_write)
        report = IndexBuilder(fake_provider).build(repo, scan_repository(repo))

        assert report.state is BuildState.FAILED
        assert "disk full" in report.fatal_error
        assert not IndexStore(repo).exists()

    def test_empty_repository(self, tmp_path, fake_provider):
        report = IndexBuilder(fake_provider).build(tmp_path, [])

        assert report.state is BuildState.PERSISTED
        assert len(IndexStore(tmp_path).load()) == 0

    def test_invalid_worker_count(self, fake_provider):
        with pytest.raises(ValueError):
            IndexBuilder(fake_provider, max_workers=0)

    def test_summary(self, repo, fake_provider):
        report = IndexBuilder(fake_provider).build(repo, scan_repository(repo))
        summary = report.summary()
        assert "persisted" in summary
        assert "3 embedded" in summary


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancelled_before_start(self, repo, fake_provider):
        token = CancelToken()
        token.cancel()

        report = IndexBuilder(fake_provider).build(repo, scan_repository(repo), cancel=token)

        assert fake_provider.calls == 0
        assert report.units_cancelled == 3
        assert report.state is BuildState.PERSISTED_PARTIAL
        assert not IndexStore(repo).load().complete

    def test_stops_issuing_calls(self, tmp_path):
        pytest.importorskip("tree_sitter_python")
        write_files(tmp_path, ten_functions())
        token = CancelToken()
        provider = CancellingProvider(token, after=3)

        report = IndexBuilder(provider, max_workers=1).build(
            tmp_path, scan_repository(tmp_path), cancel=token
        )

        assert provider.calls == 3
        assert report.units_embedded == 3
        assert report.units_cancelled == 7
        index = IndexStore(tmp_path).load()
        assert len(index) == 3
        assert not index.complete

    def test_deadline(self):
        token = CancelToken(timeout=0)
        assert token.cancelled

    def test_no_deadline(self):
        token = CancelToken()
        assert not token.cancelled
        token.cancel()
        assert token.cancelled


class TestIncrementalUpdate:
    """Tests for IndexBuilder.update."""

    def test_unchanged_files_carried_over(self, repo, fake_provider):
        builder = IndexBuilder(fake_provider)
        builder.build(repo, scan_repository(repo))
        store = IndexStore(repo)
        baseline = store.load()
        before = entries_by_file(baseline)

        write_files(repo, {"b.py": python_function("beta", "return x * 100")})
        calls_before = fake_provider.calls
        report = builder.update(repo, baseline, scan_repository(repo), {"b.py"})

        assert report.incremental
        assert report.units_carried_over == 2
        assert report.units_embedded == 1
        assert fake_provider.calls - calls_before == 1

        after = entries_by_file(store.load())
        assert after["a.py"] == before["a.py"]
        assert after["c.py"] == before["c.py"]
        assert after["b.py"] != before["b.py"]

    def test_deleted_file_loses_entries(self, repo, fake_provider):
        builder = IndexBuilder(fake_provider)
        builder.build(repo, scan_repository(repo))
        baseline = IndexStore(repo).load()

        (repo / "c.py").unlink()
        report = builder.update(repo, baseline, scan_repository(repo), {"c.py"})

        assert report.ok
        assert IndexStore(repo).load().files() == ["a.py", "b.py"]

    def test_new_file_added(self, repo, fake_provider):
        builder = IndexBuilder(fake_provider)
        builder.build(repo, scan_repository(repo))
        baseline = IndexStore(repo).load()

        write_files(repo, {"d.py": python_function("delta")})
        builder.update(repo, baseline, scan_repository(repo), {"./d.py"})

        assert IndexStore(repo).load().files() == ["a.py", "b.py", "c.py", "d.py"]

    def test_no_baseline_is_full_build(self, repo, fake_provider):
        report = IndexBuilder(fake_provider).update(repo, None, scan_repository(repo), {"a.py"})

        assert not report.incremental
        assert report.units_embedded == 3

    def test_provider_change_forces_full_build(self, repo, fake_provider):
        IndexBuilder(fake_provider).build(repo, scan_repository(repo))
        baseline = IndexStore(repo).load()

        other = FakeProvider(name="other:model", dimension=32)
        report = IndexBuilder(other).update(repo, baseline, scan_repository(repo), {"a.py"})

        assert not report.incremental
        assert report.full_rebuild_reason
        index = IndexStore(repo).load()
        assert index.provider_name == "other:model"
        assert len(index) == 3


class TestEmbeddingSpaces:
    """A persisted index only ever holds one embedding space."""

    def test_failover_mid_build_recomputes_old_vectors(self, tmp_path):
        pytest.importorskip("tree_sitter_python")
        write_files(tmp_path, {
            f"m{i}.py": python_function(f"f{i}", f"return {i}") for i in range(5)
        })
        local = FakeProvider(name="ollama:test", dimension=8, fail_after=2)
        remote = FakeProvider(name="openai:test", dimension=16)
        hybrid = HybridProvider(local, remote)

        report = IndexBuilder(hybrid, max_workers=1).build(tmp_path, scan_repository(tmp_path))

        assert report.state is BuildState.PERSISTED
        assert report.provider_name == "openai:test"
        assert local.calls == 3
        # Three after failover plus two recomputed
        assert remote.calls == 5

        index = IndexStore(tmp_path).load()
        assert index.provider_name == "openai:test"
        assert index.dimension == 16
        assert len(index) == 5
        assert {e.vector.provider_name for e in index} == {"openai:test"}

    def test_failover_during_update_restarts_full_build(self, repo):
        local = FakeProvider(name="ollama:test", dimension=8)
        IndexBuilder(local).build(repo, scan_repository(repo))
        baseline = IndexStore(repo).load()

        dying_local = FakeProvider(name="ollama:test", dimension=8, unavailable=True)
        remote = FakeProvider(name="openai:test", dimension=16)
        hybrid = HybridProvider(dying_local, remote)

        write_files(repo, {"b.py": python_function("beta", "return 0")})
        report = IndexBuilder(hybrid).update(repo, baseline, scan_repository(repo), {"b.py"})

        assert not report.incremental
        assert report.full_rebuild_reason
        index = IndexStore(repo).load()
        assert index.provider_name == "openai:test"
        assert len(index) == 3
