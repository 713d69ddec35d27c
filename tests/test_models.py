"""
Tests for data models.
"""

import numpy as np
import pytest

from semindex.errors import EmbeddingSpaceError
from semindex.models import EmbeddingVector, Index, IndexEntry, sort_entries

from conftest import make_index, make_unit


class TestEmbeddingVector:
    def test_values_are_float32(self):
        vector = EmbeddingVector("u", "fake:bow", 3, [1, 2, 3])
        assert vector.values.dtype == np.float32

    def test_length_must_match_dimension(self):
        with pytest.raises(EmbeddingSpaceError):
            EmbeddingVector("u", "fake:bow", 4, [1.0, 2.0])

    def test_for_unit(self):
        vector = EmbeddingVector("", "fake:bow", 2, [1.0, 0.0])
        bound = vector.for_unit("abc")
        assert bound.unit_id == "abc"
        assert vector.unit_id == ""


class TestIndex:
    """An index holds vectors from a single embedding space."""

    def test_rejects_other_provider(self):
        index = Index(provider_name="fake:bow", dimension=2)
        unit = make_unit("u")
        with pytest.raises(EmbeddingSpaceError):
            index.add(IndexEntry(unit, EmbeddingVector("u", "other:model", 2, [1.0, 0.0])))

    def test_rejects_other_dimension(self):
        index = Index(provider_name="fake:bow", dimension=2)
        unit = make_unit("u")
        with pytest.raises(EmbeddingSpaceError):
            index.add(IndexEntry(unit, EmbeddingVector("u", "fake:bow", 3, [1.0, 0.0, 0.0])))

    def test_rejects_unbound_vector(self):
        index = Index(provider_name="fake:bow", dimension=2)
        with pytest.raises(ValueError):
            index.add(IndexEntry(make_unit("u"), EmbeddingVector("", "fake:bow", 2, [1.0, 0.0])))

    def test_constructor_validates_entries(self):
        entry = IndexEntry(make_unit("u"), EmbeddingVector("u", "other:model", 2, [1.0, 0.0]))
        with pytest.raises(EmbeddingSpaceError):
            Index(provider_name="fake:bow", dimension=2, entries=[entry])

    def test_matrix(self):
        index = make_index({"a": [1.0, 0.0], "b": [0.0, 1.0]})
        assert index.matrix().shape == (2, 2)
        assert Index("fake:bow", 5).matrix().shape == (0, 5)

    def test_lookup(self):
        index = make_index({"a": [1.0, 0.0]})
        assert index.get("a").unit.id == "a"
        assert index.get("missing") is None


def test_sort_entries():
    index = Index(provider_name="fake:bow", dimension=1)
    for unit_id, path, line in [("x", "b.py", 1), ("y", "a.py", 9), ("z", "a.py", 2)]:
        unit = make_unit(unit_id, file_path=path, start_line=line)
        index.add(IndexEntry(unit, EmbeddingVector(unit_id, "fake:bow", 1, [1.0])))

    assert [e.unit.id for e in sort_entries(index.entries)] == ["z", "y", "x"]
