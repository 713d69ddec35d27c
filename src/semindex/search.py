# semindex - Semantic function index and duplicate detection
# Copyright (C) 2025  Jonathan Louis
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Similarity search over an index.

search(vector, k) is the only contract callers rely on. LinearScanSearch
scores every entry; a nearest-neighbour structure can replace it without
changing callers.
"""

import heapq
from typing import List, Union

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine

from .errors import EmbeddingSpaceError
from .models import EmbeddingVector, Index, SimilarityResult


QueryVector = Union[EmbeddingVector, np.ndarray, List[float]]


def cosine_similarity(a, b) -> float:
    """
    Cosine similarity of two vectors.

    0.0 when either norm is zero or the lengths differ.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


class LinearScanSearch:
    """Reference search: score everything, keep the top k."""

    def __init__(self, index: Index):
        self.index = index
        self._ids = [entry.unit.id for entry in index.entries]
        self._matrix = index.matrix()

    def __len__(self) -> int:
        return len(self._ids)

    def scores(self, query: QueryVector) -> np.ndarray:
        """Cosine score of the query against every entry, in entry order."""
        values = self._check_query(query)
        if not self._ids:
            return np.zeros(0, dtype=np.float64)

        # Zero vectors normalize to zero, so their score is 0
        scores = pairwise_cosine(values.reshape(1, -1), self._matrix)[0]
        return np.clip(scores.astype(np.float64), -1.0, 1.0)

    def search(self, query: QueryVector, k: int) -> List[SimilarityResult]:
        """
        Top-k entries by cosine similarity.

        Ordered by descending score, ties broken by unit id. k is clamped
        to the number of entries.
        """
        k = max(0, min(int(k), len(self._ids)))
        if k == 0:
            self._check_query(query)
            return []

        scores = self.scores(query)
        top = heapq.nsmallest(
            k,
            zip(self._ids, scores.tolist()),
            key=lambda item: (-item[1], item[0]),
        )
        return [SimilarityResult(unit_id=unit_id, score=score) for unit_id, score in top]

    def _check_query(self, query: QueryVector) -> np.ndarray:
        if isinstance(query, EmbeddingVector):
            if not query.same_space(self.index.provider_name, self.index.dimension):
                raise EmbeddingSpaceError(
                    f"query from {query.provider_name}/{query.dimension} cannot be "
                    f"compared with {self.index.provider_name}/{self.index.dimension} index"
                )
            return query.values

        values = np.asarray(query, dtype=np.float32)
        if values.ndim != 1 or values.shape[0] != self.index.dimension:
            raise EmbeddingSpaceError(
                f"query of length {values.size} does not match index dimension "
                f"{self.index.dimension}"
            )
        return values


def search_by_text(search: LinearScanSearch, provider, text: str, k: int) -> List[SimilarityResult]:
    """Embed text with provider, then search."""
    return search.search(provider.generate_embedding(text), k)
