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
Duplicate classification.

Turns similarity scores into advisory signals. Nothing here blocks or
rewrites code; callers decide what to show.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine

from .models import CodeUnit, EmbeddingVector, Index
from .providers import prepare_unit_text
from .search import LinearScanSearch


DEFAULT_THRESHOLD = 0.85


class SimilarityLevel(str, Enum):
    """Presentation band for a similarity score."""

    NEAR_IDENTICAL = "Nearly Identical"
    VERY_SIMILAR = "Very Similar"
    SIMILAR = "Similar"
    SOMEWHAT_SIMILAR = "Somewhat Similar"
    DIFFERENT = "Different"


# Lower bound of each band, highest first
SIMILARITY_BANDS = (
    (0.95, SimilarityLevel.NEAR_IDENTICAL),
    (0.85, SimilarityLevel.VERY_SIMILAR),
    (0.75, SimilarityLevel.SIMILAR),
    (0.60, SimilarityLevel.SOMEWHAT_SIMILAR),
)


def classify_similarity(score: float) -> SimilarityLevel:
    """Map a cosine score to its band."""
    for lower_bound, level in SIMILARITY_BANDS:
        if score >= lower_bound:
            return level
    return SimilarityLevel.DIFFERENT


@dataclass(frozen=True)
class DuplicateMatch:
    """An index entry that looks like a duplicate of the query unit."""

    unit: CodeUnit
    score: float
    level: SimilarityLevel

    @property
    def unit_id(self) -> str:
        return self.unit.id


@dataclass(frozen=True)
class DuplicatePair:
    """Two indexed units above the threshold."""

    first: CodeUnit
    second: CodeUnit
    score: float
    level: SimilarityLevel


def _check_threshold(threshold: float) -> float:
    threshold = float(threshold)
    if not -1.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be between -1 and 1, got {threshold}")
    return threshold


class DuplicateDetector:
    """Finds indexed units similar to a given unit."""

    def __init__(
        self,
        index: Index,
        threshold: float = DEFAULT_THRESHOLD,
        provider=None,
    ):
        """
        Args:
            index: Index to search
            threshold: Minimum score reported as a duplicate
            provider: Used to embed units that are not in the index
        """
        self.index = index
        self.threshold = _check_threshold(threshold)
        self.provider = provider
        self.search = LinearScanSearch(index)
        self._entries = {entry.unit.id: entry for entry in index.entries}

    def vector_for(self, unit: CodeUnit) -> EmbeddingVector:
        """
        Vector for unit: from the index, else embedded on the fly.

        Raises:
            LookupError: If the unit is not indexed and cannot be embedded
        """
        entry = self._entries.get(unit.id)
        if entry is not None:
            return entry.vector

        if self.provider is None or not unit.content:
            raise LookupError(f"unit {unit.symbol_name} ({unit.id}) is not in the index")

        return self.provider.generate_embedding(prepare_unit_text(unit)).for_unit(unit.id)

    def detect_duplicates(
        self,
        unit: CodeUnit,
        vector: Optional[EmbeddingVector] = None,
    ) -> List[DuplicateMatch]:
        """
        Units scoring at least the threshold against unit, excluding itself.

        Self-exclusion is by id only.
        """
        query = vector if vector is not None else self.vector_for(unit)
        results = self.search.search(query, len(self.search))

        matches = []
        for result in results:
            if result.unit_id == unit.id:
                continue
            if result.score < self.threshold:
                break  # Results are sorted
            matches.append(DuplicateMatch(
                unit=self._entries[result.unit_id].unit,
                score=result.score,
                level=classify_similarity(result.score),
            ))

        return matches


def find_duplicate_pairs(index: Index, threshold: float = DEFAULT_THRESHOLD) -> List[DuplicatePair]:
    """
    Every pair of indexed units at or above threshold.

    Ordered by descending score, then by the pair's ids.
    """
    threshold = _check_threshold(threshold)
    if len(index) < 2:
        return []

    sim_matrix = np.clip(pairwise_cosine(index.matrix()), -1.0, 1.0)
    # Upper triangle, excluding diagonal
    rows, cols = np.triu_indices(len(index), k=1)
    scores = sim_matrix[rows, cols]
    keep = scores >= threshold

    pairs = []
    for i, j, score in zip(rows[keep], cols[keep], scores[keep]):
        first, second = index.entries[i].unit, index.entries[j].unit
        if second.id < first.id:
            first, second = second, first
        pairs.append(DuplicatePair(
            first=first,
            second=second,
            score=float(score),
            level=classify_similarity(float(score)),
        ))

    pairs.sort(key=lambda p: (-p.score, p.first.id, p.second.id))
    return pairs
