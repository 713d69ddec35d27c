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
Data models for semindex.
"""

from dataclasses import dataclass, field, replace
from typing import Iterator, List, Optional

import numpy as np

from .errors import EmbeddingSpaceError


FORMAT_VERSION = "1.0"


@dataclass(frozen=True)
class SourceFile:
    """A file handed to the extractor by the repository scanner."""

    path: str        # POSIX path relative to the repository root
    language: str    # Language tag, e.g. "python"


@dataclass(frozen=True)
class FileMetrics:
    """Line counts for a whole file."""

    lines_of_code: int = 0
    lines_of_comments: int = 0
    blank_lines: int = 0

    @property
    def total_lines(self) -> int:
        return self.lines_of_code + self.lines_of_comments + self.blank_lines


@dataclass(frozen=True)
class CodeUnit:
    """One function or method extracted from a source file."""

    id: str                      # Hash of (file_path, symbol_name, start_line)
    file_path: str               # POSIX path relative to repository root
    symbol_name: str             # "func" or "Owner.method"
    start_line: int              # 1-indexed
    end_line: int                # Inclusive
    language: str
    loc: int
    cyclomatic_complexity: int = 1
    parameter_count: int = 0
    kind: str = "function"       # "function", "method" or "file"
    content: str = field(default="", repr=False, compare=False)

    @property
    def location(self) -> str:
        """Human-readable location string."""
        return f"{self.file_path}:{self.start_line}-{self.end_line}"

    @property
    def short_name(self) -> str:
        """Symbol name without its owner prefix."""
        return self.symbol_name.rsplit(".", 1)[-1].rsplit("::", 1)[-1]


@dataclass(frozen=True)
class EmbeddingVector:
    """A vector produced by one embedding provider for one unit."""

    unit_id: str
    provider_name: str
    dimension: int
    values: np.ndarray = field(compare=False, repr=False)

    def __post_init__(self):
        values = np.asarray(self.values, dtype=np.float32)
        if values.ndim != 1 or values.shape[0] != self.dimension:
            raise EmbeddingSpaceError(
                f"vector of length {values.size} does not match "
                f"declared dimension {self.dimension}"
            )
        object.__setattr__(self, "values", values)

    def for_unit(self, unit_id: str) -> "EmbeddingVector":
        """Bind this vector to a unit id."""
        return replace(self, unit_id=unit_id)

    def same_space(self, provider_name: str, dimension: int) -> bool:
        return self.provider_name == provider_name and self.dimension == dimension


@dataclass(frozen=True)
class IndexEntry:
    """A code unit paired with its embedding."""

    unit: CodeUnit
    vector: EmbeddingVector

    @property
    def unit_id(self) -> str:
        return self.unit.id


@dataclass
class Index:
    """
    Collection of embedded code units from a single embedding space.

    Every entry shares the index's provider_name and dimension.
    """

    provider_name: str
    dimension: int
    entries: List[IndexEntry] = field(default_factory=list)
    complete: bool = True
    format_version: str = FORMAT_VERSION

    def __post_init__(self):
        entries, self.entries = self.entries, []
        for entry in entries:
            self.add(entry)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[IndexEntry]:
        return iter(self.entries)

    def add(self, entry: IndexEntry) -> None:
        """Append an entry, refusing vectors from another embedding space."""
        if not entry.vector.same_space(self.provider_name, self.dimension):
            raise EmbeddingSpaceError(
                f"cannot add {entry.vector.provider_name}/{entry.vector.dimension} "
                f"vector to {self.provider_name}/{self.dimension} index"
            )
        if entry.vector.unit_id != entry.unit.id:
            raise ValueError(
                f"vector {entry.vector.unit_id!r} does not belong to unit {entry.unit.id!r}"
            )
        self.entries.append(entry)

    def get(self, unit_id: str) -> Optional[IndexEntry]:
        for entry in self.entries:
            if entry.unit.id == unit_id:
                return entry
        return None

    def files(self) -> List[str]:
        """Unique file paths in this index, sorted."""
        return sorted({entry.unit.file_path for entry in self.entries})

    def entries_for_files(self, paths) -> List[IndexEntry]:
        wanted = set(paths)
        return [e for e in self.entries if e.unit.file_path in wanted]

    def entries_excluding_files(self, paths) -> List[IndexEntry]:
        unwanted = set(paths)
        return [e for e in self.entries if e.unit.file_path not in unwanted]

    def matrix(self) -> np.ndarray:
        """Stack entry vectors into an (n_entries, dimension) array."""
        if not self.entries:
            return np.zeros((0, self.dimension), dtype=np.float32)
        return np.vstack([e.vector.values for e in self.entries])


@dataclass(frozen=True)
class SimilarityResult:
    """One ranked hit from a similarity search."""

    unit_id: str
    score: float


def sort_entries(entries: List[IndexEntry]) -> List[IndexEntry]:
    """Canonical entry order: file path, start line, then id."""
    return sorted(
        entries,
        key=lambda e: (e.unit.file_path, e.unit.start_line, e.unit.id),
    )
