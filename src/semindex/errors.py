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
Exceptions raised by semindex.

Per-file and per-unit errors are recoverable and end up in the build
report; only persistence and configuration errors stop a build.
"""

from typing import Optional


class SemindexError(Exception):
    """Base exception for all semindex errors."""
    pass


class ExtractionError(SemindexError):
    """A single file could not be read or parsed."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"Failed to extract {file_path}: {reason}")


class ProviderUnavailable(SemindexError):
    """No embedding backend is reachable or configured."""
    pass


class EmbeddingCallError(SemindexError):
    """A single embedding call failed (network, timeout, bad response)."""

    def __init__(self, reason: str, unit_id: Optional[str] = None):
        self.reason = reason
        self.unit_id = unit_id
        message = reason if unit_id is None else f"{unit_id}: {reason}"
        super().__init__(message)

    def for_unit(self, unit_id: str) -> "EmbeddingCallError":
        """Copy of this error attributed to a unit."""
        return EmbeddingCallError(self.reason, unit_id=unit_id)


class EmbeddingSpaceError(SemindexError, ValueError):
    """
    Vectors from different embedding spaces were about to be mixed.

    Raised for dimension mismatches too.
    """
    pass


class PersistenceError(SemindexError):
    """Writing the index to disk failed."""
    pass


class IndexFormatError(SemindexError):
    """A persisted index has the wrong version or is corrupt."""
    pass


class ConfigError(SemindexError, ValueError):
    """Invalid configuration value."""
    pass
