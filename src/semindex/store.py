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
Index persistence.

The index is a single JSON document in .semindex/index.json. Writes go
to a temp file in the same directory which is then renamed over the old
document, so a crash mid-write leaves the previous index intact.

Documents with another major format version, or that fail to parse, are
treated as "no index" by the store.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import IndexFormatError, PersistenceError
from .models import FORMAT_VERSION, CodeUnit, EmbeddingVector, Index, IndexEntry


logger = logging.getLogger(__name__)

INDEX_DIR = ".semindex"
INDEX_FILE = "index.json"


class IndexStore:
    """Reads and writes the index for one project."""

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root)
        self.directory = self.project_root / INDEX_DIR
        self.path = self.directory / INDEX_FILE

    def ensure_directory(self) -> None:
        """Create .semindex/ if needed."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"cannot create index directory {self.directory}: {e}") from e

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[Index]:
        """
        Load the index from disk.

        Returns None if no index exists or it is unusable.
        """
        if not self.exists():
            return None

        try:
            return read_index(self.path)
        except IndexFormatError as e:
            logger.warning("Ignoring index at %s: %s", self.path, e)
            return None

    def save(self, index: Index) -> None:
        """Atomically replace the on-disk index."""
        self.ensure_directory()
        write_index(index, self.path)

    def clear(self) -> bool:
        """Delete the index file. Returns True if it existed."""
        if self.exists():
            self.path.unlink()
            return True
        return False


def index_to_dict(index: Index) -> Dict[str, Any]:
    """Convert to the serializable document."""
    return {
        "format_version": index.format_version,
        "provider_name": index.provider_name,
        "dimension": index.dimension,
        "complete": index.complete,
        "entries": [entry_to_dict(entry) for entry in index.entries],
    }


def entry_to_dict(entry: IndexEntry) -> Dict[str, Any]:
    unit = entry.unit
    return {
        "id": unit.id,
        "file_path": unit.file_path,
        "symbol_name": unit.symbol_name,
        "start_line": unit.start_line,
        "end_line": unit.end_line,
        "language": unit.language,
        "loc": unit.loc,
        "complexity": unit.cyclomatic_complexity,
        "parameter_count": unit.parameter_count,
        "kind": unit.kind,
        "vector": [float(x) for x in entry.vector.values],
    }


def index_from_dict(data: Dict[str, Any]) -> Index:
    """
    Rebuild an Index from a document.

    Raises:
        IndexFormatError: On version mismatch or malformed content
    """
    if not isinstance(data, dict):
        raise IndexFormatError("index document is not an object")

    version = str(data.get("format_version", ""))
    if _major(version) != _major(FORMAT_VERSION):
        raise IndexFormatError(
            f"format version {version or '?'} is not compatible with {FORMAT_VERSION}"
        )

    try:
        provider_name = data["provider_name"]
        dimension = int(data["dimension"])
        index = Index(
            provider_name=provider_name,
            dimension=dimension,
            complete=bool(data.get("complete", True)),
            format_version=version,
        )

        for item in data["entries"]:
            unit = CodeUnit(
                id=item["id"],
                file_path=item["file_path"],
                symbol_name=item["symbol_name"],
                start_line=int(item["start_line"]),
                end_line=int(item["end_line"]),
                language=item["language"],
                loc=int(item["loc"]),
                cyclomatic_complexity=int(item["complexity"]),
                parameter_count=int(item.get("parameter_count", 0)),
                kind=item.get("kind", "function"),
            )
            vector = EmbeddingVector(
                unit_id=unit.id,
                provider_name=provider_name,
                dimension=dimension,
                values=item["vector"],
            )
            index.add(IndexEntry(unit=unit, vector=vector))
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise IndexFormatError(f"malformed index document: {e}") from e

    return index


def read_index(path: Path) -> Index:
    """Load and validate an index document."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (ValueError, RecursionError) as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        raise IndexFormatError(f"corrupt index document: {e}") from e
    except OSError as e:
        raise IndexFormatError(f"unreadable index document: {e}") from e

    return index_from_dict(data)


def write_index(index: Index, path: Path) -> None:
    """
    Save the index atomically.

    Writes to a temp file then renames for crash safety.
    """
    path = Path(path)
    data = index_to_dict(index)
    temp_name = None

    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            temp_name = f.name
            json.dump(data, f, separators=(",", ":"))
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_name, path)
    except OSError as e:
        if temp_name is not None:
            try:
                os.unlink(temp_name)
            except FileNotFoundError:
                pass
        raise PersistenceError(f"failed to write index {path}: {e}") from e

    logger.debug("Wrote %d entries to %s", len(index), path)


def _major(version: str) -> str:
    return version.split(".", 1)[0]
