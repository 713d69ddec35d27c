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
Code extractor - turns source files into code units.

Files are independent, so a repository is extracted in a thread pool and
the per-file results are concatenated. A file that fails to read or
parse is recorded and skipped; the rest of the repository continues.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .errors import ExtractionError
from .languages import get_extractor
from .metrics import calculate_line_metrics, normalize_path
from .models import CodeUnit, FileMetrics, SourceFile


logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    """Units and line metrics for one file."""

    file_path: str
    units: List[CodeUnit]
    metrics: FileMetrics
    heuristic: bool = False   # True when the whole-file fallback was used


@dataclass
class RepositoryExtraction:
    """Merged extraction output for many files."""

    units: List[CodeUnit] = field(default_factory=list)
    errors: List[ExtractionError] = field(default_factory=list)
    results: List[ExtractionResult] = field(default_factory=list)

    @property
    def files_processed(self) -> int:
        return len(self.results)


def extract_source(content: str, file_path: str, language: str) -> ExtractionResult:
    """
    Extract code units from source text.

    Args:
        content: Full file content
        file_path: Path relative to the repository root
        language: Language tag from the scanner

    Returns:
        ExtractionResult with units in source order

    Raises:
        ExtractionError: If the file does not parse
    """
    file_path = normalize_path(file_path)
    extractor = get_extractor(language)

    units = extractor.extract(content=content, file_path=file_path, language=language)

    return ExtractionResult(
        file_path=file_path,
        units=units,
        metrics=calculate_line_metrics(content),
        heuristic=not extractor.structural,
    )


def extract_file(root_path: Path, source_file: SourceFile) -> ExtractionResult:
    """
    Read one file below root_path and extract it.

    Any failure is reported as an ExtractionError for this file only.
    """
    full_path = Path(root_path) / source_file.path

    try:
        content = full_path.read_bytes().decode("utf-8")
    except OSError as e:
        raise ExtractionError(source_file.path, f"unreadable: {e}") from e
    except UnicodeDecodeError as e:
        raise ExtractionError(source_file.path, "not valid UTF-8") from e

    if "\x00" in content:
        raise ExtractionError(source_file.path, "binary content")

    try:
        return extract_source(content, source_file.path, source_file.language)
    except ExtractionError:
        raise
    except Exception as e:
        raise ExtractionError(source_file.path, f"extraction failed: {e!r}") from e


def extract_repository(
    root_path: Path,
    files: Sequence[SourceFile],
    max_workers: Optional[int] = None,
    on_progress: Optional[Callable[[int, int, str], None]] = None,
) -> RepositoryExtraction:
    """
    Extract every file in parallel.

    Args:
        root_path: Repository root
        files: File listing with language tags
        max_workers: Thread count (defaults to CPU count)
        on_progress: Called as (done, total, message)

    Returns:
        RepositoryExtraction with units ordered by file then line
    """
    extraction = RepositoryExtraction()
    if not files:
        return extraction

    processed = 0
    with ThreadPoolExecutor(max_workers=max_workers or os.cpu_count()) as executor:
        futures = {
            executor.submit(extract_file, root_path, source_file): source_file
            for source_file in files
        }

        for future in as_completed(futures):
            source_file = futures[future]
            processed += 1
            try:
                result = future.result()
            except ExtractionError as e:
                logger.warning("Skipping %s: %s", e.file_path, e.reason)
                extraction.errors.append(e)
            else:
                extraction.results.append(result)

            if on_progress:
                on_progress(processed, len(files), source_file.path)

    extraction.results.sort(key=lambda r: r.file_path)
    extraction.errors.sort(key=lambda e: e.file_path)
    for result in extraction.results:
        extraction.units.extend(result.units)

    return extraction
