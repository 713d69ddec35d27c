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
Index builder - extraction, embedding and persistence in one pass.

A build moves through IDLE -> SCANNING -> EXTRACTING -> EMBEDDING ->
ASSEMBLING and ends PERSISTED, PERSISTED_PARTIAL or FAILED. Per-file and
per-unit failures are collected in the BuildReport; the build only fails
when nothing could be embedded because no provider was available, or
when the index cannot be written. A failed build never touches the
index already on disk.

Every vector is tagged with the backend that produced it. An index is
only ever assembled from one embedding space:

- If a hybrid provider fails over during the pass, vectors from the old
  backend are recomputed once on the active backend.
- If an incremental update produces vectors in a different space from
  the baseline, the update restarts as a full build.
"""

import logging
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import EmbeddingCallError, ExtractionError, PersistenceError, ProviderUnavailable
from .extractor import extract_repository
from .metrics import normalize_path
from .models import CodeUnit, EmbeddingVector, Index, IndexEntry, SourceFile, sort_entries
from .providers import prepare_unit_text
from .store import IndexStore


logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4

Space = Tuple[str, int]


class BuildState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    EXTRACTING = "extracting"
    EMBEDDING = "embedding"
    ASSEMBLING = "assembling"
    PERSISTED = "persisted"
    PERSISTED_PARTIAL = "persisted (partial)"
    FAILED = "failed"


class CancelToken:
    """
    Cooperative cancellation for a build.

    Cancelled explicitly, by KeyboardInterrupt during embedding, or once
    the optional timeout elapses.
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self.deadline = None if timeout is None else time.monotonic() + timeout

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if not self._event.is_set() and self.deadline is not None:
            if time.monotonic() >= self.deadline:
                self._event.set()
        return self._event.is_set()


@dataclass
class BuildReport:
    """Outcome of one build or update."""

    state: BuildState = BuildState.IDLE
    provider_name: str = ""
    incremental: bool = False
    full_rebuild_reason: Optional[str] = None
    files_total: int = 0
    units_total: int = 0
    units_embedded: int = 0
    units_carried_over: int = 0
    units_cancelled: int = 0
    extraction_errors: List[ExtractionError] = field(default_factory=list)
    embedding_errors: List[EmbeddingCallError] = field(default_factory=list)
    provider_unavailable: int = 0
    fatal_error: Optional[str] = None
    index_path: Optional[Path] = None
    index: Optional[Index] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.state in (BuildState.PERSISTED, BuildState.PERSISTED_PARTIAL)

    @property
    def units_omitted(self) -> int:
        return self.units_total - self.units_embedded - self.units_carried_over

    def summary(self) -> str:
        """Multi-line human-readable summary."""
        mode = "incremental update" if self.incremental else "full build"
        lines = [
            f"State:     {self.state.value} ({mode})",
            f"Provider:  {self.provider_name or '-'}",
            f"Files:     {self.files_total}",
            f"Units:     {self.units_total} "
            f"({self.units_embedded} embedded, {self.units_carried_over} carried over, "
            f"{self.units_omitted} omitted)",
        ]
        if self.full_rebuild_reason:
            lines.append(f"Rebuilt:   {self.full_rebuild_reason}")
        if self.extraction_errors:
            lines.append(f"Extraction errors: {len(self.extraction_errors)}")
        if self.embedding_errors:
            lines.append(f"Embedding errors:  {len(self.embedding_errors)}")
        if self.provider_unavailable:
            lines.append(f"Provider unavailable: {self.provider_unavailable} units")
        if self.units_cancelled:
            lines.append(f"Cancelled: {self.units_cancelled} units")
        if self.fatal_error:
            lines.append(f"Error:     {self.fatal_error}")
        if self.index_path is not None and self.ok:
            lines.append(f"Index:     {self.index_path}")
        return "\n".join(lines)


class _SpaceChanged(Exception):
    """Incremental vectors do not match the baseline's space."""


ProgressCallback = Callable[[BuildState, int, int], None]


class IndexBuilder:
    """Builds and incrementally updates the persisted index."""

    def __init__(
        self,
        provider,
        store: Optional[IndexStore] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        extract_workers: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Args:
            provider: EmbeddingProvider used for every unit
            store: Where the index is written (defaults to the build root)
            max_workers: Maximum embedding calls in flight
            extract_workers: Extraction threads (defaults to CPU count)
            on_progress: Called as (state, done, total)
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.provider = provider
        self.store = store
        self.max_workers = max_workers
        self.extract_workers = extract_workers
        self.on_progress = on_progress

    def build(
        self,
        root: Path,
        files: Sequence[SourceFile],
        cancel: Optional[CancelToken] = None,
    ) -> BuildReport:
        """Full build: extract and embed every file in the listing."""
        return self._run(Path(root), files, cancel or CancelToken())

    def update(
        self,
        root: Path,
        baseline: Optional[Index],
        files: Sequence[SourceFile],
        changed_paths: Iterable[str],
        cancel: Optional[CancelToken] = None,
    ) -> BuildReport:
        """
        Incremental build against a baseline index.

        Entries of unchanged files are carried over as they are. Changed
        files still in the listing are re-extracted and re-embedded;
        changed files no longer in the listing lose their entries.
        """
        root = Path(root)
        cancel = cancel or CancelToken()

        if baseline is None:
            return self._run(root, files, cancel, reason="no baseline index")

        current = (self.provider.name(), self.provider.dimension())
        if current != (baseline.provider_name, baseline.dimension):
            reason = (
                f"baseline built with {baseline.provider_name}/{baseline.dimension}, "
                f"provider is {current[0]}/{current[1]}"
            )
            logger.info("Falling back to full build: %s", reason)
            return self._run(root, files, cancel, reason=reason)

        changed = {normalize_path(p) for p in changed_paths}
        try:
            return self._run(root, files, cancel, baseline=baseline, changed=changed)
        except _SpaceChanged as e:
            logger.warning("Falling back to full build: %s", e)
            return self._run(root, files, cancel, reason=str(e))

    def _run(
        self,
        root: Path,
        files: Sequence[SourceFile],
        cancel: CancelToken,
        baseline: Optional[Index] = None,
        changed: Optional[set] = None,
        reason: Optional[str] = None,
    ) -> BuildReport:
        store = self.store or IndexStore(root)
        report = BuildReport(
            provider_name=self.provider.name(),
            incremental=baseline is not None,
            full_rebuild_reason=reason,
            index_path=store.path,
        )

        # Configuration-level failure; propagates to the caller
        store.ensure_directory()

        report.state = BuildState.SCANNING
        listing = {normalize_path(f.path): f for f in files}
        report.files_total = len(listing)

        carried: List[IndexEntry] = []
        if baseline is None:
            to_extract = [listing[p] for p in sorted(listing)]
        else:
            to_extract = [listing[p] for p in sorted(changed) if p in listing]
            carried = [
                entry for entry in baseline.entries
                if entry.unit.file_path in listing and entry.unit.file_path not in changed
            ]
            removed = len(baseline.entries_excluding_files(listing))
            if removed:
                logger.info("Dropping %d entries of deleted files", removed)

        report.state = BuildState.EXTRACTING
        extraction = extract_repository(
            root,
            to_extract,
            max_workers=self.extract_workers,
            on_progress=self._progress_hook(BuildState.EXTRACTING),
        )
        report.extraction_errors = extraction.errors
        units = extraction.units
        report.units_total = len(units) + len(carried)
        report.units_carried_over = len(carried)

        report.state = BuildState.EMBEDDING
        vectors = self._embed_units(units, report, cancel)

        baseline_space = None
        if carried:
            baseline_space = (baseline.provider_name, baseline.dimension)
        target = self._reconcile(units, vectors, report, cancel, baseline_space)

        report.state = BuildState.ASSEMBLING
        entries = list(carried)
        for unit in units:
            vector = vectors.get(unit.id)
            if vector is not None:
                entries.append(IndexEntry(unit=unit, vector=vector))
        report.units_embedded = len(entries) - len(carried)
        report.provider_name = target[0]

        if units and report.units_embedded == 0 and report.provider_unavailable:
            report.state = BuildState.FAILED
            report.fatal_error = "no embedding provider available"
            logger.error("Build failed: %s", report.fatal_error)
            return report

        complete = (
            report.units_omitted == 0
            and not report.extraction_errors
            and (baseline is None or not carried or baseline.complete)
        )
        index = Index(
            provider_name=target[0],
            dimension=target[1],
            entries=sort_entries(entries),
            complete=complete,
        )

        try:
            store.save(index)
        except PersistenceError as e:
            report.state = BuildState.FAILED
            report.fatal_error = str(e)
            logger.error("Build failed: %s", e)
            return report

        report.index = index
        report.state = BuildState.PERSISTED if complete else BuildState.PERSISTED_PARTIAL
        logger.info(
            "Persisted %d entries to %s (%s)", len(index), store.path, report.state.value
        )
        return report

    def _reconcile(
        self,
        units: List[CodeUnit],
        vectors: Dict[str, EmbeddingVector],
        report: BuildReport,
        cancel: CancelToken,
        baseline_space: Optional[Space],
    ) -> Space:
        """Reduce vectors to a single embedding space and return it."""
        produced = _spaces(vectors)

        if baseline_space is not None:
            if produced and set(produced) != {baseline_space}:
                found = ", ".join(f"{n}/{d}" for n, d in sorted(produced))
                raise _SpaceChanged(
                    f"vectors from {found} cannot be merged into "
                    f"{baseline_space[0]}/{baseline_space[1]} baseline"
                )
            return baseline_space

        if len(produced) > 1:
            active = (self.provider.name(), self.provider.dimension())
            if active in produced:
                stale = [
                    unit for unit in units
                    if unit.id in vectors and _space_of(vectors[unit.id]) != active
                ]
                logger.warning(
                    "Re-embedding %d units produced before failover to %s",
                    len(stale), active[0],
                )
                for unit in stale:
                    del vectors[unit.id]
                vectors.update(self._embed_units(stale, report, cancel))
                produced = _spaces(vectors)

        if not produced:
            return (self.provider.name(), self.provider.dimension())

        # Largest group wins if a second failover left more than one space
        target = max(produced.items(), key=lambda item: (item[1], item[0]))[0]
        for unit_id, vector in list(vectors.items()):
            if _space_of(vector) != target:
                del vectors[unit_id]
                report.embedding_errors.append(EmbeddingCallError(
                    f"discarded vector from {vector.provider_name}/{vector.dimension}",
                    unit_id=unit_id,
                ))
        return target

    def _embed_units(
        self,
        units: List[CodeUnit],
        report: BuildReport,
        cancel: CancelToken,
    ) -> Dict[str, EmbeddingVector]:
        """Embed units through a bounded pool. Results are keyed by unit id."""
        vectors: Dict[str, EmbeddingVector] = {}
        if not units:
            return vectors

        progress = self._progress_hook(BuildState.EMBEDDING)
        done = 0

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self._embed_one, unit, cancel): unit for unit in units}
            pending = set(futures)

            while pending:
                try:
                    for future in as_completed(pending):
                        pending.discard(future)
                        unit = futures[future]
                        self._collect(future, unit, vectors, report)
                        done += 1
                        if progress:
                            progress(done, len(units), unit.symbol_name)
                except KeyboardInterrupt:
                    logger.warning("Interrupted; waiting for in-flight embedding calls")
                    cancel.cancel()

        return vectors

    def _embed_one(self, unit: CodeUnit, cancel: CancelToken) -> Optional[EmbeddingVector]:
        if cancel.cancelled:
            return None
        vector = self.provider.generate_embedding(prepare_unit_text(unit))
        return vector.for_unit(unit.id)

    @staticmethod
    def _collect(future, unit: CodeUnit, vectors, report: BuildReport) -> None:
        try:
            vector = future.result()
        except EmbeddingCallError as e:
            logger.warning("Omitting %s: %s", unit.location, e.reason)
            report.embedding_errors.append(e.for_unit(unit.id))
        except ProviderUnavailable as e:
            logger.debug("Omitting %s: %s", unit.location, e)
            report.provider_unavailable += 1
        else:
            if vector is None:
                report.units_cancelled += 1
            else:
                vectors[unit.id] = vector

    def _progress_hook(self, state: BuildState):
        if self.on_progress is None:
            return None
        return lambda done, total, _message: self.on_progress(state, done, total)


def _space_of(vector: EmbeddingVector) -> Space:
    return (vector.provider_name, vector.dimension)


def _spaces(vectors: Dict[str, EmbeddingVector]) -> Counter:
    return Counter(_space_of(v) for v in vectors.values())
