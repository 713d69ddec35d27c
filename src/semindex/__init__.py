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
semindex - Semantic function index for duplicate detection.

Extracts functions from a repository, embeds them through a local Ollama
server (falling back to OpenAI), keeps a versioned index on disk and
answers "does something like this already exist?".
"""

__version__ = "0.1.0"

from .builder import BuildReport, BuildState, CancelToken, IndexBuilder
from .classifier import (
    DuplicateDetector,
    DuplicateMatch,
    SimilarityLevel,
    classify_similarity,
    find_duplicate_pairs,
)
from .config import Settings, find_config_file, load_config
from .extractor import extract_file, extract_repository, extract_source
from .models import CodeUnit, EmbeddingVector, Index, IndexEntry, SimilarityResult, SourceFile
from .providers import HybridProvider, LocalProvider, RemoteProvider, create_provider
from .scanner import scan_repository
from .search import LinearScanSearch, cosine_similarity
from .store import IndexStore

__all__ = [
    "__version__",
    "BuildReport",
    "BuildState",
    "CancelToken",
    "IndexBuilder",
    "DuplicateDetector",
    "DuplicateMatch",
    "SimilarityLevel",
    "classify_similarity",
    "find_duplicate_pairs",
    "Settings",
    "find_config_file",
    "load_config",
    "extract_file",
    "extract_repository",
    "extract_source",
    "CodeUnit",
    "EmbeddingVector",
    "Index",
    "IndexEntry",
    "SimilarityResult",
    "SourceFile",
    "HybridProvider",
    "LocalProvider",
    "RemoteProvider",
    "create_provider",
    "scan_repository",
    "LinearScanSearch",
    "cosine_similarity",
    "IndexStore",
]
