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
Language-specific unit extraction.

Uses tree-sitter for AST-aware extraction when available,
falls back to a single whole-file unit.
"""

import logging
from pathlib import PurePath
from typing import Optional, Union

from .base import BaseExtractor, TreeSitterExtractor
from .generic import GenericExtractor


logger = logging.getLogger(__name__)

# Extension to language mapping
EXTENSION_MAP = {
    ".py": "python",
    ".pyw": "python",
    ".go": "go",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hxx": "cpp",
    ".rs": "rust",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".swift": "swift",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".scala": "scala",
    ".lua": "lua",
    ".sh": "bash",
}


def get_extractor(language: str) -> BaseExtractor:
    """
    Get an extractor instance for the given language.

    Falls back to the generic extractor if no grammar is available.
    """
    language = language.lower()

    extractor = _load_tree_sitter_extractor(language)
    if isinstance(extractor, TreeSitterExtractor):
        try:
            extractor.ensure_parser()
        except ImportError as e:
            logger.debug("No grammar for %s, using whole-file units: %s", language, e)
            return GenericExtractor()
        return extractor

    return extractor or GenericExtractor()


def detect_language(file_path: Union[str, PurePath]) -> Optional[str]:
    """Detect language from file extension."""
    ext = PurePath(file_path).suffix.lower()
    return EXTENSION_MAP.get(ext)


def _load_tree_sitter_extractor(language: str) -> Optional[BaseExtractor]:
    """Instantiate the tree-sitter extractor for the language, if any."""
    if language == "python":
        from .python import PythonExtractor
        return PythonExtractor()
    elif language == "go":
        from .go import GoExtractor
        return GoExtractor()
    elif language == "javascript":
        from .javascript import JavaScriptExtractor
        return JavaScriptExtractor()
    elif language == "typescript":
        from .javascript import TypeScriptExtractor
        return TypeScriptExtractor()
    elif language == "tsx":
        from .javascript import TsxExtractor
        return TsxExtractor()
    elif language == "java":
        from .java import JavaExtractor
        return JavaExtractor()
    elif language == "c":
        from .c import CExtractor
        return CExtractor()
    elif language == "cpp":
        from .cpp import CppExtractor
        return CppExtractor()

    return None
