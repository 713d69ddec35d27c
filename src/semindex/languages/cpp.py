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
C++-specific extractor using tree-sitter.

Extracts free functions and methods (in-class and `Owner::method`).
"""

from .c import CExtractor


class CppExtractor(CExtractor):
    """AST-aware C++ extractor using tree-sitter."""

    owner_types = frozenset({"class_specifier", "struct_specifier"})
    decision_types = CExtractor.decision_types | {"for_range_loop"}

    def _load_language(self):
        try:
            import tree_sitter_cpp as tscpp
        except ImportError as e:
            raise ImportError(
                "tree-sitter-cpp not installed. "
                "Install with: pip install tree-sitter-cpp"
            ) from e
        return tscpp.language()
