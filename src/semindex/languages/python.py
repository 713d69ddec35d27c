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
Python-specific extractor using tree-sitter.

Extracts functions and methods; methods are named after their class.
"""

from .base import TreeSitterExtractor


class PythonExtractor(TreeSitterExtractor):
    """AST-aware Python extractor using tree-sitter."""

    function_types = frozenset({"function_definition"})
    owner_types = frozenset({"class_definition"})
    decision_types = frozenset({
        "if_statement",
        "elif_clause",
        "conditional_expression",
        "for_statement",
        "while_statement",
        "case_clause",
        "for_in_clause",  # comprehension loops
        "if_clause",      # comprehension filters
    })
    logical_types = frozenset({"boolean_operator"})
    ignored_parameter_types = frozenset({
        "comment",
        "keyword_separator",     # bare *
        "positional_separator",  # bare /
    })

    def _load_language(self):
        try:
            import tree_sitter_python as tspython
        except ImportError as e:
            raise ImportError(
                "tree-sitter-python not installed. "
                "Install with: pip install tree-sitter-python"
            ) from e
        return tspython.language()
