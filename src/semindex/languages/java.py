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
Java-specific extractor using tree-sitter.

Extracts methods and constructors with bodies; abstract and interface
methods carry no logic and are skipped.
"""

from .base import TreeSitterExtractor


class JavaExtractor(TreeSitterExtractor):
    """AST-aware Java extractor using tree-sitter."""

    function_types = frozenset({"method_declaration", "constructor_declaration"})
    owner_types = frozenset({
        "class_declaration",
        "interface_declaration",
        "enum_declaration",
        "record_declaration",
    })
    decision_types = frozenset({
        "if_statement",
        "for_statement",
        "enhanced_for_statement",
        "while_statement",
        "do_statement",
        "switch_label",       # case and default, both switch styles
        "ternary_expression",
    })
    ignored_parameter_types = frozenset({"comment", "receiver_parameter"})

    def _load_language(self):
        try:
            import tree_sitter_java as tsjava
        except ImportError as e:
            raise ImportError(
                "tree-sitter-java not installed. "
                "Install with: pip install tree-sitter-java"
            ) from e
        return tsjava.language()
