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
JavaScript/TypeScript extractor using tree-sitter.

Extracts function declarations, class methods and functions bound to
variables (`const f = () => {}`).
"""

from .base import TreeSitterExtractor


FUNCTION_VALUE_TYPES = frozenset({"arrow_function", "function_expression", "function"})


class JavaScriptExtractor(TreeSitterExtractor):
    """AST-aware JavaScript extractor."""

    function_types = frozenset({
        "function_declaration",
        "generator_function_declaration",
        "method_definition",
    })
    owner_types = frozenset({"class_declaration", "class", "abstract_class_declaration"})
    decision_types = frozenset({
        "if_statement",
        "for_statement",
        "for_in_statement",   # for..in and for..of
        "while_statement",
        "do_statement",
        "switch_case",
        "switch_default",
        "ternary_expression",
    })

    def _load_language(self):
        try:
            import tree_sitter_javascript as tsjavascript
        except ImportError as e:
            raise ImportError(
                "tree-sitter-javascript not installed. "
                "Install with: pip install tree-sitter-javascript"
            ) from e
        return tsjavascript.language()

    def function_value(self, node):
        if node.type != "variable_declarator":
            return None
        value = node.child_by_field_name("value")
        if value is not None and value.type in FUNCTION_VALUE_TYPES:
            return value
        return None

    def parameter_count(self, node) -> int:
        # `x => x + 1` has a single bare parameter
        if node.child_by_field_name("parameters") is None:
            return 1 if node.child_by_field_name("parameter") is not None else 0
        return len(self.parameter_nodes(node))


class TypeScriptExtractor(JavaScriptExtractor):
    """AST-aware TypeScript extractor."""

    def _load_language(self):
        try:
            import tree_sitter_typescript as tstypescript
        except ImportError as e:
            raise ImportError(
                "tree-sitter-typescript not installed. "
                "Install with: pip install tree-sitter-typescript"
            ) from e
        return tstypescript.language_typescript()


class TsxExtractor(JavaScriptExtractor):
    """TypeScript with JSX."""

    def _load_language(self):
        try:
            import tree_sitter_typescript as tstypescript
        except ImportError as e:
            raise ImportError(
                "tree-sitter-typescript not installed. "
                "Install with: pip install tree-sitter-typescript"
            ) from e
        return tstypescript.language_tsx()
