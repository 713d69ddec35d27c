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
C-specific extractor using tree-sitter.

Extracts function definitions. Names live inside the declarator chain
(`int *(*f)(void)`), so both name and parameters are found by walking it.
"""

from typing import Optional

from .base import TreeSitterExtractor, _text


NAME_TYPES = frozenset({
    "identifier",
    "field_identifier",
    "qualified_identifier",
    "destructor_name",
    "operator_name",
})


class CExtractor(TreeSitterExtractor):
    """AST-aware C extractor using tree-sitter."""

    function_types = frozenset({"function_definition"})
    decision_types = frozenset({
        "if_statement",
        "for_statement",
        "while_statement",
        "do_statement",
        "case_statement",     # case and default
        "conditional_expression",
    })
    ignored_parameter_types = frozenset({"comment"})

    def _load_language(self):
        try:
            import tree_sitter_c as tsc
        except ImportError as e:
            raise ImportError(
                "tree-sitter-c not installed. "
                "Install with: pip install tree-sitter-c"
            ) from e
        return tsc.language()

    def function_name(self, node) -> Optional[str]:
        declarator = node.child_by_field_name("declarator")
        while declarator is not None:
            if declarator.type in NAME_TYPES:
                return _text(declarator)
            declarator = declarator.child_by_field_name("declarator")
        return None

    def _function_declarator(self, node):
        declarator = node.child_by_field_name("declarator")
        while declarator is not None and declarator.type != "function_declarator":
            declarator = declarator.child_by_field_name("declarator")
        return declarator

    def parameter_nodes(self, node) -> list:
        declarator = self._function_declarator(node)
        if declarator is None:
            return []
        params = declarator.child_by_field_name("parameters")
        if params is None:
            return []
        nodes = [
            child for child in params.named_children
            if child.type not in self.ignored_parameter_types
        ]
        # f(void) declares no parameters
        if len(nodes) == 1 and _is_void(nodes[0]):
            return []
        return nodes


def _is_void(param) -> bool:
    if param.type != "parameter_declaration":
        return False
    if param.child_by_field_name("declarator") is not None:
        return False
    type_node = param.child_by_field_name("type")
    return type_node is not None and _text(type_node) == "void"
