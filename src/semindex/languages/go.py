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
Go-specific extractor using tree-sitter.

Extracts functions and methods. Methods are named `Receiver.Method`.
"""

from typing import Optional

from .base import TreeSitterExtractor, _text


class GoExtractor(TreeSitterExtractor):
    """AST-aware Go extractor using tree-sitter."""

    function_types = frozenset({"function_declaration", "method_declaration"})
    decision_types = frozenset({
        "if_statement",
        "for_statement",        # also covers range loops
        "expression_case",
        "type_case",
        "communication_case",
        "default_case",
    })

    def _load_language(self):
        try:
            import tree_sitter_go as tsgo
        except ImportError as e:
            raise ImportError(
                "tree-sitter-go not installed. "
                "Install with: pip install tree-sitter-go"
            ) from e
        return tsgo.language()

    def receiver_name(self, node) -> Optional[str]:
        """Extract receiver type from method declaration."""
        receiver = node.child_by_field_name("receiver")
        if receiver is None:
            return None

        for param in receiver.named_children:
            if param.type != "parameter_declaration":
                continue
            type_node = param.child_by_field_name("type")
            # Unwrap *T and T[K]
            while type_node is not None and type_node.type in ("pointer_type", "generic_type"):
                type_node = next(
                    (c for c in type_node.named_children if c.type == "type_identifier"),
                    type_node.named_children[0] if type_node.named_children else None,
                )
            if type_node is not None and type_node.type == "type_identifier":
                return _text(type_node)
            break  # Only the first receiver parameter
        return None

    def parameter_count(self, node) -> int:
        """Grouped names (`a, b int`) count individually."""
        count = 0
        for param in self.parameter_nodes(node):
            if param.type == "parameter_declaration":
                names = param.children_by_field_name("name")
                count += max(len(names), 1)
            elif param.type == "variadic_parameter_declaration":
                count += 1
        return count
