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
Base extractor interface and the shared tree-sitter driver.
"""

from abc import ABC, abstractmethod
from typing import FrozenSet, List, Optional

from ..errors import ExtractionError
from ..metrics import LOGICAL_OPERATORS, cyclomatic_complexity, make_unit_id
from ..models import CodeUnit


class BaseExtractor(ABC):
    """Abstract base class for language-specific extractors."""

    #: True when units come from a real syntax tree
    structural = True

    @abstractmethod
    def extract(
        self,
        content: str,
        file_path: str,
        language: str,
    ) -> List[CodeUnit]:
        """
        Extract code units from file content.

        Args:
            content: Full file content
            file_path: POSIX path relative to the repository root
            language: Detected language

        Returns:
            List of CodeUnit objects in source order

        Raises:
            ExtractionError: If the file cannot be parsed
        """
        pass


class TreeSitterExtractor(BaseExtractor):
    """
    Walks a tree-sitter syntax tree and emits one unit per function.

    Subclasses name the grammar and the node types that matter; the
    naming hooks cover the places grammars disagree.
    """

    #: Node types that become code units
    function_types: FrozenSet[str] = frozenset()
    #: Node types that give their name to the functions they contain
    owner_types: FrozenSet[str] = frozenset()
    #: Node types that each add one decision point
    decision_types: FrozenSet[str] = frozenset()
    #: Node types that may carry a short-circuit operator
    logical_types: FrozenSet[str] = frozenset({"binary_expression"})
    #: Node types never counted as parameters
    ignored_parameter_types: FrozenSet[str] = frozenset({"comment"})

    def __init__(self):
        self._parser = None
        self._language = None

    def _load_language(self):
        """Return the grammar's language pointer. Raises ImportError."""
        raise NotImplementedError

    def ensure_parser(self):
        """Lazy-load tree-sitter parser."""
        if self._parser is not None:
            return

        from tree_sitter import Language, Parser

        self._language = Language(self._load_language())
        self._parser = Parser(self._language)

    def extract(
        self,
        content: str,
        file_path: str,
        language: str,
    ) -> List[CodeUnit]:
        """Extract functions and methods."""
        self.ensure_parser()

        tree = self._parser.parse(content.encode("utf-8"))
        if tree.root_node.has_error:
            line = self._first_error_line(tree.root_node)
            raise ExtractionError(file_path, f"syntax error near line {line}")

        lines = content.split("\n")
        units: List[CodeUnit] = []
        self._extract_units(tree.root_node, lines, file_path, language, units)
        return units

    def _extract_units(
        self,
        root,
        lines: List[str],
        file_path: str,
        language: str,
        units: List[CodeUnit],
    ):
        """Pre-order walk in source order, using an explicit stack."""
        stack = [(root, None)]
        while stack:
            node, owner = stack.pop()

            if node.type in self.function_types:
                unit = self._create_unit(node, node, lines, file_path, language, owner)
                if unit:
                    units.append(unit)
                continue  # Nested functions belong to their parent

            target = self.function_value(node)
            if target is not None:
                unit = self._create_unit(node, target, lines, file_path, language, owner)
                if unit:
                    units.append(unit)
                continue

            if node.type in self.owner_types:
                owner = self.owner_name(node) or owner

            stack.extend((child, owner) for child in reversed(node.children))

    def _create_unit(
        self,
        span_node,
        function_node,
        lines: List[str],
        file_path: str,
        language: str,
        owner: Optional[str],
    ) -> Optional[CodeUnit]:
        """Create a unit; span_node gives the range, function_node the body."""
        if not self.has_body(function_node):
            return None

        name = self.function_name(span_node) or "<anonymous>"
        owner = self.receiver_name(function_node) or owner
        symbol_name = f"{owner}.{name}" if owner else name

        start_line = span_node.start_point[0] + 1  # 1-indexed
        end_line = span_node.end_point[0] + 1

        return CodeUnit(
            id=make_unit_id(file_path, symbol_name, start_line),
            file_path=file_path,
            symbol_name=symbol_name,
            start_line=start_line,
            end_line=end_line,
            language=language,
            loc=end_line - start_line + 1,
            cyclomatic_complexity=cyclomatic_complexity(
                function_node, self.decision_types, self.is_logical
            ),
            parameter_count=self.parameter_count(function_node),
            kind="method" if owner else "function",
            content="\n".join(lines[start_line - 1:end_line]),
        )

    # Hooks

    def function_value(self, node):
        """Function node bound by a declaration (e.g. `const f = () => {}`)."""
        return None

    def function_name(self, node) -> Optional[str]:
        """Extract function name from node."""
        name = node.child_by_field_name("name")
        return _text(name) if name is not None else None

    def owner_name(self, node) -> Optional[str]:
        """Extract class/struct name from node."""
        name = node.child_by_field_name("name")
        return _text(name) if name is not None else None

    def receiver_name(self, node) -> Optional[str]:
        """Owner declared on the function itself (Go receivers)."""
        return None

    def has_body(self, node) -> bool:
        return node.child_by_field_name("body") is not None

    def parameter_nodes(self, node) -> list:
        params = node.child_by_field_name("parameters")
        if params is None:
            return []
        return [
            child for child in params.named_children
            if child.type not in self.ignored_parameter_types
        ]

    def parameter_count(self, node) -> int:
        return len(self.parameter_nodes(node))

    def is_logical(self, node) -> bool:
        """True for a short-circuit boolean operation."""
        if node.type not in self.logical_types:
            return False
        operator = node.child_by_field_name("operator")
        return operator is not None and operator.type in LOGICAL_OPERATORS

    @staticmethod
    def _first_error_line(root) -> int:
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type == "ERROR" or node.is_missing:
                return node.start_point[0] + 1
            stack.extend(reversed(node.children))
        return root.start_point[0] + 1


def _text(node) -> str:
    return node.text.decode("utf-8", errors="replace")
