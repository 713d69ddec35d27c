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
Shared metrics and identity helpers.

Unit ids, whole-file line counts and decision-point counting over
tree-sitter syntax trees.
"""

import hashlib
from pathlib import PurePath
from typing import Callable, FrozenSet, Iterable, Union

from .models import FileMetrics


COMMENT_PREFIXES = ("//", "#", "/*", "*")

# Operators that short-circuit evaluation
LOGICAL_OPERATORS: FrozenSet[str] = frozenset({"&&", "||", "??", "and", "or"})


def normalize_path(path: Union[str, PurePath]) -> str:
    """POSIX form of a relative path, used in ids and the index."""
    text = str(path).replace("\\", "/")
    while text.startswith("./"):
        text = text[2:]
    return text


def make_unit_id(file_path: Union[str, PurePath], symbol_name: str, start_line: int) -> str:
    """
    Deterministic id for a code unit.

    Re-extracting unchanged source yields the same id.
    """
    data = f"{normalize_path(file_path)}:{symbol_name}:{start_line}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


def calculate_line_metrics(content: str) -> FileMetrics:
    """Count code, comment and blank lines."""
    code = comments = blank = 0

    for line in content.splitlines():
        stripped = line.strip()
        if not stripped:
            blank += 1
        elif stripped.startswith(COMMENT_PREFIXES):
            comments += 1
        else:
            code += 1

    return FileMetrics(
        lines_of_code=code,
        lines_of_comments=comments,
        blank_lines=blank,
    )


def count_decision_points(
    node,
    decision_types: Iterable[str],
    is_logical: Callable[[object], bool],
) -> int:
    """
    Count decision points below a syntax node.

    Walks the subtree without recursion (deep trees overflow the stack).
    """
    decision_types = frozenset(decision_types)
    count = 0
    stack = list(node.children)

    while stack:
        current = stack.pop()
        if current.type in decision_types:
            count += 1
        elif is_logical(current):
            count += 1

        stack.extend(current.children)

    return count


def cyclomatic_complexity(
    node,
    decision_types: Iterable[str],
    is_logical: Callable[[object], bool],
) -> int:
    """1 + number of decision points."""
    return 1 + count_decision_points(node, decision_types, is_logical)
