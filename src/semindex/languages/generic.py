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
Generic fallback extractor.

Used when no tree-sitter grammar is available for the language: the
whole file becomes a single unit so later stages still see it.
"""

from pathlib import PurePosixPath
from typing import List

from .base import BaseExtractor
from ..metrics import calculate_line_metrics, make_unit_id
from ..models import CodeUnit


class GenericExtractor(BaseExtractor):
    """One heuristic unit per file, sized by its line counts."""

    structural = False

    def extract(
        self,
        content: str,
        file_path: str,
        language: str,
    ) -> List[CodeUnit]:
        """Extract a whole-file unit."""
        if not content.strip():
            return []

        metrics = calculate_line_metrics(content)
        symbol_name = PurePosixPath(file_path).name
        end_line = max(len(content.splitlines()), 1)

        return [CodeUnit(
            id=make_unit_id(file_path, symbol_name, 1),
            file_path=file_path,
            symbol_name=symbol_name,
            start_line=1,
            end_line=end_line,
            language=language,
            loc=metrics.lines_of_code,
            cyclomatic_complexity=1,
            parameter_count=0,
            kind="file",
            content=content,
        )]
