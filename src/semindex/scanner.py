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
Repository scanner - lists source files and changed paths.
"""

import fnmatch
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Set

from .languages import detect_language
from .metrics import normalize_path
from .models import SourceFile


logger = logging.getLogger(__name__)

# Default patterns to always exclude
DEFAULT_EXCLUDES = [
    "*.git/*",
    "*.semindex/*",
    "*node_modules/*",
    "*__pycache__/*",
    "*venv/*",
    "*.egg-info/*",
    "*build/*",
    "*dist/*",
    "*.tox/*",
    "*target/*",
    "*vendor/*",
    "*.cache/*",
]

GIT_TIMEOUT = 30


def scan_repository(
    root_path: Path,
    exclude_patterns: Optional[List[str]] = None,
    focus_patterns: Optional[List[str]] = None,
) -> List[SourceFile]:
    """
    Find all source files below root_path.

    Args:
        root_path: Root directory to scan
        exclude_patterns: Glob patterns to exclude (added to defaults)
        focus_patterns: Only include files matching these patterns

    Returns:
        SourceFile list sorted by path
    """
    root_path = Path(root_path)
    all_excludes = DEFAULT_EXCLUDES + list(exclude_patterns or [])
    source_files = []

    for file_path in root_path.rglob("*"):
        if not file_path.is_file():
            continue

        language = detect_language(file_path)
        if not language:
            continue

        rel_path = normalize_path(file_path.relative_to(root_path).as_posix())

        if _is_excluded(rel_path, all_excludes):
            continue

        # If focus patterns are given, file must match at least one
        if focus_patterns:
            if not any(fnmatch.fnmatch(rel_path, pat) or fnmatch.fnmatch(file_path.name, pat)
                       for pat in focus_patterns):
                continue

        source_files.append(SourceFile(path=rel_path, language=language))

    source_files.sort(key=lambda f: f.path)
    return source_files


def _is_excluded(rel_path: str, patterns: List[str]) -> bool:
    # Leading "/" lets "*venv/*" also match a top-level "venv/x.py"
    anchored = "/" + rel_path
    return any(
        fnmatch.fnmatch(rel_path, pat) or fnmatch.fnmatch(anchored, pat)
        for pat in patterns
    )


def changed_files_since(root_path: Path, rev: str = "HEAD") -> Set[str]:
    """
    Paths changed relative to a git revision, plus untracked files.

    Raises:
        RuntimeError: If git is missing or the command fails
    """
    changed = set()
    commands = [
        ["git", "diff", "--name-only", "--relative", rev, "--"],
        ["git", "ls-files", "--others", "--exclude-standard"],
    ]

    for args in commands:
        output = _run_git(args, Path(root_path))
        changed.update(normalize_path(line.strip()) for line in output.splitlines() if line.strip())

    logger.debug("git reports %d changed files since %s", len(changed), rev)
    return changed


def _run_git(args: List[str], cwd: Path) -> str:
    """Run a git command and return stdout."""
    try:
        result = subprocess.run(
            args,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=GIT_TIMEOUT,
            cwd=cwd,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise RuntimeError(f"git failed: {e}") from e

    if result.returncode != 0:
        raise RuntimeError(
            f"git returned exit code {result.returncode}: {result.stderr.strip()}"
        )
    return result.stdout
