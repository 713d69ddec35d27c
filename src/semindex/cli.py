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
CLI entry point for semindex.

Usage:
    semindex build <path> [options]
    semindex duplicates <path> <file> [options]
    semindex pairs <path> [options]
    semindex status <path>
    semindex clear <path>
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .builder import BuildState, CancelToken, IndexBuilder
from .classifier import DuplicateDetector, find_duplicate_pairs
from .config import load_settings
from .errors import ConfigError, ExtractionError, SemindexError
from .extractor import extract_file
from .languages import detect_language
from .metrics import normalize_path
from .models import SourceFile
from .providers import create_provider
from .scanner import changed_files_since, scan_repository
from .store import IndexStore


PATH_ARG = click.Path(exists=True, file_okay=False, dir_okay=True)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def print_progress(current: int, total: int, message: str, width: int = 30):
    """Print a progress bar with message."""
    filled = int(width * current / max(total, 1))
    bar = "=" * filled + ">" + " " * (width - filled - 1) if filled < width else "=" * width
    click.echo(f"\r   [{bar}] {current}/{total} {message}\033[K", nl=False)
    if current >= total:
        click.echo()


def _settings(root: Path, **cli_args):
    try:
        return load_settings(root, **cli_args)
    except ConfigError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        sys.exit(2)


def _load_index(root: Path):
    index = IndexStore(root).load()
    if index is None:
        click.echo(f"❌ No usable index in {root}. Run `semindex build {root}` first.", err=True)
        sys.exit(1)
    return index


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and progress bars")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """
    Semantic function index for duplicate detection.

    Examples:

      # Index a repository
      semindex build ./src

      # Re-embed only what changed since the last commit
      semindex build ./src --since HEAD

      # Look for existing code similar to a file's functions
      semindex duplicates ./src pkg/new_module.py
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command()
@click.argument("path", type=PATH_ARG)
@click.option("--changed", "changed", multiple=True, help="Changed file, relative to PATH (repeatable)")
@click.option("--since", type=str, default=None, help="Treat files changed since this git revision as changed")
@click.option("--full", is_flag=True, help="Ignore the existing index and rebuild everything")
@click.option("--timeout", type=float, default=None, help="Stop issuing embedding calls after S seconds")
@click.option(
    "--provider",
    type=click.Choice(["hybrid", "local", "remote"]),
    default=None,
    help="Embedding backend (default: hybrid)",
)
@click.option("-e", "--exclude", multiple=True, help="Glob patterns to exclude (repeatable)")
@click.option("-f", "--focus", multiple=True, help="Only index matching paths (repeatable)")
@click.option("-w", "--workers", "max_workers", type=int, default=None, help="Concurrent embedding calls (default: 4)")
@click.pass_context
def build(
    ctx: click.Context,
    path: str,
    changed: tuple,
    since: Optional[str],
    full: bool,
    timeout: Optional[float],
    provider: Optional[str],
    exclude: tuple,
    focus: tuple,
    max_workers: Optional[int],
):
    """
    Build or update the index for PATH.

    Without --changed or --since every file is re-embedded.
    """
    root = Path(path).resolve()
    settings = _settings(
        root, provider=provider, exclude=exclude, focus=focus, max_workers=max_workers,
    )

    click.echo(f"🔍 Scanning {root}...")
    files = scan_repository(root, settings.exclude, settings.focus)
    click.echo(f"   Found {len(files)} source files")

    store = IndexStore(root)
    baseline = None if full else store.load()

    changed_paths = {normalize_path(p) for p in changed}
    if since is not None:
        try:
            changed_paths |= changed_files_since(root, since)
        except RuntimeError as e:
            click.echo(f"❌ {e}", err=True)
            sys.exit(1)

    on_progress = None
    if ctx.obj.get("verbose"):
        def on_progress(state, done, total):
            print_progress(done, total, state.value)

    embedder = create_provider(settings)
    builder = IndexBuilder(
        embedder,
        store=store,
        max_workers=settings.max_workers,
        on_progress=on_progress,
    )
    cancel = CancelToken(timeout=timeout)

    click.echo(f"🧠 Embedding with {embedder.name()}...")
    try:
        if baseline is not None and (changed or since is not None):
            report = builder.update(root, baseline, files, changed_paths, cancel=cancel)
        else:
            report = builder.build(root, files, cancel=cancel)
    except SemindexError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    finally:
        embedder.close()

    for error in report.extraction_errors:
        click.echo(f"   ⚠️  {error}", err=True)

    click.echo(report.summary())

    if report.state is BuildState.FAILED:
        sys.exit(1)


@main.command()
@click.argument("path", type=PATH_ARG)
@click.argument("file", type=str)
@click.option("--symbol", type=str, default=None, help="Only check this function or method")
@click.option("-t", "--threshold", type=float, default=None, help="Similarity threshold -1.0-1.0 (default: 0.85)")
@click.option("--json", "as_json", is_flag=True, help="Print matches as JSON")
def duplicates(path: str, file: str, symbol: Optional[str], threshold: Optional[float], as_json: bool):
    """
    Find indexed units similar to the functions in FILE.

    FILE is relative to PATH. Units not in the index are embedded on the fly.
    """
    root = Path(path).resolve()
    settings = _settings(root, threshold=threshold)
    index = _load_index(root)

    rel_path = normalize_path(file)
    language = detect_language(rel_path)
    if language is None:
        click.echo(f"❌ Unsupported file type: {file}", err=True)
        sys.exit(1)

    try:
        result = extract_file(root, SourceFile(path=rel_path, language=language))
    except ExtractionError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    units = result.units
    if symbol is not None:
        units = [u for u in units if symbol in (u.symbol_name, u.short_name)]
        if not units:
            click.echo(f"❌ No function named {symbol} in {file}", err=True)
            sys.exit(1)

    embedder = create_provider(settings)
    detector = DuplicateDetector(index, threshold=settings.threshold, provider=embedder)

    report = []
    try:
        for unit in units:
            try:
                matches = detector.detect_duplicates(unit)
            except (SemindexError, LookupError) as e:
                click.echo(f"   ⚠️  Skipping {unit.symbol_name}: {e}", err=True)
                continue
            report.append((unit, matches))
    finally:
        embedder.close()

    if as_json:
        click.echo(json.dumps([
            {
                "symbol_name": unit.symbol_name,
                "file_path": unit.file_path,
                "start_line": unit.start_line,
                "end_line": unit.end_line,
                "matches": [
                    {
                        "symbol_name": m.unit.symbol_name,
                        "file_path": m.unit.file_path,
                        "start_line": m.unit.start_line,
                        "end_line": m.unit.end_line,
                        "score": round(m.score, 4),
                        "level": m.level.value,
                    }
                    for m in matches
                ],
            }
            for unit, matches in report
        ], indent=2))
        return

    found = 0
    for unit, matches in report:
        if not matches:
            continue
        found += len(matches)
        click.echo(f"\n{unit.symbol_name} ({unit.location})")
        for m in matches:
            click.echo(f"   {m.score:.3f}  {m.level.value:<16}  {m.unit.symbol_name}  {m.unit.location}")

    if found == 0:
        click.echo(f"✅ No duplicates above {settings.threshold:.2f}")


@main.command()
@click.argument("path", type=PATH_ARG)
@click.option("-t", "--threshold", type=float, default=None, help="Similarity threshold -1.0-1.0 (default: 0.85)")
@click.option("-n", "--limit", type=int, default=None, help="Show at most N pairs")
def pairs(path: str, threshold: Optional[float], limit: Optional[int]):
    """List every pair of indexed units above the threshold."""
    root = Path(path).resolve()
    settings = _settings(root, threshold=threshold)
    index = _load_index(root)

    found = find_duplicate_pairs(index, settings.threshold)
    if not found:
        click.echo(f"✅ No pairs above {settings.threshold:.2f}")
        return

    shown = found if limit is None else found[:limit]
    for pair in shown:
        click.echo(
            f"{pair.score:.3f}  {pair.level.value:<16}  "
            f"{pair.first.symbol_name} ({pair.first.location})  ~  "
            f"{pair.second.symbol_name} ({pair.second.location})"
        )
    if len(shown) < len(found):
        click.echo(f"... {len(found) - len(shown)} more")


@main.command()
@click.argument("path", type=PATH_ARG)
def status(path: str):
    """Show what the index for PATH contains."""
    root = Path(path).resolve()
    store = IndexStore(root)

    if not store.exists():
        click.echo(f"No index at {store.path}")
        sys.exit(1)

    index = store.load()
    if index is None:
        click.echo(f"❌ Index at {store.path} is unusable; rebuild with `semindex build --full`")
        sys.exit(1)

    click.echo(f"📊 Index: {store.path}")
    click.echo(f"   Format:    {index.format_version}")
    click.echo(f"   Provider:  {index.provider_name} ({index.dimension} dimensions)")
    click.echo(f"   Files:     {len(index.files())}")
    click.echo(f"   Units:     {len(index)}")
    click.echo(f"   Complete:  {'yes' if index.complete else 'no (partial build)'}")


@main.command()
@click.argument("path", type=PATH_ARG)
def clear(path: str):
    """Delete the index for PATH."""
    store = IndexStore(Path(path).resolve())
    if store.clear():
        click.echo(f"🗑️  Removed {store.path}")
    else:
        click.echo("No index to remove")


if __name__ == "__main__":
    main()
