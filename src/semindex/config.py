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
Configuration file support for semindex.

Looks for .semindexrc or .semindex.toml in the project directory or any
parent directory.
"""

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigError
from .providers import (
    DEFAULT_OLLAMA_DIMENSION,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OPENAI_DIMENSION,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_TIMEOUT,
    OLLAMA_BASE_URL,
)


CONFIG_NAMES = [".semindexrc", ".semindex.toml"]
CONFIG_SECTION = "semindex"

PROVIDER_CHOICES = ("hybrid", "local", "remote")


def find_config_file(start_path: Path) -> Optional[Path]:
    """
    Search for .semindexrc or .semindex.toml in start_path and parent directories.

    Args:
        start_path: Directory to start searching from

    Returns:
        Path to config file if found, None otherwise
    """
    current = Path(start_path).resolve()

    while True:
        for name in CONFIG_NAMES:
            config_path = current / name
            if config_path.is_file():
                return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(path: Path) -> Dict[str, Any]:
    """
    Load the [semindex] table of the nearest config file.

    Returns an empty dict if no config file is found or it cannot be read.

    Example config file (.semindexrc or .semindex.toml):
        [semindex]
        provider = "hybrid"
        ollama_url = "http://localhost:11434"
        ollama_model = "nomic-embed-text"
        openai_model = "text-embedding-3-small"
        threshold = 0.85
        top_k = 10
        max_workers = 4
        exclude = ["**/tests/**"]
        focus = ["*.py", "*.go"]
    """
    config_path = find_config_file(path)

    if config_path is None:
        return {}

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return {}

    section = data.get(CONFIG_SECTION, {})
    return section if isinstance(section, dict) else {}


def environment_overrides(env: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Settings taken from environment variables."""
    env = os.environ if env is None else env
    overrides = {}

    api_key = env.get("SEMINDEX_OPENAI_API_KEY") or env.get("OPENAI_API_KEY")
    if api_key:
        overrides["openai_api_key"] = api_key
    if env.get("SEMINDEX_OLLAMA_URL"):
        overrides["ollama_url"] = env["SEMINDEX_OLLAMA_URL"]

    return overrides


@dataclass
class Settings:
    """Resolved settings for one run."""

    provider: str = "hybrid"
    ollama_url: str = OLLAMA_BASE_URL
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    ollama_dimension: int = DEFAULT_OLLAMA_DIMENSION
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_dimension: int = DEFAULT_OPENAI_DIMENSION
    openai_api_key: Optional[str] = field(default=None, repr=False)
    threshold: float = 0.85
    top_k: int = 10
    max_workers: int = 4
    timeout: float = DEFAULT_TIMEOUT
    exclude: List[str] = field(default_factory=list)
    focus: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(
        cls,
        values: Mapping[str, Any],
        env: Optional[Mapping[str, str]] = None,
    ) -> "Settings":
        """
        Build settings from a config table plus environment.

        Unknown keys are ignored. Environment variables take priority over
        file values.
        """
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in values.items() if k in known and v is not None}
        data.update(environment_overrides(env))

        try:
            settings = cls(**data)
            settings.ollama_dimension = int(settings.ollama_dimension)
            settings.openai_dimension = int(settings.openai_dimension)
            settings.threshold = float(settings.threshold)
            settings.top_k = int(settings.top_k)
            settings.max_workers = int(settings.max_workers)
            settings.timeout = float(settings.timeout)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid configuration value: {e}") from e

        settings.exclude = list(settings.exclude)
        settings.focus = list(settings.focus)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ConfigError for out-of-range values."""
        if self.provider not in PROVIDER_CHOICES:
            raise ConfigError(
                f"provider must be one of {', '.join(PROVIDER_CHOICES)}, got {self.provider!r}"
            )
        if not -1.0 <= self.threshold <= 1.0:
            raise ConfigError(f"threshold must be between -1 and 1, got {self.threshold}")
        if self.top_k < 1:
            raise ConfigError(f"top_k must be at least 1, got {self.top_k}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.ollama_dimension < 1 or self.openai_dimension < 1:
            raise ConfigError("embedding dimensions must be positive")
        if self.provider == "remote" and not self.openai_api_key:
            raise ConfigError("provider 'remote' needs OPENAI_API_KEY")


def merge_config_with_cli(config: Dict[str, Any], **cli_args) -> Dict[str, Any]:
    """
    Merge config file values with CLI arguments.

    CLI arguments left at None fall through to the config value.
    """
    result = dict(config)

    for key, value in cli_args.items():
        if value is None:
            continue
        # Empty tuples from multiple=True options mean "not given"
        if isinstance(value, tuple) and not value:
            continue
        result[key] = list(value) if isinstance(value, tuple) else value

    return result


def load_settings(path: Path, env: Optional[Mapping[str, str]] = None, **cli_args) -> Settings:
    """
    Resolve settings for a run.

    Precedence, lowest first: defaults, config file, environment, CLI arguments.
    """
    base = dict(load_config(path))
    base.update(environment_overrides(env))
    merged = merge_config_with_cli(base, **cli_args)
    return Settings.from_mapping(merged, env={})
