"""
Pytest configuration and shared fixtures.
"""

import hashlib
import re
import threading
from pathlib import Path

import numpy as np
import pytest

from semindex.errors import EmbeddingCallError, ProviderUnavailable
from semindex.models import CodeUnit, EmbeddingVector, Index, IndexEntry


def bag_of_words(text: str, dimension: int) -> np.ndarray:
    """Deterministic token-count vector; equal texts give equal vectors."""
    values = np.zeros(dimension, dtype=np.float32)
    for token in re.findall(r"\w+", text):
        slot = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % dimension
        values[slot] += 1.0
    if not values.any():
        values[0] = 1.0
    return values


class FakeProvider:
    """In-process embedding provider for builder and search tests."""

    def __init__(
        self,
        name: str = "fake:bow",
        dimension: int = 256,
        fail_on=(),
        unavailable: bool = False,
        fail_after=None,
    ):
        """
        Args:
            fail_on: Substrings that make a call raise EmbeddingCallError
            unavailable: Every call raises ProviderUnavailable
            fail_after: Calls beyond this many raise EmbeddingCallError
        """
        self._name = name
        self._dimension = dimension
        self.fail_on = set(fail_on)
        self.unavailable = unavailable
        self.fail_after = fail_after
        self.calls = 0
        self.texts = []
        self.closed = False
        self._lock = threading.Lock()

    def name(self) -> str:
        return self._name

    def dimension(self) -> int:
        return self._dimension

    def is_configured(self) -> bool:
        return True

    def generate_embedding(self, text: str) -> EmbeddingVector:
        with self._lock:
            self.calls += 1
            call_number = self.calls
            self.texts.append(text)

        if self.unavailable:
            raise ProviderUnavailable(f"{self._name} is down")
        if self.fail_after is not None and call_number > self.fail_after:
            raise EmbeddingCallError(f"{self._name} stopped responding")
        for marker in self.fail_on:
            if marker in text:
                raise EmbeddingCallError(f"{self._name} rejected input")

        return EmbeddingVector(
            unit_id="",
            provider_name=self._name,
            dimension=self._dimension,
            values=bag_of_words(text, self._dimension),
        )

    def close(self) -> None:
        self.closed = True


def make_unit(unit_id: str, file_path: str = "a.py", start_line: int = 1, **kwargs) -> CodeUnit:
    defaults = dict(
        symbol_name=f"func_{unit_id}",
        end_line=start_line + 2,
        language="python",
        loc=3,
    )
    defaults.update(kwargs)
    return CodeUnit(id=unit_id, file_path=file_path, start_line=start_line, **defaults)


def make_index(vectors: dict, provider_name: str = "fake:bow") -> Index:
    """Index from {unit_id: values}; one unit per id, in insertion order."""
    dimension = len(next(iter(vectors.values())))
    index = Index(provider_name=provider_name, dimension=dimension)
    for line, (unit_id, values) in enumerate(vectors.items(), start=1):
        unit = make_unit(unit_id, start_line=line * 10)
        index.add(IndexEntry(
            unit=unit,
            vector=EmbeddingVector(unit_id, provider_name, dimension, values),
        ))
    return index


def write_files(root: Path, files: dict) -> None:
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


ALPHA_BODY = "return sorted(x, key=len, reverse=True)"


def python_function(name: str, body: str = "return x + 1") -> str:
    return f"def {name}(x):\n    {body}\n"


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def repo(tmp_path):
    """Three small Python files."""
    pytest.importorskip("tree_sitter_python")
    write_files(tmp_path, {
        "a.py": python_function("alpha", ALPHA_BODY),
        "b.py": python_function("beta", "raise ValueError('negative input rejected')"),
        "c.py": python_function("gamma", "print('hello world', file=sys.stderr)"),
    })
    return tmp_path
