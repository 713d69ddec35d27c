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
Embedding providers - turn code unit text into vectors.

Three backends share one capability contract:

- LocalProvider talks to an Ollama server on this machine.
- RemoteProvider talks to the OpenAI embeddings API.
- HybridProvider prefers Local and fails over to Remote. Failover is
  sticky: once Local fails it is not tried again for the session.

Providers never retry; a failed call raises and the caller decides.
"""

import logging
import re
import threading
from typing import Optional, Protocol, runtime_checkable

import httpx
import numpy as np

from .errors import EmbeddingCallError, ProviderUnavailable
from .models import CodeUnit, EmbeddingVector


logger = logging.getLogger(__name__)

# Default Ollama settings
OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"
DEFAULT_OLLAMA_DIMENSION = 768

# Default OpenAI settings
OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
DEFAULT_OPENAI_DIMENSION = 1536

DEFAULT_TIMEOUT = 30.0

MAX_TEXT_CHARS = 512 * 4  # ~512 tokens


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Capability contract for embedding backends."""

    def generate_embedding(self, text: str) -> EmbeddingVector:
        """Embed text. Raises EmbeddingCallError or ProviderUnavailable."""
        ...

    def dimension(self) -> int:
        """Declared vector length."""
        ...

    def name(self) -> str:
        """Identifier of the embedding space."""
        ...


class LocalProvider:
    """
    Embedding generator using a local Ollama server.

    The server is probed once, before the first embedding call.
    """

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model: str = DEFAULT_OLLAMA_MODEL,
        dimension: int = DEFAULT_OLLAMA_DIMENSION,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            base_url: Ollama API base URL
            model: Ollama model name for embeddings
            dimension: Vector length the model produces
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (tests inject a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._dimension = dimension
        self._client = client or httpx.Client(timeout=timeout)
        self._lock = threading.Lock()
        self._alive: Optional[bool] = None

    def name(self) -> str:
        return f"ollama:{self.model}"

    def dimension(self) -> int:
        return self._dimension

    def is_available(self) -> bool:
        """Check if Ollama is reachable."""
        try:
            response = self._client.get(f"{self.base_url}/api/tags")
        except httpx.HTTPError as e:
            logger.debug("Ollama liveness probe failed: %s", e)
            return False
        return response.status_code == 200

    def _ensure_alive(self) -> None:
        with self._lock:
            if self._alive is None:
                self._alive = self.is_available()
                if not self._alive:
                    logger.info("Ollama not reachable at %s", self.base_url)
            alive = self._alive
        if not alive:
            raise ProviderUnavailable(f"Ollama not reachable at {self.base_url}")

    def generate_embedding(self, text: str) -> EmbeddingVector:
        """Generate an embedding using Ollama."""
        self._ensure_alive()

        data = _post_json(
            self._client,
            f"{self.base_url}/api/embeddings",
            {"model": self.model, "prompt": text},
            backend="ollama",
        )
        if not isinstance(data, dict):
            raise EmbeddingCallError("ollama returned a malformed response")

        return _to_vector(data.get("embedding"), self.name(), self._dimension)

    def close(self) -> None:
        self._client.close()


class RemoteProvider:
    """
    Embedding generator using the OpenAI API.

    Without an API key the provider is unconfigured and every call raises
    ProviderUnavailable.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_OPENAI_MODEL,
        dimension: int = DEFAULT_OPENAI_DIMENSION,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key or None
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._dimension = dimension
        self._client = client or httpx.Client(timeout=timeout)

    def name(self) -> str:
        return f"openai:{self.model}"

    def dimension(self) -> int:
        return self._dimension

    def is_configured(self) -> bool:
        return self.api_key is not None

    def generate_embedding(self, text: str) -> EmbeddingVector:
        """Generate an embedding using OpenAI."""
        if not self.is_configured():
            raise ProviderUnavailable("OpenAI API key not configured")

        data = _post_json(
            self._client,
            f"{self.base_url}/embeddings",
            {"input": text, "model": self.model},
            backend="openai",
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

        try:
            values = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError):
            raise EmbeddingCallError("openai returned no embedding")

        return _to_vector(values, self.name(), self._dimension)

    def close(self) -> None:
        self._client.close()


class FailoverState:
    """
    Which backend a HybridProvider may use, shared by its workers.

    All reads and writes go through one lock, so exactly one worker
    observes the Local -> Remote transition.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._local_usable = True
        self.failure_reason: Optional[str] = None

    @property
    def local_usable(self) -> bool:
        with self._lock:
            return self._local_usable

    def mark_local_failed(self, reason: str) -> bool:
        """Disable Local. Returns True only for the call that disabled it."""
        with self._lock:
            if not self._local_usable:
                return False
            self._local_usable = False
            self.failure_reason = reason
            return True

    def reset(self) -> None:
        with self._lock:
            self._local_usable = True
            self.failure_reason = None


class HybridProvider:
    """Tries Local first, falls back to Remote for the rest of the session."""

    def __init__(self, local: LocalProvider, remote: Optional[RemoteProvider] = None):
        self.local = local
        self.remote = remote
        self.state = FailoverState()

    def _remote_ready(self) -> bool:
        return self.remote is not None and self.remote.is_configured()

    def active_backend(self):
        """Backend the next call will use, or None."""
        if self.state.local_usable:
            return self.local
        if self._remote_ready():
            return self.remote
        return None

    def generate_embedding(self, text: str) -> EmbeddingVector:
        """Generate an embedding using the best available backend."""
        if self.state.local_usable:
            try:
                return self.local.generate_embedding(text)
            except (EmbeddingCallError, ProviderUnavailable) as e:
                if self.state.mark_local_failed(str(e)):
                    fallback = self.remote.name() if self._remote_ready() else "no backend"
                    logger.warning(
                        "Local embedding backend failed (%s); using %s for the rest of this session",
                        e, fallback,
                    )

        if self._remote_ready():
            return self.remote.generate_embedding(text)

        raise ProviderUnavailable(
            "no embedding provider available (local backend down, remote not configured)"
        )

    def dimension(self) -> int:
        backend = self.active_backend()
        return backend.dimension() if backend else self.local.dimension()

    def name(self) -> str:
        backend = self.active_backend()
        return backend.name() if backend else "none"

    def reset(self) -> None:
        """Start a new session: Local is eligible again."""
        self.state.reset()

    def close(self) -> None:
        self.local.close()
        if self.remote is not None:
            self.remote.close()


def create_provider(settings) -> EmbeddingProvider:
    """Build the provider named by settings.provider."""
    local = LocalProvider(
        base_url=settings.ollama_url,
        model=settings.ollama_model,
        dimension=settings.ollama_dimension,
        timeout=settings.timeout,
    )
    remote = RemoteProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        dimension=settings.openai_dimension,
        timeout=settings.timeout,
    )

    if settings.provider == "local":
        remote.close()
        return local
    if settings.provider == "remote":
        local.close()
        return remote
    return HybridProvider(local, remote)


def prepare_unit_text(unit: CodeUnit) -> str:
    """
    Prepare a code unit for embedding.

    The unit's own name is masked so renamed copies embed alike.
    """
    header = f"# {unit.language} {unit.kind}"
    code = _normalize_code(unit.content)
    if unit.kind != "file":
        code = re.sub(rf"\b{re.escape(unit.short_name)}\b", "fn", code)
    return f"{header}\n{code}"


def _normalize_code(code: str) -> str:
    """Normalize code for better embedding quality."""
    lines = [line.rstrip() for line in code.split("\n")]

    # Collapse runs of blank lines
    normalized = []
    prev_blank = False
    for line in lines:
        is_blank = len(line.strip()) == 0
        if is_blank and prev_blank:
            continue
        normalized.append(line)
        prev_blank = is_blank

    result = "\n".join(normalized).strip("\n")

    if len(result) > MAX_TEXT_CHARS:
        result = result[:MAX_TEXT_CHARS] + "\n# ... (truncated)"

    return result


def _post_json(client: httpx.Client, url: str, payload: dict, backend: str, headers=None):
    try:
        response = client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
        raise EmbeddingCallError(f"{backend} request timed out: {e}") from e
    except httpx.HTTPError as e:
        raise EmbeddingCallError(f"{backend} request failed: {e}") from e

    if response.status_code != 200:
        raise EmbeddingCallError(
            f"{backend} returned status {response.status_code}: {response.text[:200]}"
        )

    try:
        return response.json()
    except ValueError as e:
        raise EmbeddingCallError(f"{backend} returned invalid JSON: {e}") from e


def _to_vector(values, provider_name: str, dimension: int) -> EmbeddingVector:
    """Validate a raw embedding; never pad, truncate or zero-fill."""
    if not isinstance(values, list) or not values:
        raise EmbeddingCallError(f"{provider_name} returned empty embedding")

    try:
        array = np.asarray(values, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise EmbeddingCallError(f"{provider_name} returned non-numeric embedding") from e

    if array.ndim != 1:
        raise EmbeddingCallError(f"{provider_name} returned a nested embedding")
    if array.shape[0] != dimension:
        raise EmbeddingCallError(
            f"{provider_name} returned {array.shape[0]} values, expected {dimension}"
        )
    if not np.all(np.isfinite(array)):
        raise EmbeddingCallError(f"{provider_name} returned non-finite values")

    return EmbeddingVector(
        unit_id="",
        provider_name=provider_name,
        dimension=dimension,
        values=array,
    )
