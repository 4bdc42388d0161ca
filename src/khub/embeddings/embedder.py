"""Text embedding using sentence-transformers."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import EmbeddingFailure

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingUsage:
    """Usage of one embedding call, for cost accounting."""
    model: str
    tokens: int
    cost_usd: float


def _estimate_tokens(texts: list[str]) -> int:
    return sum(max(1, len(t) // 4) for t in texts)


class Embedder:
    """Embeds chunk and query text with a local sentence-transformers model.

    An empty ``embedding_model`` leaves the embedder unconfigured; every call
    then raises EmbeddingFailure instead of trying to load a model.
    """

    def __init__(
        self,
        config: dict[str, Any],
        on_usage: Callable[[EmbeddingUsage], None] | None = None,
    ):
        self.model_name = config.get("embedding_model") or ""
        self.pricing = config.get("pricing", {}).get(self.model_name, {})
        self.on_usage = on_usage
        self._model = None
        if not self.configured:
            logger.warning("No embedding model configured; ingestion and search are disabled")

    @property
    def configured(self) -> bool:
        return bool(self.model_name)

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def _prefixed(self, texts: list[str], kind: str) -> list[str]:
        # e5 models expect "query: " / "passage: " prefixes
        if "e5" in self.model_name.lower():
            return [f"{kind}: {t}" for t in texts]
        return texts

    def _encode(self, texts: list[str], kind: str) -> list[list[float]]:
        if not self.configured:
            raise EmbeddingFailure("Embedding model not configured. Set embedding_model in config.")
        try:
            vectors = self.model.encode(self._prefixed(texts, kind), normalize_embeddings=True)
        except Exception as e:
            raise EmbeddingFailure(f"Embedding failed: {e}") from e
        self._report(texts)
        return [list(map(float, v)) for v in vectors]

    def _report(self, texts: list[str]) -> None:
        if self.on_usage is None:
            return
        tokens = _estimate_tokens(texts)
        cost = tokens / 1_000_000 * float(self.pricing.get("input", 0.0))
        self.on_usage(EmbeddingUsage(model=self.model_name, tokens=tokens, cost_usd=cost))

    def embed(self, text: str) -> list[float]:
        """Embed a search query."""
        return self._encode([text], "query")[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed document chunks in one call. Empty input returns []."""
        if not texts:
            return []
        return self._encode(texts, "passage")
