from __future__ import annotations

import asyncio
from typing import List

from langchain_core.embeddings import Embeddings

from persona_chat.exception.custom_exception import (
    ModelProviderError,
    UpstreamTimeoutError,
    classify_provider_error,
)
from persona_chat.logger import GLOBAL_LOGGER as log


class EmbeddingClient:
    """
    Text -> fixed-dimension vector, on top of a LangChain `Embeddings`.

    Construct it through `ModelLoader.load_embeddings()` so a missing
    credential fails at startup instead of on the first request.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        dimension: int = 768,
        batch_size: int = 100,
        timeout: float = 30.0,
    ):
        self.embeddings = embeddings
        self.dimension = dimension
        self.batch_size = batch_size
        self.timeout = timeout

    def _check_dimension(self, vector: List[float]) -> List[float]:
        if len(vector) != self.dimension:
            raise ModelProviderError(
                f"Embedding dimension mismatch: got {len(vector)}, expected {self.dimension}"
            )
        return [float(v) for v in vector]

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                out = await asyncio.wait_for(
                    self.embeddings.aembed_documents(batch), timeout=self.timeout
                )
            except asyncio.TimeoutError as e:
                log.error("Embedding batch timed out | batch_start=%d", start)
                raise UpstreamTimeoutError("Embedding request timed out", e) from e
            except Exception as e:
                log.error("Embedding batch failed | batch_start=%d | error=%s", start, str(e))
                raise classify_provider_error("Embedding request failed", e) from e

            if len(out) != len(batch):
                raise ModelProviderError(
                    f"Embedding provider returned {len(out)} vectors for {len(batch)} texts"
                )
            vectors.extend(self._check_dimension(v) for v in out)

        log.info("Embedded documents | count=%d | dim=%d", len(vectors), self.dimension)
        return vectors

    async def embed_query(self, text: str) -> List[float]:
        try:
            vector = await asyncio.wait_for(
                self.embeddings.aembed_query(text), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise UpstreamTimeoutError("Query embedding timed out", e) from e
        except Exception as e:
            log.error("Failed to embed query | error=%s", str(e))
            raise classify_provider_error("Query embedding failed", e) from e
        return self._check_dimension(vector)
