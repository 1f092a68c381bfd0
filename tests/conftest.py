"""
Shared fakes for the pipeline tests: in-memory stand-ins for Postgres, Redis,
the gateway and the chat model. No network access is needed.
"""
import math
from typing import Dict, List, Optional

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.messages import AIMessage
from langchain_core.runnables import RunnableLambda

from persona_chat.exception.custom_exception import VectorStoreError
from persona_chat.src.document_chat.embeddings import EmbeddingClient
from persona_chat.src.document_chat.persona_metadata import PersonaMetadataCache
from persona_chat.src.document_chat.rag_chain import PersonaRagChain
from persona_chat.src.document_ingestion.chunker import PersonaChunker
from persona_chat.src.document_ingestion.data_ingestion import IngestionOrchestrator
from persona_chat.src.document_ingestion.document_loader import DocumentLoader
from persona_chat.types import RetrievedChunk

DIM = 768


def _cosine(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(y * y for y in b))
    return dot / (na * nb) if na and nb else 0.0


class InMemoryVectorStore:
    """Mirrors VectorStoreGateway: exact persona filter, fingerprint claims."""

    def __init__(self):
        self.records = []
        self.claims = set()
        self.fail_upsert = False
        self.upsert_calls = 0

    async def upsert(self, records, sources=()):
        self.upsert_calls += 1
        if self.fail_upsert:
            raise VectorStoreError("database unavailable")
        if not records:
            return 0
        persona_key = records[0].chunk.persona_key
        claimed = set()
        for src in sources:
            if (persona_key, src.fingerprint) not in self.claims:
                self.claims.add((persona_key, src.fingerprint))
                claimed.add(src.fingerprint)
        rows = [
            r
            for r in records
            if r.chunk.fingerprint is None or r.chunk.fingerprint in claimed
        ]
        self.records.extend(rows)
        return len(rows)

    async def similarity_search(self, vector, persona_key, k=5):
        scoped = [r for r in self.records if r.chunk.persona_key == str(persona_key)]
        scored = sorted(
            ((_cosine(vector, r.embedding), r) for r in scoped),
            key=lambda pair: pair[0],
            reverse=True,
        )[:k]
        return [
            RetrievedChunk(
                text=r.chunk.text,
                source=r.chunk.source,
                persona_key=r.chunk.persona_key,
                score=score,
                chunk_hash=r.chunk.chunk_hash,
            )
            for score, r in scored
        ]

    async def existing_fingerprints(self, persona_key, fingerprints):
        return {fp for (pk, fp) in self.claims if pk == str(persona_key) and fp in fingerprints}

    async def delete_persona(self, persona_key):
        before = len(self.records)
        self.records = [r for r in self.records if r.chunk.persona_key != str(persona_key)]
        self.claims = {c for c in self.claims if c[0] != str(persona_key)}
        return before - len(self.records)


class FakeCacheStore:
    def __init__(self):
        self.data: Dict[str, str] = {}
        self.get_calls = 0
        self.fail_get = False
        self.fail_set = False

    async def get(self, persona_key):
        self.get_calls += 1
        if self.fail_get:
            raise ConnectionError("redis down")
        return self.data.get(persona_key)

    async def set(self, persona_key, value):
        if self.fail_set:
            raise ConnectionError("redis down")
        self.data[persona_key] = value

    async def delete(self, persona_key):
        self.data.pop(persona_key, None)


class FakeRecordStore:
    def __init__(self, uris: Optional[Dict[str, str]] = None):
        self.uris = uris or {}
        self.calls = 0

    async def get_metadata_uri(self, token_id):
        self.calls += 1
        return self.uris.get(str(token_id))


class FakeFetcher:
    def __init__(self, documents: Optional[Dict[str, object]] = None):
        self.documents = documents or {}
        self.calls = 0

    async def fetch_json(self, locator):
        self.calls += 1
        return self.documents[locator]


class RecordingLLM:
    """Chat model stand-in that keeps every rendered prompt."""

    def __init__(self, reply=None):
        self.prompts: List[str] = []
        self.reply = reply

    def _respond(self, prompt_value):
        text = prompt_value.to_string()
        self.prompts.append(text)
        if callable(self.reply):
            return AIMessage(content=self.reply(text))
        return AIMessage(content=self.reply or "I don't have that information.")

    def as_runnable(self):
        return RunnableLambda(lambda prompt_value: self._respond(prompt_value))


PERSONA_DOC = {
    "name": "Ada",
    "properties": {
        "personalData": {
            "bio": "A painter from Lisbon.",
            "background": "Studied fine arts.",
            "interests": ["painting", "sailing"],
            "goals": [],
            "personalityTraits": ["curious", "warm"],
        }
    },
}


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def embedder():
    return EmbeddingClient(DeterministicFakeEmbedding(size=DIM), dimension=DIM)


@pytest.fixture
def metadata_cache():
    return PersonaMetadataCache(
        cache_store=FakeCacheStore(),
        record_store=FakeRecordStore({"42": "ipfs://cid-42", "7": "ipfs://cid-7"}),
        fetcher=FakeFetcher({"ipfs://cid-42": PERSONA_DOC, "ipfs://cid-7": PERSONA_DOC}),
    )


@pytest.fixture
def ingestion(embedder, vector_store):
    return IngestionOrchestrator(
        loader=DocumentLoader(),
        chunker=PersonaChunker(),
        embedder=embedder,
        vector_store=vector_store,
    )


@pytest.fixture
def make_chain(metadata_cache, embedder, vector_store):
    def _make(llm: RecordingLLM, **kwargs):
        return PersonaRagChain(
            metadata_cache=metadata_cache,
            embedder=embedder,
            vector_store=vector_store,
            llm=llm.as_runnable(),
            **kwargs,
        )

    return _make
