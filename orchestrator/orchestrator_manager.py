# orchestrator/orchestrator_manager.py
from __future__ import annotations

from typing import Optional

from db.database import build_engine, build_session_factory, init_db
from db.models import PersonaVector
from db.persona_repository import PersonaRecordRepository
from db.vector_repository import VectorStoreGateway
from persona_chat.exception.custom_exception import ConfigurationError
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.src.document_chat.chat import ChatOrchestrator
from persona_chat.src.document_chat.embeddings import EmbeddingClient
from persona_chat.src.document_chat.persona_metadata import PersonaMetadataCache
from persona_chat.src.document_chat.rag_chain import PersonaRagChain
from persona_chat.src.document_ingestion.chunker import PersonaChunker
from persona_chat.src.document_ingestion.data_ingestion import IngestionOrchestrator
from persona_chat.src.document_ingestion.document_loader import DocumentLoader
from persona_chat.types import PersonaKey
from persona_chat.utils.config_loader import load_config
from persona_chat.utils.ipfs_client import IpfsGatewayClient
from persona_chat.utils.model_loader import ModelLoader
from redis_cache.redis_client import PersonaMetadataCacheStore


def check_embedding_dimension(dimension: int) -> None:
    """The pgvector column is sized at import time; a config built later must agree with it."""
    column_dim = PersonaVector.embedding.type.dim
    if int(dimension) != column_dim:
        log.error(
            "Embedding dimension mismatch | configured=%s | column=%s", dimension, column_dim
        )
        raise ConfigurationError(
            f"embedding_model.dimension={dimension} does not match the "
            f"persona_vectors.embedding column ({column_dim})"
        )


class OrchestratorManager:
    """
    Builds every pipeline component once at startup and hands out the two
    orchestrators.

    Holds:
      - Postgres engine + session factory (vectors, fingerprints, nft records)
      - Redis metadata cache, IPFS gateway client
      - embedding client and chat model (via ModelLoader)
    """

    def __init__(self, config: Optional[dict] = None, model_loader: Optional[ModelLoader] = None):
        self.config = config if config is not None else load_config()
        self.model_loader = model_loader or ModelLoader(self.config)

        timeouts = self.config.get("timeouts", {})
        emb_cfg = self.config["embedding_model"]
        check_embedding_dimension(emb_cfg.get("dimension", 768))

        self.engine = build_engine(command_timeout=float(timeouts.get("db_command", 30)))
        self.session_factory = build_session_factory(self.engine)

        self.vector_store = VectorStoreGateway(
            self.session_factory,
            batch_size=self.config["vector_store"].get("upsert_batch_size", 50),
            model_name=emb_cfg["model_name"],
            embedding_dim=emb_cfg.get("dimension", 768),
        )
        self.cache_store = PersonaMetadataCacheStore()
        self.ipfs_client = IpfsGatewayClient(
            gateway_url=self.config.get("ipfs", {}).get("gateway_url"),
            timeout=float(timeouts.get("ipfs_fetch", 15)),
        )
        self.metadata_cache = PersonaMetadataCache(
            cache_store=self.cache_store,
            record_store=PersonaRecordRepository(self.session_factory),
            fetcher=self.ipfs_client,
        )

        self.embedder = EmbeddingClient(
            self.model_loader.load_embeddings(),
            dimension=emb_cfg.get("dimension", 768),
            batch_size=emb_cfg.get("batch_size", 100),
            timeout=float(timeouts.get("embeddings", 30)),
        )

        loader_cfg = self.config.get("loader", {})
        chunk_cfg = self.config.get("chunking", {})
        self.ingestion = IngestionOrchestrator(
            loader=DocumentLoader(
                binary_check_min_chars=loader_cfg.get("binary_check_min_chars", 100),
                max_non_ascii_ratio=loader_cfg.get("max_non_ascii_ratio", 0.5),
            ),
            chunker=PersonaChunker(
                chunk_size=chunk_cfg.get("chunk_size", 1000),
                chunk_overlap=chunk_cfg.get("chunk_overlap", 200),
                min_chars=chunk_cfg.get("min_chars", 20),
            ),
            embedder=self.embedder,
            vector_store=self.vector_store,
        )

        chat_cfg = self.config.get("chat", {})
        rag_chain = PersonaRagChain(
            metadata_cache=self.metadata_cache,
            embedder=self.embedder,
            vector_store=self.vector_store,
            llm=self.model_loader.load_llm("rag"),
            top_k=self.config.get("retriever", {}).get("top_k", 5),
            history_window=chat_cfg.get("history_window", 5),
            timeout=float(timeouts.get("chat_model", 60)),
        )
        self.chat = ChatOrchestrator(
            rag_chain, max_question_chars=chat_cfg.get("max_question_chars", 1000)
        )

        log.info("OrchestratorManager initialized")

    def persona_key(self, token_id) -> PersonaKey:
        prefix = self.config.get("persona", {}).get("key_prefix", "persona")
        return PersonaKey.from_token_id(token_id, prefix=prefix)

    async def startup(self) -> None:
        await init_db(self.engine)

    async def aclose(self) -> None:
        await self.ipfs_client.aclose()
        await self.cache_store.aclose()
        await self.engine.dispose()
        log.info("OrchestratorManager closed")
