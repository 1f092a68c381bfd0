from datetime import datetime
from typing import Any, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    TIMESTAMP,
    BigInteger,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from persona_chat.utils.config_loader import load_config

# same value EmbeddingClient checks every vector against
EMBEDDING_DIM = int(load_config().get("embedding_model", {}).get("dimension", 768))


class Base(DeclarativeBase):
    pass


class PersonaVector(Base):
    """One embedded chunk; partitioned by persona_key."""

    __tablename__ = "persona_vectors"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    persona_key: Mapped[str] = mapped_column(String, index=True)
    token_id: Mapped[str] = mapped_column(String, index=True)
    source: Mapped[str] = mapped_column(String)
    content: Mapped[str] = mapped_column(Text)
    chunk_index: Mapped[int] = mapped_column(Integer, default=0)
    chunk_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    fingerprint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    embedding = mapped_column(Vector(EMBEDDING_DIM))
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, server_default=func.now())


class PersonaEmbedding(Base):
    """
    One row per ingested file. The unique (persona_key, fingerprint) pair is
    what makes re-uploads idempotent under concurrency.
    """

    __tablename__ = "persona_embeddings"
    __table_args__ = (
        UniqueConstraint("persona_key", "fingerprint", name="uq_persona_fingerprint"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    token_id: Mapped[str] = mapped_column(String, index=True)
    persona_key: Mapped[str] = mapped_column(String, index=True)
    fingerprint: Mapped[str] = mapped_column(String(64))
    model: Mapped[str] = mapped_column(String)
    embedding_dim: Mapped[int] = mapped_column(Integer)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONB, default=dict)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, server_default=func.now())


class Nft(Base):
    """Durable pointer from a minted token to its pinned metadata document."""

    __tablename__ = "nfts"

    token_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    metadata_uri: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    pinata_cid: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    wallet_address: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP, server_default=func.now())
