from typing import Iterable, List, Sequence, Set

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from persona_chat.exception.custom_exception import VectorStoreError
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.types import PersonaKey, RetrievedChunk, SourceFile, VectorRecord

from .models import PersonaEmbedding, PersonaVector


def _clean(text: str) -> str:
    # postgres text columns reject NUL bytes
    return text.replace("\x00", "")


def _token_id(persona_key: str) -> str:
    return PersonaKey.parse(persona_key).token_id


class VectorStoreGateway:
    """
    Persona-scoped vector storage on Postgres + pgvector.

    Every read is filtered by exact `persona_key`; there is no code path that
    searches across personas.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = 50,
        model_name: str = "",
        embedding_dim: int = 768,
    ):
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.model_name = model_name
        self.embedding_dim = embedding_dim

    async def upsert(
        self,
        records: Sequence[VectorRecord],
        sources: Iterable[SourceFile] = (),
    ) -> int:
        """
        Write `records` (and claim the per-file fingerprints in `sources`) in a
        single transaction. Returns the number of chunk rows inserted.

        A fingerprint that another writer already claimed keeps its chunks out,
        so a concurrent duplicate upload cannot double-insert.
        """
        if not records:
            return 0

        persona_key = records[0].chunk.persona_key
        sources = list(sources)
        inserted = 0

        try:
            async with self.session_factory() as db:
                async with db.begin():
                    claimed: Set[str] = set()
                    if sources:
                        stmt = (
                            pg_insert(PersonaEmbedding.__table__)
                            .values(
                                [
                                    {
                                        "token_id": _token_id(persona_key),
                                        "persona_key": persona_key,
                                        "fingerprint": src.fingerprint,
                                        "model": self.model_name,
                                        "embedding_dim": self.embedding_dim,
                                        "metadata": {
                                            "fileName": src.name,
                                            "fileSize": src.size,
                                            "mimeType": src.mime_type,
                                        },
                                    }
                                    for src in sources
                                ]
                            )
                            .on_conflict_do_nothing(
                                index_elements=["persona_key", "fingerprint"]
                            )
                            .returning(PersonaEmbedding.__table__.c.fingerprint)
                        )
                        out = await db.execute(stmt)
                        claimed = set(out.scalars().all())

                    rows = [
                        r
                        for r in records
                        if r.chunk.fingerprint is None or r.chunk.fingerprint in claimed
                    ]

                    for start in range(0, len(rows), self.batch_size):
                        batch = rows[start : start + self.batch_size]
                        db.add_all(
                            [
                                PersonaVector(
                                    persona_key=r.chunk.persona_key,
                                    token_id=_token_id(r.chunk.persona_key),
                                    source=_clean(r.chunk.source),
                                    content=_clean(r.chunk.text),
                                    chunk_index=r.chunk.chunk_index,
                                    chunk_hash=r.chunk.chunk_hash,
                                    fingerprint=r.chunk.fingerprint,
                                    embedding=r.embedding,
                                    metadata_={
                                        "source": _clean(r.chunk.source),
                                        "chunkIndex": r.chunk.chunk_index,
                                        "chunkSize": r.chunk.chunk_size,
                                        "chunkOverlap": r.chunk.chunk_overlap,
                                    },
                                )
                                for r in batch
                            ]
                        )
                        await db.flush()
                        inserted += len(batch)
                        log.debug(
                            "Vector batch flushed | persona_key=%s | batch_start=%d | size=%d",
                            persona_key,
                            start,
                            len(batch),
                        )
        except Exception as e:
            log.error("Vector upsert failed | persona_key=%s | error=%s", persona_key, str(e))
            raise VectorStoreError("Failed to store embeddings", e) from e

        log.info(
            "Vector upsert committed | persona_key=%s | inserted=%d | files_claimed=%d",
            persona_key,
            inserted,
            len(claimed),
        )
        return inserted

    async def similarity_search(
        self, vector: List[float], persona_key: str, k: int = 5
    ) -> List[RetrievedChunk]:
        distance = PersonaVector.embedding.cosine_distance(vector).label("distance")
        stmt = (
            select(PersonaVector, distance)
            .where(PersonaVector.persona_key == str(persona_key))
            .order_by(distance)
            .limit(k)
        )
        try:
            async with self.session_factory() as db:
                out = await db.execute(stmt)
                rows = out.all()
        except Exception as e:
            log.error("Similarity search failed | persona_key=%s | error=%s", persona_key, str(e))
            raise VectorStoreError("Similarity search failed", e) from e

        chunks = [
            RetrievedChunk(
                text=row.content,
                source=row.source,
                persona_key=row.persona_key,
                score=1.0 - float(dist),
                chunk_hash=row.chunk_hash,
            )
            for row, dist in rows
        ]
        log.info("Similarity search | persona_key=%s | k=%d | hits=%d", persona_key, k, len(chunks))
        return chunks

    async def existing_fingerprints(
        self, persona_key: str, fingerprints: Iterable[str]
    ) -> Set[str]:
        fingerprints = list(fingerprints)
        if not fingerprints:
            return set()
        stmt = select(PersonaEmbedding.fingerprint).where(
            PersonaEmbedding.persona_key == str(persona_key),
            PersonaEmbedding.fingerprint.in_(fingerprints),
        )
        try:
            async with self.session_factory() as db:
                out = await db.execute(stmt)
                return set(out.scalars().all())
        except Exception as e:
            log.error("Fingerprint lookup failed | persona_key=%s | error=%s", persona_key, str(e))
            raise VectorStoreError("Failed to look up existing files", e) from e

    async def delete_persona(self, persona_key: str) -> int:
        """Drop every chunk and fingerprint claim for one persona."""
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    out = await db.execute(
                        delete(PersonaVector).where(PersonaVector.persona_key == str(persona_key))
                    )
                    await db.execute(
                        delete(PersonaEmbedding).where(
                            PersonaEmbedding.persona_key == str(persona_key)
                        )
                    )
        except Exception as e:
            log.error("Persona delete failed | persona_key=%s | error=%s", persona_key, str(e))
            raise VectorStoreError("Failed to delete persona vectors", e) from e

        log.info("Persona vectors deleted | persona_key=%s | rows=%d", persona_key, out.rowcount)
        return out.rowcount
