from __future__ import annotations

import asyncio
from typing import Dict, List, Sequence

from persona_chat.exception.custom_exception import InvalidInputError
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.src.document_chat.embeddings import EmbeddingClient
from persona_chat.src.document_ingestion.chunker import PersonaChunker
from persona_chat.src.document_ingestion.document_loader import DocumentLoader
from persona_chat.types import (
    DocumentChunk,
    IngestionResult,
    PersonaKey,
    SourceFile,
    UploadedFile,
    VectorRecord,
)
from persona_chat.utils.hashing import hash_bytes
from persona_chat.utils.thread_pool import run_sync

NO_NEW_FILES_MESSAGE = "No new files to process."
NOTHING_TO_PROCESS_MESSAGE = "No processable content found in the uploaded files."


class IngestionOrchestrator:
    """
    Ingest uploaded documents into the persona-scoped vector store.

    - fingerprint every file (SHA-256 of its bytes)
    - drop files already ingested for this persona and repeats inside the batch
    - extract text and chunk what is left (files loaded concurrently)
    - embed all chunks, then upsert chunks + fingerprints in one atomic call
    """

    def __init__(
        self,
        loader: DocumentLoader,
        chunker: PersonaChunker,
        embedder: EmbeddingClient,
        vector_store,
        fingerprint_registry=None,
    ):
        self.loader = loader
        self.chunker = chunker
        self.embedder = embedder
        self.vector_store = vector_store
        # the vector store doubles as the fingerprint registry unless told otherwise
        self.fingerprint_registry = fingerprint_registry or vector_store

    async def _fingerprint_all(self, files: Sequence[UploadedFile]) -> List[str]:
        return list(await asyncio.gather(*(run_sync(hash_bytes, f.content) for f in files)))

    async def ingest(self, files: Sequence[UploadedFile], persona_key) -> IngestionResult:
        if not files:
            raise InvalidInputError("No files provided")

        key = PersonaKey.parse(persona_key)
        log.info("Starting ingestion | persona_key=%s | files=%d", key, len(files))

        fingerprints = await self._fingerprint_all(files)
        existing = await self.fingerprint_registry.existing_fingerprints(
            str(key), set(fingerprints)
        )

        skipped: List[str] = []
        errors: List[str] = []
        pending: Dict[str, UploadedFile] = {}

        for file, fp in zip(files, fingerprints):
            if fp in existing:
                log.info("Skipping already ingested file | file=%s | fingerprint=%s", file.name, fp[:12])
                skipped.append(file.name)
            elif fp in pending:
                log.info("Skipping duplicate file in batch | file=%s", file.name)
                skipped.append(file.name)
            else:
                pending[fp] = file

        if not pending:
            log.info("No new files to process | persona_key=%s", key)
            return IngestionResult(
                inserted_count=0,
                new_files_processed=0,
                skipped_files=skipped,
                errors=errors,
                message=NO_NEW_FILES_MESSAGE,
            )

        extracted = await asyncio.gather(*(self.loader.load(f) for f in pending.values()))

        chunks: List[DocumentChunk] = []
        sources: List[SourceFile] = []

        for (fp, file), text in zip(pending.items(), extracted):
            if text.error:
                errors.append(f"{file.name}: {text.error}")
                continue

            file_chunks = self.chunker.split(text.text, file.name, str(key), fingerprint=fp)
            if not file_chunks:
                skipped.append(file.name)
                continue

            chunks.extend(file_chunks)
            sources.append(
                SourceFile(fingerprint=fp, name=file.name, size=file.size, mime_type=file.mime_type)
            )

        if not chunks:
            log.warning("Nothing to process after extraction | persona_key=%s", key)
            return IngestionResult(
                inserted_count=0,
                new_files_processed=0,
                skipped_files=skipped,
                errors=errors,
                message=NOTHING_TO_PROCESS_MESSAGE,
            )

        vectors = await self.embedder.embed_documents([c.text for c in chunks])
        records = [VectorRecord(chunk=c, embedding=v) for c, v in zip(chunks, vectors)]

        # all-or-nothing: a failure here propagates and nothing is reported as stored
        inserted = await self.vector_store.upsert(records, sources=sources)

        log.info(
            "Ingestion complete | persona_key=%s | files=%d | inserted=%d | skipped=%d | errors=%d",
            key,
            len(sources),
            inserted,
            len(skipped),
            len(errors),
        )
        return IngestionResult(
            inserted_count=inserted,
            new_files_processed=len(sources),
            skipped_files=skipped,
            errors=errors,
            message=f"Processed {len(sources)} new file(s) into {inserted} chunk(s).",
        )

    async def ingest_text(self, text: str, source: str, persona_key) -> IngestionResult:
        """Ingest an in-memory text snippet as if it were an uploaded `.txt` file."""
        file = UploadedFile(name=source, content=text.encode("utf-8"), mime_type="text/plain")
        return await self.ingest([file], persona_key)

    async def delete_persona(self, persona_key) -> int:
        key = PersonaKey.parse(persona_key)
        return await self.vector_store.delete_persona(str(key))
