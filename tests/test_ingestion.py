"""
Tests for the ingestion orchestrator: dedup, filtering, failure policy
"""
import asyncio
from unittest.mock import patch

import pytest

from persona_chat.exception.custom_exception import InvalidInputError, VectorStoreError
from persona_chat.src.document_ingestion.data_ingestion import (
    NO_NEW_FILES_MESSAGE,
    NOTHING_TO_PROCESS_MESSAGE,
)
from persona_chat.types import UploadedFile
from persona_chat.utils.hashing import hash_bytes

BIO = "I grew up by the sea and spent my summers sailing small boats. " * 5


def _file(name, text):
    return UploadedFile(name=name, content=text.encode("utf-8"), mime_type="text/plain")


class TestIngestionOrchestrator:
    def test_new_file_is_chunked_embedded_and_stored(self, ingestion, vector_store):
        result = asyncio.run(ingestion.ingest([_file("bio.txt", BIO)], "p:42"))

        assert result.new_files_processed == 1
        assert result.inserted_count == len(vector_store.records) > 0
        assert result.errors == []
        stored = vector_store.records[0].chunk
        assert stored.persona_key == "p:42"
        assert stored.source == "bio.txt"
        assert stored.fingerprint == hash_bytes(BIO.encode("utf-8"))
        assert len(vector_store.records[0].embedding) == 768

    def test_reingest_same_bytes_is_a_noop(self, ingestion, vector_store):
        asyncio.run(ingestion.ingest([_file("bio.txt", BIO)], "p:42"))
        rows_after_first = len(vector_store.records)

        # same bytes under a different name are still the same file
        result = asyncio.run(ingestion.ingest([_file("renamed.txt", BIO)], "p:42"))

        assert result.inserted_count == 0
        assert result.new_files_processed == 0
        assert result.skipped_files == ["renamed.txt"]
        assert result.message == NO_NEW_FILES_MESSAGE
        assert len(vector_store.records) == rows_after_first
        assert vector_store.upsert_calls == 1

    def test_same_file_for_another_persona_is_ingested(self, ingestion, vector_store):
        asyncio.run(ingestion.ingest([_file("bio.txt", BIO)], "p:42"))
        result = asyncio.run(ingestion.ingest([_file("bio.txt", BIO)], "p:7"))

        assert result.new_files_processed == 1
        assert {r.chunk.persona_key for r in vector_store.records} == {"p:42", "p:7"}

    def test_duplicate_inside_one_batch_processed_once(self, ingestion):
        result = asyncio.run(
            ingestion.ingest([_file("a.txt", BIO), _file("b.txt", BIO)], "p:42")
        )

        assert result.new_files_processed == 1
        assert result.skipped_files == ["b.txt"]

    def test_concurrent_duplicate_uploads_store_once(self, ingestion, vector_store):
        async def both():
            return await asyncio.gather(
                ingestion.ingest([_file("a.txt", BIO)], "p:42"),
                ingestion.ingest([_file("a.txt", BIO)], "p:42"),
            )

        first, second = asyncio.run(both())

        chunks_per_copy = max(first.inserted_count, second.inserted_count)
        assert len(vector_store.records) == chunks_per_copy
        assert first.inserted_count + second.inserted_count == chunks_per_copy

    def test_binary_file_yields_nothing_to_process(self, ingestion, vector_store):
        binary = UploadedFile(name="photo.txt", content=bytes(range(128, 256)) * 4)

        result = asyncio.run(ingestion.ingest([binary], "p:42"))

        assert result.inserted_count == 0
        assert result.skipped_files == ["photo.txt"]
        assert result.message == NOTHING_TO_PROCESS_MESSAGE
        assert vector_store.upsert_calls == 0

    def test_too_small_file_is_skipped(self, ingestion):
        result = asyncio.run(ingestion.ingest([_file("tiny.txt", "hi")], "p:42"))

        assert result.inserted_count == 0
        assert result.skipped_files == ["tiny.txt"]

    def test_extraction_failure_does_not_abort_batch(self, ingestion):
        files = [
            UploadedFile(name="broken.pdf", content=b"%PDF-garbage"),
            _file("bio.txt", BIO),
        ]

        with patch(
            "persona_chat.src.document_ingestion.document_loader.PdfReader",
            side_effect=ValueError("corrupt xref table"),
        ):
            result = asyncio.run(ingestion.ingest(files, "p:42"))

        assert result.new_files_processed == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("broken.pdf:")

    def test_upsert_failure_aborts_call(self, ingestion, vector_store):
        vector_store.fail_upsert = True

        with pytest.raises(VectorStoreError):
            asyncio.run(ingestion.ingest([_file("bio.txt", BIO)], "p:42"))
        assert vector_store.records == []

    def test_no_files_is_invalid(self, ingestion):
        with pytest.raises(InvalidInputError):
            asyncio.run(ingestion.ingest([], "p:42"))

    def test_delete_persona_removes_rows(self, ingestion, vector_store):
        asyncio.run(ingestion.ingest([_file("bio.txt", BIO)], "p:42"))

        deleted = asyncio.run(ingestion.delete_persona("p:42"))

        assert deleted > 0
        assert vector_store.records == []
        # fingerprints are gone too, so the file can be ingested again
        result = asyncio.run(ingestion.ingest([_file("bio.txt", BIO)], "p:42"))
        assert result.new_files_processed == 1
