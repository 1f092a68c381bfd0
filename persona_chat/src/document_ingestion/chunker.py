from __future__ import annotations

from typing import List, Optional

from langchain_text_splitters import RecursiveCharacterTextSplitter

from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.types import DocumentChunk
from persona_chat.utils.hashing import hash_str

# paragraphs -> lines -> sentences -> words -> characters
SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


class PersonaChunker:
    """Splits extracted text into overlapping chunks scoped to one persona."""

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200, min_chars: int = 20):
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.min_chars = min_chars

        self.text_splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separators=SEPARATORS,
        )

    def split(
        self,
        text: str,
        source: str,
        persona_key: str,
        fingerprint: Optional[str] = None,
    ) -> List[DocumentChunk]:
        if not text or len(text.strip()) < self.min_chars:
            log.warning("Skipping empty or too-small content | source=%s", source)
            return []

        parts = self.text_splitter.split_text(text)

        chunks = [
            DocumentChunk(
                text=part,
                source=source,
                persona_key=str(persona_key),
                chunk_index=idx,
                chunk_hash=hash_str(part),
                fingerprint=fingerprint,
                chunk_size=self.chunk_size,
                chunk_overlap=self.chunk_overlap,
            )
            for idx, part in enumerate(parts)
        ]

        log.info("Chunking complete | source=%s | chunks=%d", source, len(chunks))
        return chunks
