"""
Data models shared by the ingestion and chat pipelines.

Plain dataclasses for the internal records, pydantic for the persona
metadata that arrives as untrusted JSON from content-addressed storage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from persona_chat.exception.custom_exception import PersonaKeyFormatError

DEFAULT_PERSONA_PREFIX = "persona"
NOT_SPECIFIED = "Not specified."


@dataclass(frozen=True)
class PersonaKey:
    """Partition key `prefix:tokenId` for every persona-scoped row."""

    prefix: str
    token_id: str

    @classmethod
    def from_token_id(cls, token_id, prefix: str = DEFAULT_PERSONA_PREFIX) -> "PersonaKey":
        token = str(token_id).strip() if token_id is not None else ""
        if not token:
            raise PersonaKeyFormatError("Token id is required to build a persona key")
        if ":" in token:
            raise PersonaKeyFormatError(f"Token id must not contain ':' | token_id={token}")
        return cls(prefix=prefix, token_id=token)

    @classmethod
    def parse(cls, raw) -> "PersonaKey":
        if isinstance(raw, PersonaKey):
            return raw
        if not isinstance(raw, str) or ":" not in raw:
            raise PersonaKeyFormatError(f"Invalid persona key format: {raw!r}")
        prefix, _, token_id = raw.partition(":")
        if not prefix.strip() or not token_id.strip() or ":" in token_id:
            raise PersonaKeyFormatError(f"Invalid persona key format: {raw!r}")
        return cls(prefix=prefix.strip(), token_id=token_id.strip())

    def __str__(self) -> str:
        return f"{self.prefix}:{self.token_id}"


@dataclass
class UploadedFile:
    """A file as received by the upload endpoint; never persisted as-is."""

    name: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ExtractedText:
    name: str
    text: str
    error: Optional[str] = None


@dataclass(frozen=True)
class DocumentChunk:
    text: str
    source: str
    persona_key: str
    chunk_index: int
    chunk_hash: Optional[str] = None
    fingerprint: Optional[str] = None
    chunk_size: int = 1000
    chunk_overlap: int = 200


@dataclass
class VectorRecord:
    """One chunk with its embedding, ready to be written to the vector store."""

    chunk: DocumentChunk
    embedding: List[float]


@dataclass
class SourceFile:
    """Per-file fingerprint record claimed alongside a vector upsert."""

    fingerprint: str
    name: str
    size: int
    mime_type: str


@dataclass
class RetrievedChunk:
    text: str
    source: str
    persona_key: str
    score: float
    chunk_hash: Optional[str] = None


@dataclass
class ConversationTurn:
    role: Literal["user", "assistant"]
    content: str


@dataclass
class ChatResponse:
    answer: str
    persona_key: str
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class IngestionResult:
    inserted_count: int
    new_files_processed: int
    skipped_files: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    message: str = ""


class PersonaAttributes(BaseModel):
    """Descriptive persona data taken from the pinned NFT metadata."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    bio: str = ""
    background: str = ""
    interests: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    personality_traits: List[str] = Field(
        default_factory=list, alias="personalityTraits"
    )

    @field_validator("bio", "background", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("interests", "goals", "personality_traits", mode="before")
    @classmethod
    def _split_listish(cls, value):
        # the mint form stores lists, older pins stored comma separated strings
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def to_prompt_block(self) -> str:
        def _text(value: str) -> str:
            return value.strip() or NOT_SPECIFIED

        def _items(values: List[str]) -> str:
            cleaned = [v.strip() for v in values if v and v.strip()]
            return ", ".join(cleaned) if cleaned else NOT_SPECIFIED

        return "\n".join(
            [
                f"Bio: {_text(self.bio)}",
                f"Background: {_text(self.background)}",
                f"Interests: {_items(self.interests)}",
                f"Goals: {_items(self.goals)}",
                f"Personality traits: {_items(self.personality_traits)}",
            ]
        )
