from __future__ import annotations

from typing import AsyncIterator, Sequence

from persona_chat.exception.custom_exception import InvalidInputError
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.src.document_chat.rag_chain import PersonaRagChain
from persona_chat.types import ChatResponse, ConversationTurn, PersonaKey


class ChatOrchestrator:
    """Validates a chat request and hands it to the RAG chain."""

    def __init__(self, rag_chain: PersonaRagChain, max_question_chars: int = 1000):
        self.rag_chain = rag_chain
        self.max_question_chars = max_question_chars

    def _validate(self, question: str, persona_key) -> tuple[str, PersonaKey]:
        question = (question or "").strip()
        if not question:
            raise InvalidInputError("Question is required")
        if len(question) > self.max_question_chars:
            raise InvalidInputError(
                f"Question exceeds {self.max_question_chars} characters"
            )
        return question, PersonaKey.parse(persona_key)

    async def chat(
        self,
        question: str,
        persona_key,
        history: Sequence[ConversationTurn] = (),
    ) -> ChatResponse:
        question, key = self._validate(question, persona_key)
        log.info("Chat request | persona_key=%s | history_turns=%d", key, len(history))

        answer, chunks = await self.rag_chain.answer_with_sources(question, key, history)

        log.info("Chat completed | persona_key=%s", key)
        return ChatResponse(
            answer=answer,
            persona_key=str(key),
            meta={
                "retrieved": len(chunks),
                "sources": sorted({c.source for c in chunks}),
            },
        )

    async def stream(
        self,
        question: str,
        persona_key,
        history: Sequence[ConversationTurn] = (),
    ) -> AsyncIterator[str]:
        question, key = self._validate(question, persona_key)
        log.info("Streaming chat request | persona_key=%s", key)
        return self.rag_chain.astream_answer(question, key, history)
