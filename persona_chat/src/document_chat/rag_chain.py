from __future__ import annotations

import asyncio
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser

from persona_chat.exception.custom_exception import (
    ModelProviderError,
    UpstreamTimeoutError,
    classify_provider_error,
)
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.prompts.prompt_library import NO_CONTEXT_PLACEHOLDER, PROMPT_REGISTRY
from persona_chat.src.document_chat.embeddings import EmbeddingClient
from persona_chat.src.document_chat.persona_metadata import PersonaMetadataCache
from persona_chat.types import ConversationTurn, PersonaKey, RetrievedChunk

NO_HISTORY_PLACEHOLDER = "No previous messages."


def format_history(history: Sequence[ConversationTurn], window: int) -> str:
    """Last `window` turns, oldest first, as `User:` / `Persona:` lines."""
    recent = list(history)[-window:] if window > 0 else []
    lines = [
        f"{'User' if turn.role == 'user' else 'Persona'}: {turn.content}"
        for turn in recent
    ]
    return "\n".join(lines) if lines else NO_HISTORY_PLACEHOLDER


def format_context(chunks: Sequence[RetrievedChunk]) -> str:
    texts = [c.text.strip() for c in chunks if c.text and c.text.strip()]
    return "\n\n".join(texts) if texts else NO_CONTEXT_PLACEHOLDER


class PersonaRagChain:
    """
    Retrieval-augmented answer generation for one persona.

    Pipeline:
      1. Resolve persona attributes (cache-aside)
      2. Bound the conversation history
      3. Embed the question and retrieve persona-scoped chunks
      4. Render the grounded persona prompt
      5. prompt | llm | StrOutputParser()
    """

    def __init__(
        self,
        metadata_cache: PersonaMetadataCache,
        embedder: EmbeddingClient,
        vector_store,
        llm: BaseChatModel,
        top_k: int = 5,
        history_window: int = 5,
        timeout: float = 60.0,
    ):
        self.metadata_cache = metadata_cache
        self.embedder = embedder
        self.vector_store = vector_store
        self.llm = llm
        self.top_k = top_k
        self.history_window = history_window
        self.timeout = timeout

        self.prompt = PROMPT_REGISTRY["persona_qa"]
        self.chain = self.prompt | self.llm | StrOutputParser()

    async def _prepare(
        self,
        question: str,
        persona_key: PersonaKey,
        history: Sequence[ConversationTurn],
    ) -> Tuple[Dict[str, str], List[RetrievedChunk]]:
        attributes = await self.metadata_cache.get_persona_attributes(persona_key)
        history_block = format_history(history, self.history_window)

        query_vector = await self.embedder.embed_query(question)
        chunks = await self.vector_store.similarity_search(
            query_vector, str(persona_key), self.top_k
        )
        log.info(
            "Context retrieved | persona_key=%s | chunks=%d", persona_key, len(chunks)
        )

        inputs = {
            "persona": attributes.to_prompt_block(),
            "history": history_block,
            "context": format_context(chunks),
            "question": question,
        }
        return inputs, chunks

    async def assemble_prompt(
        self,
        question: str,
        persona_key: PersonaKey,
        history: Sequence[ConversationTurn] = (),
    ) -> str:
        inputs, _ = await self._prepare(question, persona_key, history)
        return self.prompt.invoke(inputs).to_string()

    async def answer_with_sources(
        self,
        question: str,
        persona_key: PersonaKey,
        history: Sequence[ConversationTurn] = (),
    ) -> Tuple[str, List[RetrievedChunk]]:
        inputs, chunks = await self._prepare(question, persona_key, history)

        try:
            answer = await asyncio.wait_for(self.chain.ainvoke(inputs), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            log.error("Chat model timed out | persona_key=%s", persona_key)
            raise UpstreamTimeoutError("Chat model request timed out", e) from e
        except Exception as e:
            log.error("Chat model failed | persona_key=%s | error=%s", persona_key, str(e))
            raise classify_provider_error("Chat model request failed", e) from e

        if not answer or not answer.strip():
            raise ModelProviderError("Chat model returned an empty response")

        return answer, chunks

    async def answer(
        self,
        question: str,
        persona_key: PersonaKey,
        history: Sequence[ConversationTurn] = (),
    ) -> str:
        answer, _ = await self.answer_with_sources(question, persona_key, history)
        return answer

    async def astream_answer(
        self,
        question: str,
        persona_key: PersonaKey,
        history: Sequence[ConversationTurn] = (),
    ) -> AsyncIterator[str]:
        """Same prompt as `answer`, yielded piece by piece as the model produces it."""
        inputs, _ = await self._prepare(question, persona_key, history)

        stream = self.chain.astream(inputs).__aiter__()
        while True:
            try:
                piece: Optional[str] = await asyncio.wait_for(
                    stream.__anext__(), timeout=self.timeout
                )
            except StopAsyncIteration:
                break
            except asyncio.TimeoutError as e:
                log.error("Chat model stream timed out | persona_key=%s", persona_key)
                raise UpstreamTimeoutError("Chat model stream timed out", e) from e
            except Exception as e:
                log.error("Chat model stream failed | persona_key=%s | error=%s", persona_key, str(e))
                raise classify_provider_error("Chat model request failed", e) from e
            if piece:
                yield piece
