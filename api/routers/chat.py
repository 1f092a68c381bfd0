from typing import List, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import get_manager
from persona_chat.exception.custom_exception import InvalidInputError, PersonaChatException
from persona_chat.logger import GLOBAL_LOGGER as log
from persona_chat.types import ConversationTurn

router = APIRouter()

HISTORY_ROLES = ("user", "assistant")


class MessageIn(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token_id: Union[int, str] = Field(alias="tokenId")
    question: Optional[str] = None
    messages: Optional[List[MessageIn]] = None


class ChatResponse(BaseModel):
    answer: str


def _split_request(req: ChatRequest) -> tuple[str, List[ConversationTurn]]:
    """
    `question` wins when present; otherwise the last message is the question
    and everything before it is the history. Only user and assistant turns
    reach the prompt; system and tool messages are dropped.
    """
    turns = [
        ConversationTurn(m.role, m.content)
        for m in (req.messages or [])
        if m.role in HISTORY_ROLES
    ]

    if req.question is not None:
        # clients often echo the current question as the last message
        if turns and turns[-1].role == "user" and turns[-1].content.strip() == req.question.strip():
            turns = turns[:-1]
        return req.question, turns

    if not turns:
        raise InvalidInputError("Either question or a user message is required")

    *previous, last = turns
    if last.role != "user":
        raise InvalidInputError("The last message must come from the user")
    return last.content, previous


@router.post("/chat", response_model=ChatResponse)
async def chat(req: ChatRequest, manager=Depends(get_manager)):
    """
    Main chat endpoint.

    Pipeline:
      1. Resolve persona key from tokenId
      2. Split question / history
      3. ChatOrchestrator.chat(...) -> metadata, retrieval, grounded answer
    """
    key = manager.persona_key(req.token_id)
    question, history = _split_request(req)

    log.info("Chat request received | persona_key=%s", key)

    try:
        response = await manager.chat.chat(question, key, history)
    except PersonaChatException:
        raise
    except Exception as e:
        log.error("Chat execution failed | persona_key=%s | error=%s", key, str(e))
        raise PersonaChatException("Failed to generate a response", e) from e

    return ChatResponse(answer=response.answer)


@router.post("/chat/stream")
async def chat_stream(req: ChatRequest, manager=Depends(get_manager)):
    """Same contract as /chat, answer streamed as plain text."""
    key = manager.persona_key(req.token_id)
    question, history = _split_request(req)

    stream = await manager.chat.stream(question, key, history)

    # pull the first piece now so persona/retrieval errors still map to a status code
    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = ""

    async def body():
        if first:
            yield first
        async for piece in stream:
            yield piece

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")
