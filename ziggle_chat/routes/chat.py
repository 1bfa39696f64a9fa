from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from ..config import AppSettings
from ..dependencies import get_chat_store, get_orchestrator, get_session_id, get_settings
from ..exceptions import QuestionLimitExceededError
from ..orchestration.orchestrator import ChatOrchestrator
from ..persistence import ChatStore
from ..schemas import ChatMessage, ChatMessageInput, ChatRequest, MessageRole, PaginatedMessages

router = APIRouter(prefix="/api/v1/widget/messages", tags=["widget-messages"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _ensure_question_quota(store: ChatStore, session_id: str, settings: AppSettings) -> None:
    count = await store.get_user_message_count(session_id)
    if count >= settings.max_questions_per_session:
        raise QuestionLimitExceededError(settings.max_questions_per_session)


@router.get("", response_model=PaginatedMessages)
async def list_messages(
    cursor: Optional[str] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    session_id: str = Depends(get_session_id),
    store: ChatStore = Depends(get_chat_store),
) -> PaginatedMessages:
    page = await store.get_messages(session_id, cursor=cursor, limit=limit)
    return PaginatedMessages(**page)


@router.post("", response_model=ChatMessage, status_code=201)
async def create_message(
    body: ChatMessageInput,
    session_id: str = Depends(get_session_id),
    store: ChatStore = Depends(get_chat_store),
    settings: AppSettings = Depends(get_settings),
) -> ChatMessage:
    if body.role == MessageRole.USER:
        await _ensure_question_quota(store, session_id, settings)
    message = await store.create_message(session_id, body.role.value, body.content, metadata=body.metadata)
    return ChatMessage(**message)


@router.post("/chat/stream")
async def chat_stream(
    body: ChatRequest,
    session_id: str = Depends(get_session_id),
    store: ChatStore = Depends(get_chat_store),
    settings: AppSettings = Depends(get_settings),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    """
    Answer a widget question as server-sent events: content deltas, then an
    optional resources frame, then ``[DONE]``.
    """
    await _ensure_question_quota(store, session_id, settings)
    stream = orchestrator.handle_streaming_response(session_id, body.question)
    return StreamingResponse(stream, media_type="text/event-stream", headers=SSE_HEADERS)
