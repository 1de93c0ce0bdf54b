"""Chat grounded in a stored report."""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from app.api.dependencies import ChatSessionsDep, StoreDep, input_rejected, report_not_found
from app.errors import ChatBusy, InputRejected, NotFound, PawsightError
from app.models.chat import ChatMessage, ChatOpening

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

CHAT_FAILED_MESSAGE = "I'm having trouble responding right now. Please try again in a moment."


class QuestionRequest(BaseModel):
    question: str


class ChatTranscript(BaseModel):
    session_id: str
    report_id: str
    messages: list[ChatMessage]


@router.post("/reports/{report_id}/chat", response_model=ChatOpening, status_code=status.HTTP_201_CREATED)
async def open_chat(report_id: str, store: StoreDep, sessions: ChatSessionsDep) -> ChatOpening:
    """Open a chat session: greeting and suggested questions, no model call."""
    session = await sessions.open(store, report_id)
    if isinstance(session, NotFound):
        raise report_not_found(session)
    return session.opening()


@router.get("/chat/{session_id}", response_model=ChatTranscript)
async def get_transcript(session_id: str, sessions: ChatSessionsDep) -> ChatTranscript:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Chat session not found")
    return ChatTranscript(session_id=session.id, report_id=session.report_id, messages=session.transcript)


@router.post("/chat/{session_id}/messages", response_model=ChatMessage)
async def ask(session_id: str, body: QuestionRequest, sessions: ChatSessionsDep) -> ChatMessage:
    """
    One grounded exchange.

    On failure the question is removed from the transcript and ``502`` is
    returned; the session stays usable for a retry.
    """
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Chat session not found")
    try:
        return await session.ask(body.question)
    except InputRejected as exc:
        raise input_rejected(exc)
    except ChatBusy as exc:
        raise HTTPException(status_code=409, detail=exc.user_message)
    except PawsightError as exc:
        logger.warning("Chat %s failed (%s)", session_id, exc.kind)
        raise HTTPException(status_code=502, detail=CHAT_FAILED_MESSAGE)
