from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One transcript entry."""
    id: int
    text: str = Field(..., min_length=1)
    sender: Literal["user", "assistant"]


class ChatOpening(BaseModel):
    """Returned when a chat session opens for a report."""
    session_id: str
    report_id: str
    messages: list[ChatMessage]
    suggestions: list[str]
