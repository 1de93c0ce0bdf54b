"""Report-grounded follow-up answers via Claude."""

import asyncio
import logging
import os
from functools import partial
from typing import Protocol

import anthropic

from app.errors import ServiceFailure
from app.models.chat import ChatMessage
from app.models.report import Report
from .prompts import build_chat_system

logger = logging.getLogger(__name__)

CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-haiku-4-5-20251001")
CHAT_MAX_TOKENS = int(os.getenv("CHAT_MAX_TOKENS", "400"))
CHAT_TIMEOUT_SECONDS = float(os.getenv("CHAT_TIMEOUT_SECONDS", "60"))
CHAT_HISTORY_TURNS = int(os.getenv("CHAT_HISTORY_TURNS", "10"))


class Assistant(Protocol):
    async def reply(self, question: str, report: Report, history: list[ChatMessage]) -> str: ...


def build_messages(question: str, history: list[ChatMessage], max_turns: int = CHAT_HISTORY_TURNS) -> list[dict]:
    """Prior answered turns (most recent ``max_turns`` pairs) followed by the question.

    The conversation must start with a user turn, so a leading assistant
    message (the locally synthesized greeting) is dropped.
    """
    turns = [
        {"role": "user" if m.sender == "user" else "assistant", "content": m.text}
        for m in history
    ]
    if max_turns <= 0:
        turns = []
    else:
        turns = turns[-2 * max_turns:]
    while turns and turns[0]["role"] != "user":
        turns.pop(0)
    return turns + [{"role": "user", "content": question}]


class ClaudeAssistant:
    """Stateless between calls: the report is resent as grounding every time."""

    def __init__(
        self,
        model: str = CLAUDE_MODEL,
        max_tokens: int = CHAT_MAX_TOKENS,
        timeout: float = CHAT_TIMEOUT_SECONDS,
        history_turns: int = CHAT_HISTORY_TURNS,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.history_turns = history_turns

    async def reply(self, question: str, report: Report, history: list[ChatMessage]) -> str:
        """Return the assistant's answer. Raises ``ServiceFailure``."""
        loop = asyncio.get_event_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, partial(self._create, question, report, history)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ServiceFailure(f"Chat timed out after {self.timeout:g}s") from exc

    def _create(self, question: str, report: Report, history: list[ChatMessage]) -> str:
        try:
            client = anthropic.Anthropic()
            message = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.3,
                system=build_chat_system(report),
                messages=build_messages(question, history, self.history_turns),
            )
        except anthropic.BadRequestError as exc:
            if "credit balance is too low" in str(exc).lower():
                raise ServiceFailure("No more credit") from exc
            raise ServiceFailure(f"Chat request rejected: {exc}") from exc
        except anthropic.AnthropicError as exc:
            raise ServiceFailure(f"Chat request failed: {exc}") from exc

        answer = "".join(
            block.text for block in message.content if isinstance(getattr(block, "text", None), str)
        ).strip()
        if not answer:
            raise ServiceFailure("Assistant returned an empty answer")
        logger.info("Chat answer (%d chars, emotion=%s)", len(answer), report.emotion)
        return answer
