"""In-memory chat sessions grounded in one stored report."""

import itertools
import logging
import uuid
from collections import OrderedDict
from typing import Optional

from app.ai.assistant import Assistant
from app.errors import ChatBusy, InputRejected, NotFound, PawsightError, ServiceFailure
from app.models.chat import ChatMessage, ChatOpening
from app.models.report import Report
from app.services.report_store import ReportStore

logger = logging.getLogger(__name__)

MAX_SESSIONS = 100
MAX_QUESTION_CHARS = 2000


def greeting_for(report: Report) -> str:
    """Opening assistant message, synthesized locally."""
    return (
        "Hello! I'm your Pawsight assistant. I've reviewed the report for your "
        f'dog\'s "{report.emotion}" state. How can I help you understand it better?'
    )


def suggested_questions(report: Report) -> list[str]:
    """Starter questions derived from the emotion and the urgency level."""
    return [
        f'What does "{report.emotion}" mean?',
        "Give me some tips based on this report.",
        "Is there anything to worry about?",
        f'Tell me more about the "{report.health.urgency}" urgency.',
    ]


class ChatSession:
    """Linear transcript scoped to one report.

    The user message is appended before the exchange and retracted if the
    exchange fails, so the transcript only holds answered turns.
    """

    def __init__(self, report_id: str, report: Report, assistant: Assistant) -> None:
        self.id = uuid.uuid4().hex
        self.report_id = report_id
        self.report = report
        self.assistant = assistant
        self._ids = itertools.count(1)
        self._pending = False
        self.transcript: list[ChatMessage] = [self._message(greeting_for(report), "assistant")]
        self.suggestions = suggested_questions(report)

    @property
    def busy(self) -> bool:
        return self._pending

    def opening(self) -> ChatOpening:
        return ChatOpening(
            session_id=self.id,
            report_id=self.report_id,
            messages=list(self.transcript),
            suggestions=list(self.suggestions),
        )

    async def ask(self, question: str) -> ChatMessage:
        """Send one question and append the answer.

        Raises:
            InputRejected: blank or overlong question.
            ChatBusy: an exchange is already in flight.
            ServiceFailure: the assistant failed; the transcript is rolled back.
        """
        text = question.strip()
        if not text:
            raise InputRejected("Please type a question.", reason="empty")
        if len(text) > MAX_QUESTION_CHARS:
            raise InputRejected(f"Questions are limited to {MAX_QUESTION_CHARS} characters.", reason="too_long")
        if self._pending:
            raise ChatBusy("An answer is already being generated")

        history = list(self.transcript)
        user_message = self._message(text, "user")
        self.transcript.append(user_message)
        self._pending = True
        try:
            answer = await self.assistant.reply(text, self.report, history)
        except Exception as exc:
            self.transcript.remove(user_message)
            logger.warning("Chat exchange failed for report %s: %s", self.report_id, exc)
            if isinstance(exc, PawsightError):
                raise
            raise ServiceFailure(f"Assistant raised {type(exc).__name__}: {exc}") from exc
        finally:
            self._pending = False

        reply = self._message(answer, "assistant")
        self.transcript.append(reply)
        return reply

    def _message(self, text: str, sender: str) -> ChatMessage:
        return ChatMessage(id=next(self._ids), text=text, sender=sender)


class ChatSessionRegistry:
    """Sessions live only in memory; the oldest are dropped past ``max_sessions``."""

    def __init__(self, assistant: Assistant, max_sessions: int = MAX_SESSIONS) -> None:
        self.assistant = assistant
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, ChatSession]" = OrderedDict()

    async def open(self, store: ReportStore, report_id: str) -> ChatSession | NotFound:
        """Open a session if the report resolves; no model call is made."""
        report = await store.get(report_id)
        if isinstance(report, NotFound):
            return report
        session = ChatSession(report_id, report, self.assistant)
        self._sessions[session.id] = session
        while len(self._sessions) > self.max_sessions:
            self._sessions.popitem(last=False)
        logger.info("Chat session %s opened for report %s", session.id, report_id)
        return session

    def get(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)
