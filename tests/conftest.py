"""Shared fixtures: in-memory and SQLite report stores, fake model backends."""

import asyncio
import copy

import pytest
import pytest_asyncio

from app.errors import ServiceFailure
from app.models.dog import DogSubject
from app.models.report import Report
from app.services.database import create_tables
from app.services.kv_store import MemoryKeyValueStore, SqliteKeyValueStore
from app.services.report_store import ReportStore

REPORT_PAYLOAD = {
    "emotion": "anxious",
    "confidence": 82,
    "translation": "I'm not sure about that noise. Can we go somewhere quieter?",
    "bodyLanguage": {
        "tail": "low",
        "ears": "back",
        "posture": "tense",
        "eyes": "whale_eye",
        "mouth": "lip_lick",
    },
    "health": {
        "gait": "normal",
        "eyes": "clear",
        "breathing": "heavy",
        "skin": "healthy",
        "urgency": "yellow",
    },
    "tips": ["Move to a calmer room", "Offer a chew toy", "Watch for panting over the next hour"],
}


def make_report(**overrides) -> Report:
    """Valid report; nested overrides use dotted keys, e.g. ``**{"health.urgency": "red"}``."""
    payload = copy.deepcopy(REPORT_PAYLOAD)
    for key, value in overrides.items():
        target = payload
        *path, leaf = key.split(".")
        for part in path:
            target = target[part]
        target[leaf] = value
    return Report.model_validate(payload)


class FakeAnalyzer:
    """Returns a fixed report (or raises) after an optional delay."""

    def __init__(self, report: Report | None = None, error: Exception | None = None, delay: float = 0.0):
        self.report = report or make_report()
        self.error = error
        self.delay = delay
        self.calls: list[tuple] = []

    async def analyze(self, subject, media):
        self.calls.append((subject, media))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.report


class FakeAssistant:
    """Answers from a queue; an Exception entry is raised instead of returned."""

    def __init__(self, *answers):
        self.answers = list(answers) or ["Your dog seems a little stressed."]
        self.calls: list[dict] = []

    async def reply(self, question, report, history):
        self.calls.append({"question": question, "report": report, "history": list(history)})
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def sample_report() -> Report:
    return make_report()


@pytest.fixture
def golden() -> DogSubject:
    return DogSubject(breed="Golden Retriever", age_years=5)


@pytest.fixture
def memory_store() -> ReportStore:
    return ReportStore(MemoryKeyValueStore())


@pytest_asyncio.fixture
async def sqlite_store(tmp_path) -> ReportStore:
    """Report store on a throwaway SQLite file."""
    db_url = str(tmp_path / "pawsight_test.db")
    await create_tables(db_url)
    return ReportStore(SqliteKeyValueStore(db_url))


@pytest.fixture
def failing_service() -> ServiceFailure:
    return ServiceFailure("upstream 503")
