"""FastAPI integration tests.

Strategy:
- Fresh in-memory report store and registries per test, wired with ``configure_state``.
- Model backends are fakes; the object-storage upload goes through ``httpx.MockTransport``.
- Background attempts are awaited with ``AttemptRegistry.wait_idle`` before polling.
"""

from datetime import datetime, timezone

import httpx
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.errors import ServiceFailure, ValidationFailure
from app.media.upload import CloudinaryUploader
from app.services.kv_store import MemoryKeyValueStore
from app.services.report_store import ReportStore
from main import app, configure_state
from conftest import FakeAnalyzer, FakeAssistant, make_report

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 2048
GOLDEN_FORM = {"breed": "Golden Retriever", "age_years": "5"}


def _inline_uploader() -> CloudinaryUploader:
    return CloudinaryUploader(cloud_name="", upload_preset="")


def _wire(store, analyzer=None, assistant=None, uploader=None):
    configure_state(
        app,
        store=store,
        analyzer=analyzer or FakeAnalyzer(),
        assistant=assistant or FakeAssistant(),
        uploader=uploader or _inline_uploader(),
        progress_interval=0.01,
    )


@pytest_asyncio.fixture
async def client(memory_store):
    _wire(memory_store)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    await app.state.attempts.wait_idle()


async def _run_to_completion(client: AsyncClient, attempt_id: str) -> dict:
    await app.state.attempts.wait_idle()
    resp = await client.get(f"/analyses/{attempt_id}")
    assert resp.status_code == 200
    return resp.json()


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------

async def test_health(client: AsyncClient, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["chat_available"] is True
    assert body["upload_available"] is False


# ---------------------------------------------------------------------------
# /analyses
# ---------------------------------------------------------------------------

async def test_golden_retriever_photo_end_to_end(client: AsyncClient, memory_store):
    analyzer = FakeAnalyzer(report=make_report(emotion="happy", **{"health.urgency": "green"}))
    _wire(memory_store, analyzer=analyzer)

    resp = await client.post(
        "/analyses", data=GOLDEN_FORM, files={"file": ("buddy.jpg", JPEG, "image/jpeg")}
    )
    assert resp.status_code == 202
    started = resp.json()
    assert started["state"] in ("idle", "analyzing")

    status = await _run_to_completion(client, started["attempt_id"])
    assert status["state"] == "complete"
    assert status["error_kind"] is None

    report = (await client.get(f"/reports/{status['report_id']}")).json()
    assert report["emotion"] == "happy"
    assert report["health"]["urgency"] == "green"
    assert "bodyLanguage" in report

    [(subject, media)] = analyzer.calls
    assert subject.breed == "Golden Retriever"
    assert subject.age_years == 5
    assert media.kind == "inline" and media.mime_type == "image/jpeg"

    history = (await client.get("/reports")).json()
    assert [entry["id"] for entry in history] == [status["report_id"]]


async def test_upload_backend_path(client: AsyncClient, memory_store):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/demo/dog.mp4"})

    analyzer = FakeAnalyzer()
    uploader = CloudinaryUploader(
        cloud_name="demo", upload_preset="p", transport=httpx.MockTransport(handler)
    )
    _wire(memory_store, analyzer=analyzer, uploader=uploader)

    resp = await client.post(
        "/analyses", data=GOLDEN_FORM, files={"file": ("walk.mp4", b"\x00" * 4096, "video/mp4")}
    )
    assert resp.status_code == 202

    status = await _run_to_completion(client, resp.json()["attempt_id"])
    assert status["state"] == "complete"
    assert status["upload_progress"] == 100
    [(_, media)] = analyzer.calls
    assert str(media.url) == "https://res.cloudinary.com/demo/dog.mp4"


async def test_invalid_analysis_output_surfaces_error(client: AsyncClient, memory_store):
    _wire(memory_store, analyzer=FakeAnalyzer(error=ValidationFailure("emotion: 'excited'")))
    resp = await client.post("/analyses", data=GOLDEN_FORM, files={"file": ("a.jpg", JPEG, "image/jpeg")})

    status = await _run_to_completion(client, resp.json()["attempt_id"])
    assert status["state"] == "error"
    assert status["error_message"] == "We couldn't analyze your media. Please try again."
    assert status["report_id"] is None
    assert (await client.get("/reports")).json() == []


async def test_oversize_file_rejected(client: AsyncClient, monkeypatch):
    monkeypatch.setattr("app.api.routes.analyses.MAX_UPLOAD_BYTES", 1024)
    resp = await client.post("/analyses", data=GOLDEN_FORM, files={"file": ("big.jpg", JPEG, "image/jpeg")})
    assert resp.status_code == 413
    assert "too large" in resp.json()["detail"]


async def test_wrong_type_rejected(client: AsyncClient):
    resp = await client.post(
        "/analyses", data=GOLDEN_FORM, files={"file": ("notes.pdf", b"%PDF-1.7", "application/pdf")}
    )
    assert resp.status_code == 415


async def test_invalid_dog_details(client: AsyncClient):
    resp = await client.post(
        "/analyses",
        data={"breed": "Golden Retriever", "age_years": "41"},
        files={"file": ("a.jpg", JPEG, "image/jpeg")},
    )
    assert resp.status_code == 422


async def test_second_attempt_while_busy(client: AsyncClient, memory_store):
    _wire(memory_store, analyzer=FakeAnalyzer(delay=0.2))
    first = await client.post("/analyses", data=GOLDEN_FORM, files={"file": ("a.jpg", JPEG, "image/jpeg")})
    second = await client.post("/analyses", data=GOLDEN_FORM, files={"file": ("b.jpg", JPEG, "image/jpeg")})

    assert first.status_code == 202
    assert second.status_code == 409
    await app.state.attempts.wait_idle()


async def test_analysis_from_url(client: AsyncClient):
    resp = await client.post(
        "/analyses/from-url",
        json={**GOLDEN_FORM, "age_years": 5, "media_url": "https://cdn.example.com/dog.mp4", "mime_type": "video/mp4"},
    )
    assert resp.status_code == 202
    status = await _run_to_completion(client, resp.json()["attempt_id"])
    assert status["state"] == "complete"


async def test_analysis_from_url_wrong_type(client: AsyncClient):
    resp = await client.post(
        "/analyses/from-url",
        json={**GOLDEN_FORM, "age_years": 5, "media_url": "https://cdn.example.com/a.pdf", "mime_type": "application/pdf"},
    )
    assert resp.status_code == 415


async def test_unknown_attempt(client: AsyncClient):
    assert (await client.get("/analyses/nope")).status_code == 404


# ---------------------------------------------------------------------------
# /reports
# ---------------------------------------------------------------------------

async def test_unknown_report_redirects_to_history(client: AsyncClient):
    resp = await client.get("/reports/1700000000000")
    assert resp.status_code == 404
    assert resp.json()["detail"]["redirect"] == "/reports"


async def test_list_filter_and_delete(client: AsyncClient, memory_store):
    day_one = datetime(2026, 1, 1, tzinfo=timezone.utc)
    day_two = datetime(2026, 1, 2, tzinfo=timezone.utc)
    happy_id = await memory_store.put(make_report(emotion="happy"), created_at=day_one)
    pain_id = await memory_store.put(make_report(emotion="pain"), created_at=day_two)

    listed = (await client.get("/reports")).json()
    assert [e["id"] for e in listed] == [pain_id, happy_id]
    assert listed[0]["report"]["emotion"] == "pain"
    assert "created_at" in listed[0]

    filtered = (await client.get("/reports", params={"emotion": "happy"})).json()
    assert [e["id"] for e in filtered] == [happy_id]
    assert (await client.get("/reports", params={"emotion": "excited"})).status_code == 422

    assert (await client.delete(f"/reports/{happy_id}")).status_code == 204
    assert (await client.get(f"/reports/{happy_id}")).status_code == 404
    assert (await client.delete(f"/reports/{happy_id}")).status_code == 404


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

async def test_chat_open_ask_and_rollback(client: AsyncClient, memory_store, sample_report):
    assistant = FakeAssistant(ServiceFailure("overloaded"), "A yellow urgency means keep an eye on it.")
    _wire(memory_store, assistant=assistant)
    report_id = await memory_store.put(sample_report)

    opened = await client.post(f"/reports/{report_id}/chat")
    assert opened.status_code == 201
    opening = opened.json()
    assert '"anxious"' in opening["messages"][0]["text"]
    assert any('"yellow"' in s for s in opening["suggestions"])
    session_id = opening["session_id"]

    failed = await client.post(f"/chat/{session_id}/messages", json={"question": "Is it serious?"})
    assert failed.status_code == 502
    assert "trouble responding" in failed.json()["detail"]
    transcript = (await client.get(f"/chat/{session_id}")).json()
    assert len(transcript["messages"]) == 1

    answered = await client.post(f"/chat/{session_id}/messages", json={"question": "Is it serious?"})
    assert answered.status_code == 200
    assert answered.json()["sender"] == "assistant"
    transcript = (await client.get(f"/chat/{session_id}")).json()
    assert [m["sender"] for m in transcript["messages"]] == ["assistant", "user", "assistant"]


async def test_chat_blank_question(client: AsyncClient, memory_store, sample_report):
    report_id = await memory_store.put(sample_report)
    session_id = (await client.post(f"/reports/{report_id}/chat")).json()["session_id"]
    resp = await client.post(f"/chat/{session_id}/messages", json={"question": "   "})
    assert resp.status_code == 400


async def test_chat_for_unknown_report(client: AsyncClient):
    resp = await client.post("/reports/1700000000000/chat")
    assert resp.status_code == 404
    assert resp.json()["detail"]["redirect"] == "/reports"
    assert (await client.get("/chat/unknown")).status_code == 404


async def test_history_unavailable(client: AsyncClient):
    class BrokenBackend(MemoryKeyValueStore):
        async def items(self, prefix=""):
            raise OSError("database is locked")

    _wire(ReportStore(BrokenBackend()))
    resp = await client.get("/reports")
    assert resp.status_code == 503
