"""Dog behavior and health analysis via Gemini with a strict output schema."""

import asyncio
import logging
import mimetypes
import os
import tempfile
import time
from functools import partial
from typing import Any, Optional, Protocol

import google.generativeai as genai
import requests
from pydantic import ValidationError

from app.errors import ServiceFailure, ValidationFailure
from app.models.dog import DogSubject
from app.models.media import InlineMedia, MediaReference, RemoteMedia
from app.models.report import Report
from .prompts import REPORT_RESPONSE_SCHEMA, build_analysis_prompt

logger = logging.getLogger(__name__)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
ANALYSIS_TIMEOUT_SECONDS = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "120"))
FILE_PROCESSING_TIMEOUT_SECONDS = 60
DOWNLOAD_TIMEOUT_SECONDS = 30


class Analyzer(Protocol):
    async def analyze(self, subject: DogSubject, media: MediaReference) -> Report: ...


def parse_report(text: str) -> Report:
    """Validate raw model output against the report schema.

    Markdown fences and any prose around the JSON object are stripped first.
    Validation is strict: ``"85"`` or ``true`` for an integer field is a
    wrong type, not something to coerce.

    Raises:
        ValidationFailure: not JSON, a missing field, a wrong type, or an
            out-of-enum value.
    """
    clean = text.strip().replace("```json", "").replace("```", "").strip()
    left, right = clean.find("{"), clean.rfind("}")
    if left != -1 and right > left:
        clean = clean[left:right + 1]
    try:
        return Report.model_validate_json(clean, strict=True)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()[:5]
        )
        raise ValidationFailure(f"Model output does not match the report schema: {errors}") from exc


class GeminiAnalyzer:
    """Single request/response exchange with Gemini. No caching, no retries."""

    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        model_name: str = GEMINI_MODEL,
        timeout: float = ANALYSIS_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout
        self._model: Optional[Any] = None
        if api_key:
            genai.configure(api_key=api_key)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def analyze(self, subject: DogSubject, media: MediaReference) -> Report:
        """Send dog metadata and media to the model and return the validated report.

        Raises:
            ServiceFailure: missing key, transport error, timeout, or the model
                declined to answer.
            ValidationFailure: the answer does not match the schema.
        """
        if not self.configured:
            raise ServiceFailure("GEMINI_API_KEY is not set")

        loop = asyncio.get_event_loop()
        started = time.monotonic()
        try:
            text = await asyncio.wait_for(
                loop.run_in_executor(None, partial(self._generate, subject, media)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ServiceFailure(f"Analysis timed out after {self.timeout:g}s") from exc
        except ServiceFailure:
            raise
        except Exception as exc:
            raise ServiceFailure(f"Analysis request failed: {exc}") from exc

        report = parse_report(text)
        logger.info(
            "Analysis for %s (%s media) in %.1fs: emotion=%s urgency=%s",
            subject.breed, media.kind, time.monotonic() - started, report.emotion, report.health.urgency,
        )
        return report

    # ─── Blocking helpers (run in the executor) ───────────────────────────────

    def _get_model(self) -> Any:
        if self._model is None:
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def _generate(self, subject: DogSubject, media: MediaReference) -> str:
        prompt = build_analysis_prompt(subject)
        if isinstance(media, InlineMedia):
            return self._call([{"mime_type": media.mime_type, "data": media.data}, prompt])

        path, mime_type = self._download(media)
        uploaded = None
        try:
            uploaded = genai.upload_file(path, mime_type=mime_type)
            uploaded = self._wait_until_active(uploaded)
            return self._call([uploaded, prompt])
        finally:
            if os.path.exists(path):
                os.remove(path)
            if uploaded is not None:
                try:
                    genai.delete_file(uploaded.name)
                except Exception as exc:
                    logger.warning("Could not delete Gemini file %s: %s", uploaded.name, exc)

    def _download(self, media: RemoteMedia) -> tuple[str, str]:
        url = str(media.url)
        try:
            resp = requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise ServiceFailure(f"Failed to download media from {url}: {exc}") from exc

        mime_type = media.mime_type or resp.headers.get("Content-Type", "").split(";")[0] or "video/mp4"
        suffix = mimetypes.guess_extension(mime_type) or ""
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
            try:
                for chunk in resp.iter_content(chunk_size=8192):
                    tmp_file.write(chunk)
            except requests.RequestException as exc:
                tmp_file.close()
                os.remove(tmp_file.name)
                raise ServiceFailure(f"Failed to download media from {url}: {exc}") from exc
        return tmp_file.name, mime_type

    def _wait_until_active(self, uploaded: Any) -> Any:
        started = time.time()
        while uploaded.state.name == "PROCESSING":
            if time.time() - started > FILE_PROCESSING_TIMEOUT_SECONDS:
                raise ServiceFailure("Gemini file processing timed out")
            time.sleep(1)
            uploaded = genai.get_file(uploaded.name)
        if uploaded.state.name == "FAILED":
            raise ServiceFailure("Gemini file upload failed processing")
        return uploaded

    def _call(self, parts: list) -> str:
        response = self._get_model().generate_content(
            parts,
            generation_config={
                "response_mime_type": "application/json",
                "response_schema": REPORT_RESPONSE_SCHEMA,
                "temperature": 0.4,
            },
        )
        try:
            text = response.text
        except ValueError as exc:
            # Raised when the candidate was blocked or has no text part
            raise ServiceFailure(f"Model declined to respond: {exc}") from exc
        if not text or not text.strip():
            raise ServiceFailure("Model returned an empty response")
        return text
