"""Analysis attempts: file or URL in, background attempt, pollable status."""

import logging
import os
import shutil
import tempfile
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import HttpUrl
from starlette.concurrency import run_in_threadpool

from app.api.dependencies import AttemptsDep, UploaderDep, input_rejected
from app.errors import AttemptInProgress, InputRejected
from app.media.intake import INLINE_MAX_BYTES, MAX_UPLOAD_BYTES, check_media_file, encode_inline
from app.models.dog import DogSubject
from app.models.media import PendingUpload, RemoteMedia
from app.services.attempt import AttemptStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyses", tags=["analyses"])


class UrlAnalysisRequest(DogSubject):
    media_url: HttpUrl
    mime_type: Optional[str] = None


def _busy() -> HTTPException:
    return HTTPException(status_code=409, detail="An analysis is already running")


def _spool_to_disk(upload: UploadFile) -> tuple[str, int]:
    suffix = os.path.splitext(upload.filename or "")[1]
    with tempfile.NamedTemporaryFile(delete=False, prefix="pawsight_", suffix=suffix) as tmp:
        upload.file.seek(0)
        shutil.copyfileobj(upload.file, tmp)
        size = tmp.tell()
    return tmp.name, size


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


@router.post("", response_model=AttemptStatus, status_code=status.HTTP_202_ACCEPTED)
async def analyze_upload(
    attempts: AttemptsDep,
    uploader: UploaderDep,
    file: UploadFile = File(..., description="Video or photo of the dog"),
    breed: str = Form(..., min_length=1, max_length=100),
    age_years: float = Form(..., ge=0, le=40),
) -> AttemptStatus:
    """
    Start an analysis of a selected file.

    - Size and type are checked before any network interaction.
    - With an upload backend configured the file goes to object storage
      first (state ``uploading``); otherwise it is sent inline.
    - Returns immediately; poll ``GET /analyses/{attempt_id}``.
    """
    if attempts.busy:
        raise _busy()
    subject = DogSubject(breed=breed, age_years=age_years)

    try:
        mime_type = check_media_file(file.filename, file.content_type, file.size, MAX_UPLOAD_BYTES)
        if uploader.configured:
            path, size = await run_in_threadpool(_spool_to_disk, file)
            try:
                check_media_file(file.filename, mime_type, size, MAX_UPLOAD_BYTES)
            except InputRejected:
                _remove_quietly(path)
                raise
            media = PendingUpload(path=path, filename=file.filename or "upload", mime_type=mime_type, size=size)
            cleanup = lambda: _remove_quietly(path)  # noqa: E731
        else:
            data = await file.read(MAX_UPLOAD_BYTES + 1)
            check_media_file(file.filename, mime_type, len(data), MAX_UPLOAD_BYTES)
            media = encode_inline(data, mime_type, INLINE_MAX_BYTES)
            cleanup = None
    except InputRejected as exc:
        logger.info("Rejected %s: %s", file.filename, exc.detail)
        raise input_rejected(exc)

    try:
        attempt = attempts.start(subject, media, cleanup=cleanup)
    except AttemptInProgress:
        if cleanup is not None:
            cleanup()
        raise _busy()
    logger.info("Attempt %s started for %s (%s, %s)", attempt.id, subject.breed, mime_type, media.__class__.__name__)
    return attempt.status()


@router.post("/from-url", response_model=AttemptStatus, status_code=status.HTTP_202_ACCEPTED)
async def analyze_url(payload: UrlAnalysisRequest, attempts: AttemptsDep) -> AttemptStatus:
    """Start an analysis of media already uploaded elsewhere."""
    if payload.mime_type is not None:
        try:
            check_media_file(None, payload.mime_type, None)
        except InputRejected as exc:
            raise input_rejected(exc)
    subject = DogSubject(breed=payload.breed, age_years=payload.age_years)
    media = RemoteMedia(url=payload.media_url, mime_type=payload.mime_type)
    try:
        attempt = attempts.start(subject, media)
    except AttemptInProgress:
        raise _busy()
    return attempt.status()


@router.get("/{attempt_id}", response_model=AttemptStatus)
async def get_attempt(attempt_id: str, attempts: AttemptsDep) -> AttemptStatus:
    """Current state, progress, and the report id once complete."""
    attempt = attempts.get(attempt_id)
    if attempt is None:
        raise HTTPException(status_code=404, detail=f"Attempt {attempt_id} not found")
    return attempt.status()
