"""Reusable FastAPI dependencies (report store, attempts, chat sessions, uploader)."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from app.errors import InputRejected, NotFound
from app.media.upload import CloudinaryUploader
from app.services.attempt import AttemptRegistry
from app.services.chat_session import ChatSessionRegistry
from app.services.report_store import ReportStore


def get_report_store(request: Request) -> ReportStore:
    return request.app.state.report_store


def get_attempts(request: Request) -> AttemptRegistry:
    return request.app.state.attempts


def get_chat_sessions(request: Request) -> ChatSessionRegistry:
    return request.app.state.chat_sessions


def get_uploader(request: Request) -> CloudinaryUploader:
    return request.app.state.uploader


StoreDep = Annotated[ReportStore, Depends(get_report_store)]
AttemptsDep = Annotated[AttemptRegistry, Depends(get_attempts)]
ChatSessionsDep = Annotated[ChatSessionRegistry, Depends(get_chat_sessions)]
UploaderDep = Annotated[CloudinaryUploader, Depends(get_uploader)]


def report_not_found(missing: NotFound) -> HTTPException:
    """404 carrying the history location the client should go back to."""
    return HTTPException(
        status_code=404,
        detail={"message": f"Report {missing.report_id} not found", "redirect": missing.redirect_to},
    )


_REJECTION_STATUS = {"too_large": 413, "wrong_type": 415}


def input_rejected(exc: InputRejected) -> HTTPException:
    return HTTPException(status_code=_REJECTION_STATUS.get(exc.reason, 400), detail=exc.user_message)
