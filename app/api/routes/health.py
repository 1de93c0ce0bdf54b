"""Healthcheck endpoint."""

import os

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    analysis_available: bool
    chat_available: bool
    upload_available: bool


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Service status and which external backends are configured."""
    state = request.app.state
    return HealthResponse(
        status="ok",
        analysis_available=bool(getattr(state.analyzer, "configured", True)),
        chat_available=bool(os.getenv("ANTHROPIC_API_KEY")),
        upload_available=bool(state.uploader.configured),
    )
