"""History listing, report viewer and deletion."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.api.dependencies import StoreDep, report_not_found
from app.errors import NotFound, StorageFailure
from app.models.report import Emotion, Report, StoredReport

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", response_model=list[StoredReport])
async def list_reports(
    store: StoreDep,
    emotion: Optional[Emotion] = Query(None, description="Only reports with this emotion"),
    limit: int = Query(50, ge=1, le=500),
) -> list[StoredReport]:
    """Return past reports, newest first."""
    try:
        return await store.list(emotion=emotion, limit=limit)
    except StorageFailure:
        raise HTTPException(status_code=503, detail="Report history is unavailable. Please try again.")


@router.get("/{report_id}", response_model=Report)
async def get_report(report_id: str, store: StoreDep) -> Report:
    """Return a stored report. Unknown ids point the caller back to the history."""
    report = await store.get(report_id)
    if isinstance(report, NotFound):
        raise report_not_found(report)
    return report


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(report_id: str, store: StoreDep) -> None:
    """Delete a report on explicit user request."""
    if not await store.delete(report_id):
        raise HTTPException(status_code=404, detail=f"Report {report_id} not found")
