"""Dashboard API endpoints: checklist load and action item commands."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, File, Form, Header, UploadFile

from src.api.dependencies import get_dashboard_session
from src.models.action_item import CommandResult, DashboardView
from src.models.contract import ItemDataSubmission, PauseRequest
from src.services.dashboard_service import DashboardSession

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardView)
async def load_dashboard(
    x_dashboard_view_id: Optional[str] = Header(default=None),
    session: DashboardSession = Depends(get_dashboard_session),
) -> DashboardView:
    """Reload the checklist from the store, resurfacing due items.

    A window reloading itself sends its ``X-Dashboard-View-Id`` to keep it;
    otherwise a new view id is issued.
    """
    return await session.load(x_dashboard_view_id)


@router.get("/view", response_model=DashboardView)
async def current_view(
    x_dashboard_view_id: Optional[str] = Header(default=None),
    session: DashboardSession = Depends(get_dashboard_session),
) -> DashboardView:
    """Current checklist as held locally, without contacting the store."""
    if not session.loaded:
        return await session.load(x_dashboard_view_id)
    return session.view(x_dashboard_view_id)


@router.post("/items/{item_id}/complete", response_model=CommandResult)
async def complete_item(
    item_id: str,
    session: DashboardSession = Depends(get_dashboard_session),
) -> CommandResult:
    return session.complete(item_id)


@router.post("/items/{item_id}/pause", response_model=CommandResult)
async def pause_item(
    item_id: str,
    body: PauseRequest,
    session: DashboardSession = Depends(get_dashboard_session),
) -> CommandResult:
    """Defer an item; the result message names the resurface date."""
    return session.pause(item_id, body.weeks)


@router.post("/items/{item_id}/resume", response_model=CommandResult)
async def resume_item(
    item_id: str,
    session: DashboardSession = Depends(get_dashboard_session),
) -> CommandResult:
    return session.resume(item_id)


@router.post("/items/{item_id}/data", response_model=CommandResult)
async def submit_item_data(
    item_id: str,
    body: ItemDataSubmission,
    session: DashboardSession = Depends(get_dashboard_session),
) -> CommandResult:
    """Complete an item from an inline form (champion, website, buildings...)."""
    return session.submit_item_data(item_id, body.data_type, body.data)


@router.post("/items/{item_id}/evidence", response_model=CommandResult)
async def upload_evidence(
    item_id: str,
    file: UploadFile = File(...),
    folder: Optional[str] = Form(default=None),
    session: DashboardSession = Depends(get_dashboard_session),
) -> CommandResult:
    """Complete an item by uploading a supporting document."""
    content = await file.read()
    logger.info(
        "evidence_upload_received",
        item_id=item_id,
        filename=file.filename,
        size=len(content),
    )
    return await session.complete_via_evidence(
        item_id,
        filename=file.filename or "evidence",
        content=content,
        content_type=file.content_type or "application/octet-stream",
        folder=folder,
    )
