"""Dwell-time tracking endpoints fed by the dashboard's tab bar.

Each dashboard load gets a ``view_id`` (returned by ``GET /dashboard``).
Windows send it back in ``X-Dashboard-View-Id`` so their tab timers stay
separate; without it the most recent load is assumed.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header

from src.api.dependencies import get_dashboard_session
from src.models.action_item import DwellSample
from src.models.contract import TabChangeRequest
from src.services.dashboard_service import DashboardSession

router = APIRouter(prefix="/tracking", tags=["Tracking"])


@router.post("/tab", response_model=DwellSample)
async def change_tab(
    body: TabChangeRequest,
    x_dashboard_view_id: Optional[str] = Header(default=None),
    session: DashboardSession = Depends(get_dashboard_session),
) -> DwellSample:
    """Record time on the previous tab and start timing the new one."""
    return session.change_tab(body.tab_name, view_id=x_dashboard_view_id)


@router.post("/visibility-hidden", response_model=DwellSample)
async def visibility_hidden(
    x_dashboard_view_id: Optional[str] = Header(default=None),
    session: DashboardSession = Depends(get_dashboard_session),
) -> DwellSample:
    """Flush time on the current tab when the page is hidden."""
    return session.visibility_hidden(view_id=x_dashboard_view_id)
