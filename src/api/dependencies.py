"""FastAPI dependencies resolving the dashboard visitor and their session."""

from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, status

from src.services.dashboard_service import DashboardSession, get_session_registry


@dataclass(frozen=True)
class DashboardIdentity:
    """Partnership and user established by the upstream auth layer."""

    partnership_id: str
    user_id: str


async def get_identity(
    x_partnership_id: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> DashboardIdentity:
    """Read the visitor identity from headers set by the auth proxy.

    Session issuance and partnership membership checks happen upstream;
    this only refuses requests that arrive without an identity.

    Raises:
        HTTPException 401: If either header is missing or blank
    """
    if not x_partnership_id or not x_partnership_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Partnership-Id header",
        )
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return DashboardIdentity(partnership_id=x_partnership_id.strip(), user_id=x_user_id.strip())


async def get_dashboard_session(
    identity: DashboardIdentity = Depends(get_identity),
) -> DashboardSession:
    """Return the visitor's dashboard session, creating it on first use."""
    return get_session_registry().get(identity.partnership_id, identity.user_id)
