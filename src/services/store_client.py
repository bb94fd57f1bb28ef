"""HTTP client for the partner action item store.

The store owns persistence, partnership scoping and authorization. Every
call here is a single attempt: failures are logged and reported as a
falsy result, never raised, and the next dashboard reload reconciles
whatever state the dashboard shows.
"""

from typing import Any, Optional, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from src.config import get_settings
from src.models.action_item import ActionItem, DwellSample
from src.models.contract import (
    ActivityEvent,
    DashboardDataResponse,
    ItemDataRequest,
    StatusUpdateRequest,
    StoreAck,
    UploadEvidenceResponse,
)

logger = structlog.get_logger(__name__)

UPLOAD_FAILED_MESSAGE = "Failed to upload file. Please try again."

ModelT = TypeVar("ModelT", bound=BaseModel)

# Global store client
_store_client: Optional["StoreClient"] = None


def get_store_client() -> "StoreClient":
    """Get or create the shared store client."""
    global _store_client
    if _store_client is None:
        _store_client = StoreClient()
    return _store_client


async def close_store_client() -> None:
    """Close the shared store client."""
    global _store_client
    if _store_client is not None:
        await _store_client.close()
        _store_client = None
        logger.info("store_client_closed")


class StoreClient:
    """Thin async wrapper over the store's request/response endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        service_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.store_base_url).rstrip("/") + "/"
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds
        self.service_token = service_token or settings.store_service_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.service_token:
                headers["Authorization"] = f"Bearer {self.service_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict | None:
        """Send one request and return the decoded JSON body.

        Returns None on transport errors, non-2xx responses and
        undecodable bodies. Each call is attempted once.
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            logger.warning("store_request_timeout", method=method, path=path)
            return None
        except httpx.HTTPError as e:
            logger.warning(
                "store_request_failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if response.status_code >= 400:
            logger.warning(
                "store_request_rejected",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            return None

        try:
            body = response.json()
        except ValueError:
            logger.warning("store_response_not_json", method=method, path=path)
            return None
        return body if isinstance(body, dict) else None

    def _parse(self, model: type[ModelT], body: dict, path: str) -> ModelT | None:
        """Validate a 2xx body against ``model``; None when it does not fit."""
        try:
            return model.model_validate(body)
        except ValidationError as e:
            logger.warning(
                "store_response_invalid",
                path=path,
                model=model.__name__,
                errors=e.error_count(),
            )
            return None

    def _ack_ok(self, body: dict | None, path: str) -> bool:
        if body is None:
            return False
        ack = self._parse(StoreAck, body, path)
        return ack is not None and ack.success

    async def fetch_action_items(
        self, partnership_id: str, user_id: str
    ) -> list[ActionItem] | None:
        """Load every action item of a partnership, ordered by sort_order.

        Returns None when the store could not be reached or refused the
        request, so callers can keep their previous view. Rows are
        normalised by ``ActionItem.from_store``; the few that still fail
        validation are skipped and logged.
        """
        body = await self._request(
            "GET", f"dashboard/{partnership_id}", headers={"x-user-id": user_id}
        )
        if body is None:
            return None

        data = self._parse(DashboardDataResponse, body, "dashboard")
        if data is None:
            return None
        if not data.success:
            logger.warning(
                "dashboard_data_unsuccessful",
                partnership_id=partnership_id,
                error=data.error,
            )
            return None

        items = []
        for raw in data.action_items:
            try:
                items.append(ActionItem.from_store(raw))
            except ValidationError as e:
                logger.warning(
                    "action_item_record_invalid",
                    item_id=raw.get("id"),
                    errors=e.error_count(),
                )
        items.sort(key=lambda i: i.sort_order)
        return items

    async def update_status(self, request: StatusUpdateRequest) -> bool:
        """``PATCH action-items``: persist a status transition."""
        body = await self._request("PATCH", "action-items", json=request.to_wire())
        ok = self._ack_ok(body, "action-items")
        if not ok:
            logger.warning(
                "action_item_status_update_failed",
                item_id=request.item_id,
                status=request.status.value,
            )
        return ok

    async def save_item_data(self, request: ItemDataRequest) -> StoreAck:
        """``POST action-item-data``: form payload plus completion."""
        body = await self._request("POST", "action-item-data", json=request.to_wire())
        ack = self._parse(StoreAck, body, "action-item-data") if body is not None else None
        if ack is None:
            return StoreAck(success=False, error="Failed to save data")
        if not ack.success:
            logger.warning(
                "action_item_data_rejected",
                item_id=request.action_item_id,
                data_type=request.data_type.value,
                error=ack.error,
            )
        return ack

    async def upload_evidence(
        self,
        partnership_id: str,
        item_id: str,
        user_id: str,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        folder: Optional[str] = None,
    ) -> UploadEvidenceResponse:
        """``POST upload-evidence``: store a file and complete the item."""
        form = {"partnershipId": partnership_id, "itemId": item_id, "userId": user_id}
        if folder:
            form["folder"] = folder

        body = await self._request(
            "POST",
            "upload-evidence",
            data=form,
            files={"file": (filename, content, content_type)},
        )
        if body is None:
            return UploadEvidenceResponse(success=False, error=UPLOAD_FAILED_MESSAGE)

        result = self._parse(UploadEvidenceResponse, body, "upload-evidence")
        if result is None:
            return UploadEvidenceResponse(success=False, error=UPLOAD_FAILED_MESSAGE)
        if result.success and not result.file_path:
            logger.warning("evidence_upload_missing_path", item_id=item_id)
            return UploadEvidenceResponse(success=False, error=UPLOAD_FAILED_MESSAGE)
        return result

    async def log_activity(self, event: ActivityEvent) -> bool:
        """``POST log-activity``: append an audit event."""
        body = await self._request("POST", "log-activity", json=event.to_wire())
        return self._ack_ok(body, "log-activity")

    async def track_view(self, sample: DwellSample) -> bool:
        """``POST track-view``: record one dwell sample (best effort)."""
        body = await self._request("POST", "track-view", json=sample.model_dump())
        return self._ack_ok(body, "track-view")
