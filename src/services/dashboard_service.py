"""Dashboard session: optimistic action item cache plus engagement tracking.

A session holds the checklist for one (partnership, user) pair. Commands
mutate the local cache immediately and send the store write in the
background; every full load replaces the cache wholesale with what the
store reports, after resurfacing any paused items whose deferral has
elapsed.
"""

from datetime import datetime, timezone
import time
from typing import Callable, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

import structlog

from src.config import get_settings
from src.models.action_item import ActionItem, CommandResult, DashboardView, DwellSample
from src.models.contract import (
    ActivityEvent,
    ItemDataRequest,
    ItemDataType,
    StatusUpdateRequest,
)
from src.services import lifecycle
from src.services.dispatch_service import CommandDispatcher
from src.services.dwell_service import DwellTimeRecorder
from src.services.lifecycle import InvalidTransitionError
from src.services.resurfacing_service import ResurfacedHighlights, ResurfacingSweeper
from src.services.store_client import UPLOAD_FAILED_MESSAGE, StoreClient, get_store_client

logger = structlog.get_logger(__name__)

DATA_SAVED_MESSAGES = {
    ItemDataType.CHAMPION: "Champion added!",
    ItemDataType.WEBSITE: "Website saved!",
    ItemDataType.BUILDINGS: "Buildings saved!",
    ItemDataType.CONFIRMATION: "Confirmed!",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DashboardSession:
    """Checklist state and tab tracking for one dashboard visitor."""

    def __init__(
        self,
        partnership_id: str,
        user_id: str,
        store: Optional[StoreClient] = None,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Optional[Callable[[], float]] = None,
    ):
        settings = get_settings()
        self.partnership_id = partnership_id
        self.user_id = user_id
        self._store = store or get_store_client()
        self._clock = clock
        self._display_tz = ZoneInfo(settings.display_timezone)
        self._default_tab = settings.default_tab

        self._items: dict[str, ActionItem] = {}
        self.loaded = False

        self.commands = CommandDispatcher()
        self.telemetry = CommandDispatcher()
        self.highlights = ResurfacedHighlights(settings.resurface_highlight_seconds)
        self.sweeper = ResurfacingSweeper(self.highlights)

        # One recorder per dashboard load, so parallel windows time
        # their tabs independently
        self._monotonic = monotonic
        self._max_views = max(2, settings.max_views_per_session)
        self._recorders: dict[str, DwellTimeRecorder] = {}
        self.view_id = self._open_view()

    # --- Loading --------------------------------------------------------

    async def load(self, view_id: Optional[str] = None) -> DashboardView:
        """Reload items from the store, resurface due items, rebuild the view.

        Each load opens a fresh dwell timer identified by the returned
        ``view_id``; passing a known ``view_id`` restarts that window's
        timer instead. When the store cannot be reached the previous cache
        is kept.
        """
        now = self._clock()
        items = await self._store.fetch_action_items(self.partnership_id, self.user_id)
        if items is None:
            logger.warning(
                "dashboard_load_failed",
                partnership_id=self.partnership_id,
                kept_items=len(self._items),
            )
            return self.view(view_id)

        result = await self.sweeper.sweep(items, now, self._write_resume)
        self._items = {item.id: item for item in result.items}
        self.loaded = True
        if view_id in self._recorders:
            self._recorders[view_id].reset(self._default_tab)
        else:
            view_id = self._open_view()

        self._log_activity("dashboard_viewed", {"tab": self._default_tab})

        logger.info(
            "dashboard_loaded",
            partnership_id=self.partnership_id,
            items=len(self._items),
            resurfaced=len(result.resurfaced),
            view_id=view_id,
        )
        return self.view(view_id)

    async def _write_resume(self, before: ActionItem, after: ActionItem) -> bool:
        ok = await self._store.update_status(self._status_request(after))
        if ok:
            self._log_activity(
                "action_item_resurfaced",
                {
                    "item_id": before.id,
                    "item_title": before.title,
                    "paused_reason": before.paused_reason,
                },
            )
        return ok

    def view(self, view_id: Optional[str] = None) -> DashboardView:
        return lifecycle.build_view(
            self.partnership_id,
            self._items.values(),
            self.highlights.active(self._clock()),
            self._display_tz,
            view_id=view_id if view_id in self._recorders else self.view_id,
        )

    def get_item(self, item_id: str) -> ActionItem | None:
        return self._items.get(item_id)

    @property
    def items(self) -> list[ActionItem]:
        return list(self._items.values())

    # --- Lifecycle commands ---------------------------------------------

    def complete(self, item_id: str) -> CommandResult:
        """Mark an item completed by a manual click."""
        item = self._items.get(item_id)
        if item is None:
            return self._unknown(item_id, "complete")

        updated = lifecycle.complete(item, self._clock())
        if updated is item:
            return CommandResult(ok=True, item=item)

        self._apply(updated)
        self._send_status(updated)
        logger.info("action_item_completed", item_id=item_id, previous=item.status.value)
        return CommandResult(ok=True, item=updated)

    def pause(self, item_id: str, weeks: int) -> CommandResult:
        """Defer a pending item for 1, 2 or 4 weeks."""
        item = self._items.get(item_id)
        if item is None:
            return self._unknown(item_id, "pause")

        try:
            updated = lifecycle.pause(item, weeks, self._clock())
        except InvalidTransitionError as e:
            return self._rejected(e)
        except ValueError as e:
            logger.warning("action_item_pause_invalid", item_id=item_id, weeks=weeks)
            return CommandResult(ok=False, item=item, error="invalid_duration", message=str(e))

        self._apply(updated)
        self._send_status(updated)
        logger.info(
            "action_item_paused",
            item_id=item_id,
            paused_reason=updated.paused_reason,
            resurface_at=updated.resurface_at.isoformat(),
        )
        return CommandResult(
            ok=True,
            item=updated,
            message=lifecycle.pause_confirmation(
                updated.resurface_at.astimezone(self._display_tz)
            ),
        )

    def resume(self, item_id: str) -> CommandResult:
        """Return a paused item to the pending list before its deferral ends."""
        item = self._items.get(item_id)
        if item is None:
            return self._unknown(item_id, "resume")

        try:
            updated = lifecycle.resume(item)
        except InvalidTransitionError as e:
            return self._rejected(e)
        if updated is item:
            return CommandResult(ok=True, item=item)

        self._apply(updated)
        self._send_status(updated)
        logger.info("action_item_resumed", item_id=item_id)
        return CommandResult(ok=True, item=updated)

    def submit_item_data(
        self, item_id: str, data_type: ItemDataType, data: dict
    ) -> CommandResult:
        """Complete an item from an inline form, sending its payload along.

        The store saves the payload and marks the item completed itself, so
        no separate status write is sent.
        """
        item = self._items.get(item_id)
        if item is None:
            return self._unknown(item_id, "submit_item_data")

        updated = lifecycle.complete(item, self._clock())
        self._apply(updated)

        request = ItemDataRequest(
            partnership_id=self.partnership_id,
            action_item_id=item_id,
            user_id=self.user_id,
            data_type=data_type,
            data=data,
        )
        self.commands.dispatch(
            lambda: self._store.save_item_data(request), "save_item_data"
        )
        logger.info("action_item_data_submitted", item_id=item_id, data_type=data_type.value)

        message = DATA_SAVED_MESSAGES[data_type]
        if data_type == ItemDataType.CONFIRMATION and data.get("confirmationMessage"):
            message = data["confirmationMessage"]
        return CommandResult(ok=True, item=updated, message=message)

    async def complete_via_evidence(
        self,
        item_id: str,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
        folder: Optional[str] = None,
    ) -> CommandResult:
        """Upload an evidence file and complete the item with its path.

        The upload is awaited because the stored path is needed before the
        item can be completed. On failure the item keeps its prior status.
        """
        item = self._items.get(item_id)
        if item is None:
            return self._unknown(item_id, "complete_via_evidence")

        upload = await self._store.upload_evidence(
            self.partnership_id,
            item_id,
            self.user_id,
            filename=filename,
            content=content,
            content_type=content_type,
            folder=folder,
        )
        if not upload.success:
            logger.warning("evidence_upload_failed", item_id=item_id, error=upload.error)
            return CommandResult(
                ok=False,
                item=self._items.get(item_id),
                error="upload_failed",
                message=UPLOAD_FAILED_MESSAGE,
            )

        current = self._items.get(item_id, item)
        updated = lifecycle.complete_via_evidence(current, upload.file_path, self._clock())
        self._apply(updated)
        logger.info("action_item_completed_with_evidence", item_id=item_id)
        return CommandResult(ok=True, item=updated, message="File uploaded!")

    # --- Dwell-time tracking --------------------------------------------

    @property
    def recorder(self) -> DwellTimeRecorder:
        """Recorder of the most recent dashboard load."""
        return self._recorders[self.view_id]

    def recorder_for(self, view_id: Optional[str] = None) -> DwellTimeRecorder:
        """Recorder of one dashboard load.

        Without an id the most recent load is used. An id this session
        has not seen (evicted, or issued before a restart) starts a new
        timer under that id.
        """
        if view_id is None:
            return self.recorder
        recorder = self._recorders.get(view_id)
        if recorder is None:
            logger.info("dwell_view_unknown", view_id=view_id)
            self._open_view(view_id, make_current=False)
            recorder = self._recorders[view_id]
        return recorder

    def change_tab(self, tab_name: str, view_id: Optional[str] = None) -> DwellSample:
        return self.recorder_for(view_id).change_tab(tab_name)

    def visibility_hidden(self, view_id: Optional[str] = None) -> DwellSample:
        return self.recorder_for(view_id).visibility_hidden()

    @property
    def pending(self) -> int:
        """Store writes and telemetry still in flight."""
        return self.commands.pending + self.telemetry.pending

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for background writes and telemetry to finish."""
        await self.commands.drain(timeout)
        await self.telemetry.drain(timeout)

    # --- Helpers --------------------------------------------------------

    def _open_view(self, view_id: Optional[str] = None, make_current: bool = True) -> str:
        view_id = view_id or uuid4().hex
        recorder_kwargs = {"clock": self._monotonic} if self._monotonic is not None else {}
        self._recorders[view_id] = DwellTimeRecorder(
            self.partnership_id,
            self.user_id,
            sink=self._send_dwell_sample,
            initial_tab=self._default_tab,
            **recorder_kwargs,
        )
        if make_current:
            self.view_id = view_id
        # Oldest loads go first; their windows are most likely closed
        while len(self._recorders) > self._max_views:
            oldest = next(v for v in self._recorders if v not in (view_id, self.view_id))
            del self._recorders[oldest]
        return view_id

    def _apply(self, item: ActionItem) -> None:
        self._items[item.id] = item

    def _status_request(self, item: ActionItem) -> StatusUpdateRequest:
        return StatusUpdateRequest(
            item_id=item.id,
            status=item.status,
            paused_reason=item.paused_reason,
            resurface_at=item.resurface_at,
            user_id=self.user_id,
            partnership_id=self.partnership_id,
        )

    def _send_status(self, item: ActionItem) -> None:
        request = self._status_request(item)
        self.commands.dispatch(
            lambda: self._store.update_status(request), f"status_{item.status.value}"
        )

    def _send_dwell_sample(self, sample: DwellSample) -> None:
        self.telemetry.dispatch(lambda: self._store.track_view(sample), "track_view")

    def _log_activity(self, action: str, details: dict) -> None:
        event = ActivityEvent(
            partnership_id=self.partnership_id,
            user_id=self.user_id,
            action=action,
            details=details,
        )
        self.telemetry.dispatch(lambda: self._store.log_activity(event), "log_activity")

    def _unknown(self, item_id: str, command: str) -> CommandResult:
        logger.warning(
            "action_item_not_found",
            item_id=item_id,
            command=command,
            partnership_id=self.partnership_id,
        )
        return CommandResult(ok=False, error="unknown_item")

    def _rejected(self, error: InvalidTransitionError) -> CommandResult:
        logger.warning(
            "action_item_transition_rejected",
            item_id=error.item_id,
            command=error.command,
            status=error.status.value,
        )
        return CommandResult(
            ok=False, item=self._items.get(error.item_id), error="invalid_transition"
        )


class SessionRegistry:
    """In-process dashboard sessions keyed by (partnership, user).

    Sessions unused for ``idle_seconds`` are dropped on the next lookup,
    unless they still have writes in flight. A dropped visitor simply gets
    a fresh session, which reloads from the store.
    """

    def __init__(
        self,
        store: Optional[StoreClient] = None,
        idle_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._idle_seconds = (
            idle_seconds if idle_seconds is not None else get_settings().session_idle_seconds
        )
        self._clock = clock
        self._sessions: dict[tuple[str, str], DashboardSession] = {}
        self._last_used: dict[tuple[str, str], float] = {}

    def get(self, partnership_id: str, user_id: str) -> DashboardSession:
        now = self._clock()
        self._evict_idle(now)

        key = (partnership_id, user_id)
        self._last_used[key] = now
        session = self._sessions.get(key)
        if session is None:
            session = DashboardSession(partnership_id, user_id, store=self._store)
            self._sessions[key] = session
            logger.info(
                "dashboard_session_created",
                partnership_id=partnership_id,
                user_id=user_id,
            )
        return session

    def _evict_idle(self, now: float) -> None:
        for key, last_used in list(self._last_used.items()):
            if now - last_used < self._idle_seconds:
                continue
            session = self._sessions.get(key)
            if session is not None and session.pending:
                continue
            self._sessions.pop(key, None)
            del self._last_used[key]
            logger.info(
                "dashboard_session_evicted",
                partnership_id=key[0],
                user_id=key[1],
                idle_seconds=round(now - last_used),
            )

    def __len__(self) -> int:
        return len(self._sessions)

    async def drain(self, timeout: float = 5.0) -> None:
        for session in list(self._sessions.values()):
            await session.drain(timeout)


_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Get or create the process-wide session registry."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def reset_session_registry() -> None:
    global _registry
    _registry = None
