"""Resurfacing sweeper: returns expired paused items to the pending list.

There is no background scheduler. The sweep runs once per dashboard load
and compares each paused item's ``resurface_at`` with the load time, so an
item paused on a dashboard nobody revisits stays paused until the next
visit.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Iterable

import structlog

from src.models.action_item import ActionItem
from src.services import lifecycle

logger = structlog.get_logger(__name__)

DEFAULT_HIGHLIGHT_SECONDS = 5

# Receives (item before, item after); returns True when the store accepted it
ResumeWriter = Callable[[ActionItem, ActionItem], Awaitable[bool]]


class ResurfacedHighlights:
    """Ids tagged "back on your list" for a short display window."""

    def __init__(self, window_seconds: int = DEFAULT_HIGHLIGHT_SECONDS):
        self.window = timedelta(seconds=window_seconds)
        self._expires: dict[str, datetime] = {}

    def tag(self, item_ids: Iterable[str], now: datetime) -> None:
        expires_at = now + self.window
        for item_id in item_ids:
            self._expires[item_id] = expires_at

    def active(self, now: datetime) -> list[str]:
        """Ids still inside their window; expired tags are dropped."""
        self._expires = {
            item_id: expires_at
            for item_id, expires_at in self._expires.items()
            if expires_at > now
        }
        return list(self._expires)

    def clear(self) -> None:
        self._expires.clear()


@dataclass
class SweepResult:
    """Item list after a sweep plus the ids the store confirmed."""

    items: list[ActionItem]
    due: list[str] = field(default_factory=list)
    resurfaced: list[str] = field(default_factory=list)


def find_due(items: Iterable[ActionItem], now: datetime) -> list[ActionItem]:
    """Paused items whose ``resurface_at <= now``."""
    return [item for item in items if lifecycle.is_due(item, now)]


class ResurfacingSweeper:
    """Promotes expired paused items back to pending on dashboard load."""

    def __init__(self, highlights: ResurfacedHighlights):
        self.highlights = highlights

    async def sweep(
        self,
        items: Iterable[ActionItem],
        now: datetime,
        write_resume: ResumeWriter,
    ) -> SweepResult:
        """Resume every due item and tag the ones the store accepted.

        All due items come back as pending in the returned list whether or
        not the write succeeded; a failed write is reconciled by the next
        load, which will find the item still paused and try again.
        """
        items = list(items)
        due_ids = {item.id for item in find_due(items, now)}
        if not due_ids:
            return SweepResult(items=items)

        swept: list[ActionItem] = []
        resurfaced: list[str] = []
        for item in items:
            if item.id not in due_ids:
                swept.append(item)
                continue

            resumed = lifecycle.resume(item)
            swept.append(resumed)
            if await write_resume(item, resumed):
                resurfaced.append(item.id)
            else:
                logger.warning("action_item_resurface_write_failed", item_id=item.id)

        self.highlights.tag(resurfaced, now)

        logger.info(
            "resurfacing_sweep_completed",
            due=len(due_ids),
            resurfaced=len(resurfaced),
        )

        return SweepResult(items=swept, due=sorted(due_ids), resurfaced=resurfaced)
