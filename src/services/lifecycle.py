"""Action item lifecycle: pure state transitions and derived dashboard views.

Every transition takes the item as last confirmed by the store plus the
current time and returns a new ``ActionItem``; nothing here performs I/O.

    pending --complete--> completed
    pending --pause(w)--> paused --resume--> pending
    paused  --complete--> completed
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from src.models.action_item import (
    ActionItem,
    ActionItemPriority,
    ActionItemStatus,
    DashboardView,
    PausedEntry,
    PriorityGroup,
)

PAUSE_WEEK_OPTIONS = (1, 2, 4)

PRIORITY_LABELS = {
    ActionItemPriority.HIGH: "Get Started",
    ActionItemPriority.MEDIUM: "Build Your Foundation",
    ActionItemPriority.LOW: "When You're Ready",
}

# Fixed English names so labels never depend on the server locale
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_CLEARED_PAUSE = {"paused_at": None, "paused_reason": None, "resurface_at": None}


class InvalidTransitionError(ValueError):
    """Raised when a command is not valid from the item's current status."""

    def __init__(self, item: ActionItem, command: str):
        self.item_id = item.id
        self.status = item.status
        self.command = command
        super().__init__(
            f"Cannot {command} action item {item.id} while it is {item.status.value}"
        )


def ordinal_suffix(day: int) -> str:
    """Return the English ordinal suffix for a day of the month.

    1, 21, 31 -> "st"; 2, 22 -> "nd"; 3, 23 -> "rd"; 11-13 and the rest -> "th".
    """
    if 11 <= day % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def format_resurface_date(when: datetime) -> str:
    """Format a date as e.g. "March 3rd"."""
    return f"{MONTH_NAMES[when.month - 1]} {when.day}{ordinal_suffix(when.day)}"


def pause_reason(weeks: int) -> str:
    """Label stored with a pause, e.g. "1_week" or "2_weeks"."""
    return f"{weeks}_week" if weeks == 1 else f"{weeks}_weeks"


def pause_confirmation(resurface_at: datetime) -> str:
    """Toast text shown after a successful pause."""
    return f"No problem! We'll bring this back on {format_resurface_date(resurface_at)}."


def complete(
    item: ActionItem, now: datetime, evidence_file_path: Optional[str] = None
) -> ActionItem:
    """Mark an item completed, clearing any pause metadata.

    Completing an already-completed item returns it unchanged unless new
    evidence is attached.
    """
    if item.status == ActionItemStatus.COMPLETED and evidence_file_path is None:
        return item

    update = {
        "status": ActionItemStatus.COMPLETED,
        "completed_at": item.completed_at
        if item.status == ActionItemStatus.COMPLETED
        else now,
        **_CLEARED_PAUSE,
    }
    if evidence_file_path is not None:
        update["evidence_file_path"] = evidence_file_path
    return item.model_copy(update=update)


def complete_via_evidence(item: ActionItem, file_path: str, now: datetime) -> ActionItem:
    """Complete an item whose completion is evidenced by an uploaded file."""
    return complete(item, now, evidence_file_path=file_path)


def pause(item: ActionItem, weeks: int, now: datetime) -> ActionItem:
    """Defer a pending item for ``weeks`` weeks.

    Raises:
        ValueError: If weeks is not one of PAUSE_WEEK_OPTIONS
        InvalidTransitionError: If the item is not pending
    """
    if weeks not in PAUSE_WEEK_OPTIONS:
        raise ValueError(
            f"weeks must be one of {', '.join(str(w) for w in PAUSE_WEEK_OPTIONS)}"
        )
    if item.status != ActionItemStatus.PENDING:
        raise InvalidTransitionError(item, "pause")

    return item.model_copy(
        update={
            "status": ActionItemStatus.PAUSED,
            "paused_at": now,
            "paused_reason": pause_reason(weeks),
            "resurface_at": now + timedelta(weeks=weeks),
        }
    )


def resume(item: ActionItem) -> ActionItem:
    """Return a paused item to pending. Resuming a pending item is a no-op."""
    if item.status == ActionItemStatus.PENDING:
        return item
    if item.status != ActionItemStatus.PAUSED:
        raise InvalidTransitionError(item, "resume")
    return item.model_copy(
        update={"status": ActionItemStatus.PENDING, **_CLEARED_PAUSE}
    )


def is_due(item: ActionItem, now: datetime) -> bool:
    """True when a paused item's deferral has elapsed (boundary inclusive)."""
    return (
        item.is_paused
        and item.resurface_at is not None
        and item.resurface_at <= now
    )


def group_pending_by_priority(items: Iterable[ActionItem]) -> list[PriorityGroup]:
    """Bucket pending items high -> medium -> low, each by sort_order."""
    pending = [i for i in items if i.status == ActionItemStatus.PENDING]
    groups = []
    for priority in ActionItemPriority:
        bucket = sorted(
            (i for i in pending if i.priority == priority),
            key=lambda i: i.sort_order,
        )
        groups.append(
            PriorityGroup(priority=priority, label=PRIORITY_LABELS[priority], items=bucket)
        )
    return groups


def needs_attention_count(items: Iterable[ActionItem]) -> int:
    return sum(1 for i in items if i.status == ActionItemStatus.PENDING)


def build_view(
    partnership_id: str,
    items: Iterable[ActionItem],
    recently_resurfaced: Iterable[str] = (),
    display_tz=None,
    view_id: Optional[str] = None,
) -> DashboardView:
    """Derive everything the presentation layer renders from the item set.

    Args:
        partnership_id: Owning partnership
        items: Current item set (cache contents)
        recently_resurfaced: Ids still inside the resurface highlight window
        display_tz: Optional tzinfo used for resurface date labels
        view_id: Dashboard load the view is rendered for
    """
    items = list(items)

    paused_items = sorted(
        (i for i in items if i.is_paused),
        key=lambda i: (i.resurface_at, i.sort_order),
    )
    paused = []
    for item in paused_items:
        when = item.resurface_at.astimezone(display_tz) if display_tz else item.resurface_at
        paused.append(PausedEntry(item=item, resurface_label=format_resurface_date(when)))

    completed = sorted(
        (i for i in items if i.status == ActionItemStatus.COMPLETED),
        key=lambda i: i.sort_order,
    )

    return DashboardView(
        partnership_id=partnership_id,
        priority_groups=group_pending_by_priority(items),
        paused=paused,
        completed=completed,
        needs_attention=needs_attention_count(items),
        recently_resurfaced=list(recently_resurfaced),
        view_id=view_id,
    )
