"""Action item models for the partner onboarding checklist."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class ActionItemStatus(str, Enum):
    """Lifecycle state of an action item."""

    PENDING = "pending"
    COMPLETED = "completed"
    PAUSED = "paused"


# Statuses the store may report that fold into pending
LEGACY_PENDING_STATUSES = {"in_progress"}


class ActionItemCategory(str, Enum):
    """What kind of onboarding work the item represents."""

    ONBOARDING = "onboarding"
    SCHEDULING = "scheduling"
    ENGAGEMENT = "engagement"
    DATA = "data"
    DOCUMENTATION = "documentation"


class ActionItemPriority(str, Enum):
    """Priority bucket used to group pending items on the dashboard."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ActionItem(BaseModel):
    """A single onboarding task tracked per partnership.

    Exactly one of these holds, matching ``status``:
    - completed: ``completed_at`` set, no pause metadata
    - paused: ``paused_at``, ``paused_reason`` and ``resurface_at`` set
    - pending: none of the above
    """

    id: str
    partnership_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: ActionItemCategory = ActionItemCategory.ENGAGEMENT
    priority: ActionItemPriority = ActionItemPriority.MEDIUM
    sort_order: int = 0
    status: ActionItemStatus = ActionItemStatus.PENDING
    completed_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    paused_reason: Optional[str] = None
    resurface_at: Optional[datetime] = None
    evidence_file_path: Optional[str] = None
    due_date: Optional[datetime] = None

    @field_validator("completed_at", "paused_at", "resurface_at", "due_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Treat naive timestamps from the store as UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def metadata_matches_status(self) -> "ActionItem":
        """Reject records whose timestamps disagree with their status."""
        pause_fields = (self.paused_at, self.resurface_at)
        if self.status == ActionItemStatus.COMPLETED:
            if self.completed_at is None:
                raise ValueError("completed_at required when status is completed")
            if any(f is not None for f in pause_fields) or self.paused_reason:
                raise ValueError("completed items cannot carry pause metadata")
        elif self.status == ActionItemStatus.PAUSED:
            if any(f is None for f in pause_fields):
                raise ValueError("paused_at and resurface_at required when status is paused")
            if self.completed_at is not None:
                raise ValueError("paused items cannot have completed_at")
        else:
            if self.completed_at is not None or any(f is not None for f in pause_fields):
                raise ValueError("pending items cannot carry completion or pause metadata")
            if self.paused_reason:
                raise ValueError("pending items cannot carry a pause reason")
        return self

    @property
    def is_paused(self) -> bool:
        return self.status == ActionItemStatus.PAUSED

    @classmethod
    def from_store(cls, record: dict[str, Any]) -> "ActionItem":
        """Build an item from a store row, tolerating leftover metadata.

        The store clears only ``paused_at`` when an item is completed or
        resumed, and older rows may still say ``in_progress``. Fields that
        do not belong to the reported status are dropped here so those rows
        still load. A paused row missing its pause timestamps, or a
        completed row without ``completed_at``, is still rejected.
        """
        data = dict(record)
        status = data.get("status") or ActionItemStatus.PENDING.value
        if isinstance(status, str) and status in LEGACY_PENDING_STATUSES:
            status = ActionItemStatus.PENDING.value
        data["status"] = status

        if status != ActionItemStatus.PAUSED.value:
            data.update(paused_at=None, paused_reason=None, resurface_at=None)
        if status != ActionItemStatus.COMPLETED.value:
            data["completed_at"] = None
        return cls.model_validate(data)


class DwellSample(BaseModel):
    """Time spent on one dashboard tab during a single visit."""

    partnership_id: str
    user_id: str
    tab_name: str
    duration_seconds: int = Field(ge=0)


class PriorityGroup(BaseModel):
    """Pending items sharing a priority, in render order."""

    priority: ActionItemPriority
    label: str
    items: list[ActionItem] = Field(default_factory=list)


class PausedEntry(BaseModel):
    """A paused item with its human-readable resurface date."""

    item: ActionItem
    resurface_label: str


class DashboardView(BaseModel):
    """Derived checklist state consumed by the presentation layer."""

    partnership_id: str
    priority_groups: list[PriorityGroup] = Field(default_factory=list)
    paused: list[PausedEntry] = Field(default_factory=list)
    completed: list[ActionItem] = Field(default_factory=list)
    needs_attention: int = 0
    recently_resurfaced: list[str] = Field(default_factory=list)
    # Identifies this dashboard load; tracking calls send it back
    view_id: Optional[str] = None


class CommandResult(BaseModel):
    """Outcome of a lifecycle command issued from the dashboard.

    Attributes:
        ok: False when the command was rejected locally or the upload failed
        item: The item as it now appears in the local cache
        message: Optional user-facing toast text
        error: Machine-readable reason when ok is False
    """

    ok: bool
    item: Optional[ActionItem] = None
    message: Optional[str] = None
    error: Optional[str] = None
