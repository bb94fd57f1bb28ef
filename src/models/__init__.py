"""Models package exports."""

from src.models.action_item import (
    ActionItem,
    ActionItemCategory,
    ActionItemPriority,
    ActionItemStatus,
    CommandResult,
    DashboardView,
    DwellSample,
    PausedEntry,
    PriorityGroup,
)
from src.models.contract import (
    ActivityEvent,
    ItemDataRequest,
    ItemDataSubmission,
    ItemDataType,
    StatusUpdateRequest,
    StoreAck,
    UploadEvidenceResponse,
)

__all__ = [
    "ActionItem",
    "ActionItemCategory",
    "ActionItemPriority",
    "ActionItemStatus",
    "ActivityEvent",
    "CommandResult",
    "DashboardView",
    "DwellSample",
    "ItemDataRequest",
    "ItemDataSubmission",
    "ItemDataType",
    "PausedEntry",
    "PriorityGroup",
    "StatusUpdateRequest",
    "StoreAck",
    "UploadEvidenceResponse",
]
