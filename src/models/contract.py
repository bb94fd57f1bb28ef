"""Request/response shapes exchanged with the partner action item store."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from src.models.action_item import ActionItemStatus


class _CamelModel(BaseModel):
    """Base for store payloads whose wire names are camelCase."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ItemDataType(str, Enum):
    """Kinds of structured payload an inline completion form can submit."""

    CHAMPION = "champion"
    WEBSITE = "website"
    BUILDINGS = "buildings"
    CONFIRMATION = "confirmation"


class StatusUpdateRequest(_CamelModel):
    """Body of ``PATCH action-items``."""

    item_id: str = Field(alias="itemId")
    status: ActionItemStatus
    paused_reason: Optional[str] = Field(default=None, alias="pausedReason")
    resurface_at: Optional[datetime] = Field(default=None, alias="resurfaceAt")
    evidence_file_path: Optional[str] = Field(default=None, alias="evidenceFilePath")
    user_id: str = Field(alias="userId")
    partnership_id: str = Field(alias="partnershipId")


class ItemDataRequest(_CamelModel):
    """Body of ``POST action-item-data``."""

    partnership_id: str = Field(alias="partnershipId")
    action_item_id: str = Field(alias="actionItemId")
    user_id: str = Field(alias="userId")
    data_type: ItemDataType = Field(alias="dataType")
    data: dict[str, Any] = Field(default_factory=dict)


class ActivityEvent(_CamelModel):
    """Body of ``POST log-activity``; audit trail only, never read back."""

    partnership_id: str = Field(alias="partnershipId")
    # the audit endpoint reads user_id in snake case
    user_id: str
    action: str
    details: dict[str, Any] = Field(default_factory=dict)


class StoreAck(BaseModel):
    """Generic ``{success}`` (or ``{ok}``) acknowledgement from the store."""

    success: bool = Field(default=False, validation_alias=AliasChoices("success", "ok"))
    message: Optional[str] = None
    error: Optional[str] = None


class UploadEvidenceResponse(BaseModel):
    """Response of ``POST upload-evidence``."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    file_path: Optional[str] = Field(default=None, alias="filePath")
    error: Optional[str] = None


class DashboardDataResponse(BaseModel):
    """Subset of ``GET dashboard/{partnershipId}`` this engine consumes."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    action_items: list[dict[str, Any]] = Field(default_factory=list, alias="actionItems")
    error: Optional[str] = None


# --- Dashboard API bodies -------------------------------------------------


class PauseRequest(BaseModel):
    """Defer an item for a fixed number of weeks."""

    weeks: int


class TabChangeRequest(BaseModel):
    """The visitor switched dashboard tabs."""

    tab_name: str = Field(..., min_length=1, max_length=100)


class BuildingInput(BaseModel):
    name: str = ""
    building_type: str = "elementary"
    lead_name: Optional[str] = None
    lead_email: Optional[str] = None
    staff_count: int = Field(default=0, ge=0)


def _require_text(data: dict[str, Any], key: str) -> None:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' must not be empty")


class ItemDataSubmission(BaseModel):
    """Inline form completion: a data type plus its payload.

    Each form has one minimum field that must be non-empty before the
    item can be completed:
    - champion: championName
    - website: website
    - buildings: at least one building with a name
    - confirmation: nothing required
    """

    data_type: ItemDataType
    data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def minimum_field_present(self) -> "ItemDataSubmission":
        if self.data_type == ItemDataType.CHAMPION:
            _require_text(self.data, "championName")
        elif self.data_type == ItemDataType.WEBSITE:
            _require_text(self.data, "website")
        elif self.data_type == ItemDataType.BUILDINGS:
            raw = self.data.get("buildings") or []
            if not isinstance(raw, list):
                raise ValueError("'buildings' must be a list")
            buildings = [BuildingInput.model_validate(b) for b in raw]
            named = [b for b in buildings if b.name.strip()]
            if not named:
                raise ValueError("at least one building needs a name")
            self.data = {
                **self.data,
                "buildings": [b.model_dump() for b in named],
            }
        return self
