from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


CHECKLIST_STATE_VERSION = 1


def coerce_deal_id(value: object) -> object:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value) if value else None
    return value


class ChecklistState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    collateral_type: Optional[str] = Field(default=None, alias="collateralType")
    item_statuses: dict[str, str] = Field(default_factory=dict, alias="itemStatuses")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    version: int = CHECKLIST_STATE_VERSION

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ChecklistView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    collateral_type: Optional[str] = Field(default=None, alias="collateralType")
    item_statuses: dict[str, str] = Field(default_factory=dict, alias="itemStatuses")
    is_saved: bool = Field(default=False, alias="isSaved")
    last_saved_at: Optional[str] = Field(default=None, alias="lastSavedAt")


class ChecklistSaveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deal_id: Optional[str] = Field(default=None, alias="dealId")
    collateral_type: Optional[str] = Field(default=None, alias="collateralType")
    item_statuses: dict[str, str] = Field(default_factory=dict, alias="itemStatuses")
    mark_complete: bool = Field(default=False, alias="markComplete")

    @field_validator("deal_id", mode="before")
    @classmethod
    def _stringify_numeric_id(cls, value: object) -> object:
        return coerce_deal_id(value)

    @field_validator("item_statuses", mode="before")
    @classmethod
    def _default_item_statuses(cls, value: object) -> object:
        return {} if value is None else value


class ChecklistSaveResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    mark_complete: bool = Field(alias="markComplete")
    state_property_used: Optional[str] = Field(default=None, alias="statePropertyUsed")
