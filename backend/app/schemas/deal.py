from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.checklist import coerce_deal_id


class DealUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    deal_id: Optional[str] = Field(default=None, alias="dealId")
    properties: Optional[dict[str, Any]] = None

    @field_validator("deal_id", mode="before")
    @classmethod
    def _stringify_numeric_id(cls, value: object) -> object:
        return coerce_deal_id(value)
