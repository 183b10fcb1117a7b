from __future__ import annotations

from typing import List, Literal

from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class HubSpotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DEALRELAY_HUBSPOT_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )
    access_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HUBSPOT_ACCESS_TOKEN", "DEALRELAY_HUBSPOT_ACCESS_TOKEN"),
    )
    client_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("HUBSPOT_CLIENT_SECRET", "DEALRELAY_HUBSPOT_CLIENT_SECRET"),
    )
    allowed_portal_ids: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "ALLOWED_PORTAL_IDS", "ALLOWED_PORTAL_ID", "DEALRELAY_HUBSPOT_ALLOWED_PORTAL_IDS"
        ),
    )
    base_url: str = "https://api.hubapi.com"
    require_signature: bool = False

    @property
    def portal_allow_list(self) -> List[str]:
        if not self.allowed_portal_ids:
            return []
        return [value.strip() for value in self.allowed_portal_ids.split(",") if value.strip()]


class FredSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DEALRELAY_FRED_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FRED_API_KEY", "DEALRELAY_FRED_API_KEY"),
    )
    base_url: str = "https://api.stlouisfed.org"


class ChecklistPropertySettings(BaseSettings):
    """Deal property names the checklist is written to, overridable per portal."""

    model_config = SettingsConfigDict(
        env_prefix="DEALRELAY_CHECKLIST_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )
    state_property: str = "collateral_checklist_state"
    fallback_state_property: str | None = "collateral_checklist_json"
    complete_property: str = "collateral_checklist_complete"
    status_property: str = "collateral_checklist_status"
    complete_status_value: str = "Complete"
    collateral_type_property: str = "collateral_type"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DEALRELAY_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("PORT", "DEALRELAY_PORT"),
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "DEALRELAY_REDIS_URL"),
    )
    checklist_store: Literal["hubspot", "redis", "memory"] = "hubspot"
    http_timeout_seconds: float = 10.0
    upstream_error_max_chars: int = 500
    log_level: str = "INFO"
    log_json: bool = False

    hubspot: HubSpotSettings = Field(default_factory=HubSpotSettings)
    fred: FredSettings = Field(default_factory=FredSettings)
    checklist: ChecklistPropertySettings = Field(default_factory=ChecklistPropertySettings)


settings = Settings()
