from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass

import structlog
from pydantic import ValidationError
from redis import Redis
from redis.exceptions import RedisError

from app.config.settings import ChecklistPropertySettings, Settings
from app.errors import StoreUnavailableError, UpstreamError
from app.parsing.state_text import decode_state_text
from app.providers import hubspot
from app.schemas.checklist import ChecklistState


logger = structlog.get_logger(__name__)

_TRUE_VALUES = {"true", "1", "yes"}


@dataclass
class StoredChecklist:
    state: ChecklistState
    is_complete: bool = False
    source: str | None = None


class ChecklistStore(ABC):
    """Persistence for per-deal checklist state.

    A store is created once per application and closed on shutdown.
    """

    @abstractmethod
    def load(self, deal_id: str) -> StoredChecklist | None:
        """Saved checklist for a deal, or None when nothing readable exists."""
        ...

    @abstractmethod
    def save(self, deal_id: str, state: ChecklistState, mark_complete: bool) -> str | None:
        """Persist state and completion flag; return the location written."""
        ...

    def close(self) -> None:
        return None


class InMemoryChecklistStore(ChecklistStore):
    def __init__(self) -> None:
        self._records: dict[str, StoredChecklist] = {}

    def load(self, deal_id: str) -> StoredChecklist | None:
        return self._records.get(deal_id)

    def save(self, deal_id: str, state: ChecklistState, mark_complete: bool) -> str | None:
        self._records[deal_id] = StoredChecklist(state=state.model_copy(deep=True), is_complete=mark_complete)
        return None

    def close(self) -> None:
        self._records.clear()


class RedisChecklistStore(ChecklistStore):
    key_prefix = "checklist"

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> RedisChecklistStore:
        return cls(Redis.from_url(redis_url))

    def _key(self, deal_id: str) -> str:
        return f"{self.key_prefix}:{deal_id}"

    def load(self, deal_id: str) -> StoredChecklist | None:
        try:
            raw = self._client.get(self._key(deal_id))
        except RedisError as exc:
            raise StoreUnavailableError("Checklist store unavailable") from exc
        if not raw:
            return None

        try:
            record = json.loads(raw)
            state = ChecklistState.model_validate(record["state"])
        except (json.JSONDecodeError, KeyError, TypeError, ValidationError):
            logger.warning("checklist_record_unreadable", deal_id=deal_id, store="redis")
            return None
        return StoredChecklist(state=state, is_complete=bool(record.get("isComplete")))

    def save(self, deal_id: str, state: ChecklistState, mark_complete: bool) -> str | None:
        record = {"state": state.model_dump(by_alias=True), "isComplete": mark_complete}
        try:
            self._client.set(self._key(deal_id), json.dumps(record))
        except RedisError as exc:
            raise StoreUnavailableError("Checklist store unavailable") from exc
        return None

    def close(self) -> None:
        self._client.close()


class HubSpotChecklistStore(ChecklistStore):
    """Checklist state kept in custom properties on the deal record."""

    def __init__(self, properties: ChecklistPropertySettings) -> None:
        self.properties = properties

    def _property_names(self) -> list[str]:
        names = [
            self.properties.state_property,
            self.properties.fallback_state_property,
            self.properties.complete_property,
            self.properties.collateral_type_property,
        ]
        return [name for name in dict.fromkeys(names) if name]

    def load(self, deal_id: str) -> StoredChecklist | None:
        values = hubspot.get_deal_properties(deal_id, self._property_names())
        if values is None:
            return None

        source = self.properties.state_property
        raw = values.get(source)
        if not raw and self.properties.fallback_state_property:
            source = self.properties.fallback_state_property
            raw = values.get(source)
        if not raw:
            return None

        payload = decode_state_text(raw)
        if payload is None:
            logger.warning("checklist_state_unreadable", deal_id=deal_id, property=source)
            return None
        try:
            state = ChecklistState.model_validate(payload)
        except ValidationError:
            logger.warning("checklist_state_invalid", deal_id=deal_id, property=source)
            return None

        if state.collateral_type is None:
            state.collateral_type = values.get(self.properties.collateral_type_property) or None
        complete_value = str(values.get(self.properties.complete_property) or "").strip().lower()
        return StoredChecklist(state=state, is_complete=complete_value in _TRUE_VALUES, source=source)

    def _build_properties(self, state_property: str, state: ChecklistState, mark_complete: bool) -> dict[str, str]:
        values = {
            state_property: state.to_json(),
            self.properties.complete_property: "true" if mark_complete else "false",
        }
        if mark_complete:
            values[self.properties.status_property] = self.properties.complete_status_value
        return values

    def _should_use_fallback(self, exc: UpstreamError) -> bool:
        fallback = self.properties.fallback_state_property
        if not fallback or fallback == self.properties.state_property:
            return False
        if exc.upstream_status != 400:
            return False
        return self.properties.state_property in exc.missing_properties()

    def save(self, deal_id: str, state: ChecklistState, mark_complete: bool) -> str | None:
        state_property = self.properties.state_property
        try:
            hubspot.update_deal_properties(deal_id, self._build_properties(state_property, state, mark_complete))
            return state_property
        except UpstreamError as exc:
            if not self._should_use_fallback(exc):
                raise
            logger.warning(
                "checklist_state_property_missing",
                deal_id=deal_id,
                property=state_property,
                fallback=self.properties.fallback_state_property,
            )

        state_property = self.properties.fallback_state_property
        hubspot.update_deal_properties(deal_id, self._build_properties(state_property, state, mark_complete))
        return state_property


def build_checklist_store(config: Settings) -> ChecklistStore:
    if config.checklist_store == "memory":
        return InMemoryChecklistStore()
    if config.checklist_store == "redis":
        return RedisChecklistStore.from_url(config.redis_url)
    return HubSpotChecklistStore(config.checklist)
