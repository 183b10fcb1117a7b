from __future__ import annotations

import datetime

from app.checklist.store import ChecklistStore
from app.schemas.checklist import (
    CHECKLIST_STATE_VERSION,
    ChecklistSaveRequest,
    ChecklistSaveResult,
    ChecklistState,
    ChecklistView,
)


def format_timestamp(moment: datetime.datetime) -> str:
    return moment.astimezone(datetime.UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def read_checklist(store: ChecklistStore, deal_id: str) -> ChecklistView | None:
    stored = store.load(deal_id)
    if stored is None:
        return None
    return ChecklistView(
        collateral_type=stored.state.collateral_type,
        item_statuses=stored.state.item_statuses,
        is_saved=stored.is_complete,
        last_saved_at=stored.state.updated_at,
    )


def save_checklist(
    store: ChecklistStore,
    request: ChecklistSaveRequest,
    now: datetime.datetime | None = None,
) -> ChecklistSaveResult:
    moment = now or datetime.datetime.now(datetime.UTC)
    state = ChecklistState(
        collateral_type=request.collateral_type,
        item_statuses=dict(request.item_statuses),
        updated_at=format_timestamp(moment),
        version=CHECKLIST_STATE_VERSION,
    )
    location = store.save(request.deal_id, state, mark_complete=request.mark_complete)
    return ChecklistSaveResult(mark_complete=request.mark_complete, state_property_used=location)
