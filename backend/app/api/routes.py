from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends, Query, Request, status

from app.checklist.service import read_checklist, save_checklist
from app.checklist.store import ChecklistStore
from app.config.settings import settings
from app.errors import (
    InvalidSignatureError,
    MissingConfigurationError,
    MissingInputError,
    RelayError,
    UpstreamError,
)
from app.providers import hubspot
from app.providers.rates import fetch_rate_snapshot
from app.schemas.checklist import ChecklistSaveRequest
from app.schemas.deal import DealUpdateRequest
from app.schemas.rates import RateSnapshot
from app.validation.signature import build_request_uri, check_signature

router = APIRouter()
logger = structlog.get_logger(__name__)


def get_checklist_store(request: Request) -> ChecklistStore:
    return request.app.state.checklist_store


async def require_signature(request: Request) -> None:
    if not settings.hubspot.require_signature:
        return
    secret = settings.hubspot.client_secret
    if not secret:
        raise MissingConfigurationError("HUBSPOT_CLIENT_SECRET")

    body = (await request.body()).decode("utf-8", errors="replace")
    reason = check_signature(
        secret=secret,
        method=request.method,
        uri=build_request_uri(request),
        body=body,
        headers=request.headers,
        portal_id=request.query_params.get("portalId"),
        allowed_portal_ids=settings.hubspot.portal_allow_list,
    )
    if reason:
        logger.warning("signature_rejected", reason=reason, path=request.url.path)
        raise InvalidSignatureError(reason)


def _require_deal_id(deal_id: Optional[str]) -> str:
    if not (deal_id or "").strip():
        raise MissingInputError("Missing dealId")
    return deal_id


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/hubspot/collateral-checklist")
def get_collateral_checklist(
    deal_id: Optional[str] = Query(default=None, alias="dealId"),
    store: ChecklistStore = Depends(get_checklist_store),
) -> dict:
    deal_id = _require_deal_id(deal_id)
    try:
        view = read_checklist(store, deal_id)
    except UpstreamError as exc:
        raise RelayError("Failed to load checklist", details=exc.details, status_code=exc.status_code) from exc
    if view is None:
        return {}
    return view.model_dump(by_alias=True)


@router.post("/hubspot/collateral-checklist")
def post_collateral_checklist(
    payload: Optional[ChecklistSaveRequest] = Body(default=None),
    store: ChecklistStore = Depends(get_checklist_store),
) -> dict:
    if payload is None:
        raise MissingInputError("Missing dealId")
    payload.deal_id = _require_deal_id(payload.deal_id)
    try:
        result = save_checklist(store, payload)
    except UpstreamError as exc:
        raise RelayError("Failed to save checklist", details=exc.details, status_code=exc.status_code) from exc
    logger.info(
        "checklist_saved",
        deal_id=payload.deal_id,
        mark_complete=result.mark_complete,
        location=result.state_property_used,
    )
    return result.model_dump(by_alias=True)


@router.get(
    "/hubspot/rates",
    response_model=RateSnapshot,
    dependencies=[Depends(require_signature)],
)
async def get_rates() -> RateSnapshot:
    try:
        return await fetch_rate_snapshot()
    except RelayError as exc:
        logger.error("rates_fetch_failed", error=str(exc), details=exc.details)
        raise RelayError(
            "Failed to fetch rates", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        ) from exc


@router.post(
    "/hubspot/update-deal-rates",
    dependencies=[Depends(require_signature)],
)
def update_deal_rates(payload: Optional[DealUpdateRequest] = Body(default=None)) -> dict:
    if payload is None or not payload.deal_id or payload.properties is None:
        raise MissingInputError("Missing dealId or properties")

    try:
        hubspot.update_deal_properties(payload.deal_id, payload.properties)
    except UpstreamError as exc:
        raise RelayError("HubSpot update failed", details=exc.details, status_code=exc.status_code) from exc
    logger.info("deal_updated", deal_id=payload.deal_id, properties=sorted(payload.properties))
    return {"success": True}
