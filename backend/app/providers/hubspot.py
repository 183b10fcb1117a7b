from __future__ import annotations

import json
import socket
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from app.config.settings import settings
from app.errors import MissingConfigurationError, UpstreamError


_DEALS_PATH = "/crm/v3/objects/deals"


def _build_url(deal_id: str, params: dict[str, str] | None = None) -> str:
    base_url = settings.hubspot.base_url.rstrip("/")
    url = f"{base_url}{_DEALS_PATH}/{quote(str(deal_id), safe='')}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


def _send(url: str, method: str, body: dict | None = None) -> dict:
    token = settings.hubspot.access_token
    if not token:
        raise MissingConfigurationError("HUBSPOT_ACCESS_TOKEN")

    data = json.dumps(body).encode("utf-8") if body is not None else None
    request = Request(
        url,
        data=data,
        method=method,
        headers={
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        },
    )
    try:
        with urlopen(request, timeout=settings.http_timeout_seconds) as response:
            status = response.status
            raw = response.read().decode("utf-8")
    except HTTPError as exc:
        text = exc.read().decode("utf-8", errors="replace")
        raise UpstreamError("hubspot", exc.code, text) from exc
    except (URLError, TimeoutError, socket.timeout) as exc:
        raise UpstreamError("hubspot", None, str(exc)) from exc

    if not 200 <= status < 300:
        raise UpstreamError("hubspot", status, raw)
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise UpstreamError("hubspot", status, raw) from exc
    return payload if isinstance(payload, dict) else {}


def get_deal_properties(deal_id: str, names: list[str]) -> dict[str, Any] | None:
    """Requested properties of a deal, or None if the deal does not exist."""
    url = _build_url(deal_id, {"properties": ",".join(names)})
    try:
        payload = _send(url, "GET")
    except UpstreamError as exc:
        if exc.upstream_status == 404:
            return None
        raise
    properties = payload.get("properties")
    return properties if isinstance(properties, dict) else {}


def update_deal_properties(deal_id: str, properties: dict[str, Any]) -> dict:
    return _send(_build_url(deal_id), "PATCH", {"properties": properties})
