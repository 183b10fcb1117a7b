from __future__ import annotations

import json
import socket
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

import structlog

from app.config.settings import settings
from app.errors import MissingConfigurationError, UpstreamError


logger = structlog.get_logger(__name__)

_OBSERVATIONS_PATH = "/fred/series/observations"
_MISSING_VALUE = "."


def _build_url(params: dict[str, str]) -> str:
    base_url = settings.fred.base_url.rstrip("/")
    return f"{base_url}{_OBSERVATIONS_PATH}?{urlencode(params)}"


def _parse_value(raw_value: object) -> float | None:
    if raw_value is None or raw_value == _MISSING_VALUE:
        return None
    try:
        return float(raw_value)
    except (TypeError, ValueError):
        return None


def fetch_latest_value(series_id: str) -> float | None:
    """Latest observation of a FRED series, or None when it is missing."""
    api_key = settings.fred.api_key
    if not api_key:
        raise MissingConfigurationError("FRED_API_KEY")

    url = _build_url(
        {
            "series_id": series_id,
            "api_key": api_key,
            "file_type": "json",
            "sort_order": "desc",
            "limit": "1",
        }
    )
    request = Request(url, headers={"Accept": "application/json"})
    try:
        with urlopen(request, timeout=settings.http_timeout_seconds) as response:
            status = response.status
            raw = response.read()
    except HTTPError as exc:
        text = exc.read().decode("utf-8", errors="replace")
        raise UpstreamError("fred", exc.code, text) from exc
    except (URLError, TimeoutError, socket.timeout) as exc:
        raise UpstreamError("fred", None, str(exc)) from exc

    if not 200 <= status < 300:
        raise UpstreamError("fred", status, raw.decode("utf-8", errors="replace"))

    try:
        payload = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("fred_unparsable_body", series_id=series_id)
        return None

    observations = payload.get("observations") if isinstance(payload, dict) else None
    if not isinstance(observations, list) or not observations or not isinstance(observations[0], dict):
        return None
    return _parse_value(observations[0].get("value"))
