"""HubSpot v3 request signature checks.

The signature is a base64 HMAC-SHA256, keyed by the app's client secret, over
``method + uri + body + timestamp`` where ``uri`` is the absolute URL the
platform called (scheme and host as seen by the proxy in front of us).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from typing import Mapping

from fastapi import Request


SIGNATURE_HEADER = "x-hubspot-signature-v3"
TIMESTAMP_HEADER = "x-hubspot-request-timestamp"
MAX_TIMESTAMP_SKEW_MS = 5 * 60 * 1000


def is_recent_timestamp(timestamp: str, now_ms: int | None = None) -> bool:
    try:
        timestamp_ms = int(float(timestamp))
    except (TypeError, ValueError):
        return False
    current = now_ms if now_ms is not None else int(time.time() * 1000)
    return abs(current - timestamp_ms) <= MAX_TIMESTAMP_SKEW_MS


def compute_signature(secret: str, method: str, uri: str, body: str, timestamp: str) -> str:
    canonical = f"{method}{uri}{body}{timestamp}"
    digest = hmac.new(secret.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def build_request_uri(request: Request) -> str:
    protocol = request.headers.get("x-forwarded-proto") or "https"
    host = request.headers.get("x-forwarded-host") or request.url.hostname or ""
    path = request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return f"{protocol}://{host}{path}"


def check_signature(
    *,
    secret: str,
    method: str,
    uri: str,
    body: str,
    headers: Mapping[str, str],
    portal_id: str | None = None,
    allowed_portal_ids: list[str] | None = None,
    now_ms: int | None = None,
) -> str | None:
    """Return the rejection reason, or None when the request is authentic."""
    signature = headers.get(SIGNATURE_HEADER)
    timestamp = headers.get(TIMESTAMP_HEADER)
    if not signature or not timestamp:
        return "missing_signature_or_timestamp"

    if not is_recent_timestamp(timestamp, now_ms):
        return "stale_timestamp"

    expected = compute_signature(secret, method, uri, body, timestamp)
    if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
        return "signature_mismatch"

    if allowed_portal_ids and portal_id and portal_id not in allowed_portal_ids:
        return "portal_not_allowed"

    return None
