from __future__ import annotations

import json
import re

from fastapi import status

from app.config.settings import settings


_LEGACY_MISSING_PROPERTY_RE = re.compile(
    r'propert(?:y|ies)\s+\\*"?([\w-]+)\\*"?\s+do(?:es)?\s+not\s+exist', re.IGNORECASE
)


def truncate(text: str | None, limit: int | None = None) -> str | None:
    if text is None:
        return None
    max_chars = limit if limit is not None else settings.upstream_error_max_chars
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


class RelayError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class MissingInputError(RelayError):
    status_code = status.HTTP_400_BAD_REQUEST


class MissingConfigurationError(RelayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, setting_name: str) -> None:
        super().__init__("Server not configured")
        self.setting_name = setting_name


class InvalidSignatureError(RelayError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, reason: str) -> None:
        super().__init__("Invalid signature")
        self.reason = reason


class StoreUnavailableError(RelayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class UpstreamError(RelayError):
    """Failed call to an upstream API.

    ``upstream_status`` is None when no HTTP response was received.
    """

    def __init__(self, service: str, upstream_status: int | None, body: str | None = None) -> None:
        self.service = service
        self.upstream_status = upstream_status
        self.body = body or ""
        http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
        if upstream_status is not None and upstream_status >= 400:
            http_status = upstream_status
        super().__init__(
            f"{service} request failed",
            details=truncate(self.body) or None,
            status_code=http_status,
        )

    def __str__(self) -> str:
        return f"{self.service} error: {self.upstream_status} {truncate(self.body, 200)}"

    def _json_body(self) -> dict:
        try:
            payload = json.loads(self.body)
        except (json.JSONDecodeError, TypeError):
            return {}
        return payload if isinstance(payload, dict) else {}

    def error_codes(self) -> set[str]:
        codes: set[str] = set()
        for entry in self._json_body().get("errors") or []:
            if isinstance(entry, dict) and entry.get("code"):
                codes.add(str(entry["code"]))
        return codes

    def missing_properties(self) -> set[str]:
        """Property names the upstream reported as non-existent."""
        names: set[str] = set()
        for entry in self._json_body().get("errors") or []:
            if not isinstance(entry, dict) or entry.get("code") != "PROPERTY_DOESNT_EXIST":
                continue
            context = entry.get("context") or {}
            for name in context.get("propertyName") or []:
                names.add(str(name))
            match = _LEGACY_MISSING_PROPERTY_RE.search(str(entry.get("message") or ""))
            if match:
                names.add(match.group(1))
        if not names:
            for match in _LEGACY_MISSING_PROPERTY_RE.finditer(self.body):
                names.add(match.group(1))
        return names
