from __future__ import annotations

import io
import json
from typing import Callable
from urllib.error import HTTPError
from urllib.parse import parse_qs, unquote, urlparse

import pytest
from fastapi.testclient import TestClient

from app.config.settings import settings
from app.main import create_app


class FakeResponse:
    def __init__(self, status: int, body: str | bytes) -> None:
        self.status = status
        self._body = body if isinstance(body, bytes) else body.encode("utf-8")

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def read(self) -> bytes:
        return self._body


def http_error(request, status: int, body: str) -> HTTPError:
    return HTTPError(request.full_url, status, "error", {}, io.BytesIO(body.encode("utf-8")))


class FakeUpstream:
    """Stands in for urlopen; ``handler(request)`` returns (status, body)."""

    def __init__(self, handler: Callable) -> None:
        self.handler = handler
        self.requests: list = []

    def __call__(self, request, timeout=None) -> FakeResponse:
        self.requests.append(request)
        status, body = self.handler(request)
        if status >= 400:
            raise http_error(request, status, body)
        return FakeResponse(status, body)


class FakeCrm:
    """Minimal deals endpoint: GET returns stored properties, PATCH merges them."""

    def __init__(self) -> None:
        self.deals: dict[str, dict[str, str]] = {}
        self.requests: list = []
        self.missing_properties: set[str] = set()
        self.mangle_rich_text = False

    def __call__(self, request, timeout=None) -> FakeResponse:
        self.requests.append(request)
        parsed = urlparse(request.full_url)
        deal_id = unquote(parsed.path.rsplit("/", 1)[-1])

        if request.get_method() == "GET":
            if deal_id not in self.deals:
                raise http_error(request, 404, json.dumps({"status": "error", "message": "Object not found"}))
            names = parse_qs(parsed.query)["properties"][0].split(",")
            stored = self.deals[deal_id]
            payload = {"id": deal_id, "properties": {name: stored.get(name) for name in names}}
            return FakeResponse(200, json.dumps(payload))

        properties = json.loads(request.data)["properties"]
        unknown = [name for name in properties if name in self.missing_properties]
        if unknown:
            body = {
                "status": "error",
                "message": "Property values were not valid",
                "category": "VALIDATION_ERROR",
                "errors": [
                    {
                        "message": f'Property "{name}" does not exist',
                        "code": "PROPERTY_DOESNT_EXIST",
                        "context": {"propertyName": [name]},
                    }
                    for name in unknown
                ],
            }
            raise http_error(request, 400, json.dumps(body))

        stored = self.deals.setdefault(deal_id, {})
        for name, value in properties.items():
            if self.mangle_rich_text and isinstance(value, str) and value.startswith("{"):
                value = "<p>" + value.replace('"', "&quot;") + "</p>"
            stored[name] = value
        return FakeResponse(200, json.dumps({"id": deal_id, "properties": stored}))

    def patch_bodies(self) -> list[dict]:
        return [json.loads(request.data) for request in self.requests if request.get_method() == "PATCH"]


@pytest.fixture(autouse=True)
def relay_settings(monkeypatch):
    monkeypatch.setattr(settings.hubspot, "access_token", "test-token")
    monkeypatch.setattr(settings.hubspot, "client_secret", None)
    monkeypatch.setattr(settings.hubspot, "allowed_portal_ids", None)
    monkeypatch.setattr(settings.hubspot, "require_signature", False)
    monkeypatch.setattr(settings.hubspot, "base_url", "https://api.hubapi.com")
    monkeypatch.setattr(settings.fred, "api_key", "test-fred-key")
    monkeypatch.setattr(settings.fred, "base_url", "https://api.stlouisfed.org")
    monkeypatch.setattr(settings, "checklist_store", "hubspot")
    return settings


@pytest.fixture
def fake_crm(monkeypatch) -> FakeCrm:
    crm = FakeCrm()
    monkeypatch.setattr("app.providers.hubspot.urlopen", crm)
    return crm


@pytest.fixture
def fake_upstream():
    def _make(handler: Callable) -> FakeUpstream:
        return FakeUpstream(handler)

    return _make


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
