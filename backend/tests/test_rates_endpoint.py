import asyncio
import json
import time
from urllib.parse import parse_qs, urlparse

import pytest

from app.errors import UpstreamError
from app.providers.rates import RATE_SERIES, fetch_rate_snapshot
from app.validation.signature import SIGNATURE_HEADER, TIMESTAMP_HEADER, compute_signature

SERIES_VALUES = {"SOFR": "5.31", "DPRIME": "8.50", "DGS5": "4.12", "DGS10": "4.25"}


def _series_handler(values: dict[str, str], failing: dict[str, int] | None = None):
    failing = failing or {}

    def handler(request):
        series_id = parse_qs(urlparse(request.full_url).query)["series_id"][0]
        if series_id in failing:
            return failing[series_id], "upstream unavailable"
        return 200, json.dumps({"observations": [{"date": "2026-01-02", "value": values[series_id]}]})

    return handler


@pytest.fixture
def fred_upstream(monkeypatch, fake_upstream):
    def _install(values: dict[str, str], failing: dict[str, int] | None = None):
        upstream = fake_upstream(_series_handler(values, failing))
        monkeypatch.setattr("app.providers.fred.urlopen", upstream)
        return upstream

    return _install


def test_rates_returns_all_four_series(client, fred_upstream) -> None:
    upstream = fred_upstream(SERIES_VALUES)

    response = client.get("/hubspot/rates")

    assert response.status_code == 200
    assert response.json() == {"SOFR": 5.31, "PRIME": 8.5, "TREASURY_5Y": 4.12, "TREASURY_10Y": 4.25}
    requested = {parse_qs(urlparse(r.full_url).query)["series_id"][0] for r in upstream.requests}
    assert requested == set(RATE_SERIES.values())


def test_missing_observation_is_null_for_that_series_only(client, fred_upstream) -> None:
    fred_upstream({**SERIES_VALUES, "DGS5": "."})

    response = client.get("/hubspot/rates")

    assert response.status_code == 200
    assert response.json() == {"SOFR": 5.31, "PRIME": 8.5, "TREASURY_5Y": None, "TREASURY_10Y": 4.25}


def test_one_failing_series_fails_the_whole_batch(client, fred_upstream) -> None:
    upstream = fred_upstream(SERIES_VALUES, failing={"DPRIME": 503})

    response = client.get("/hubspot/rates")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch rates"}
    assert len(upstream.requests) == 4


def test_missing_fred_key_is_a_server_error(client, fred_upstream, monkeypatch, relay_settings) -> None:
    upstream = fred_upstream(SERIES_VALUES)
    monkeypatch.setattr(relay_settings.fred, "api_key", None)

    response = client.get("/hubspot/rates")

    assert response.status_code == 500
    assert upstream.requests == []


def test_fetch_rate_snapshot_raises_upstream_error(fred_upstream) -> None:
    fred_upstream(SERIES_VALUES, failing={"DGS10": 500})

    with pytest.raises(UpstreamError) as excinfo:
        asyncio.run(fetch_rate_snapshot())

    assert excinfo.value.upstream_status == 500


def test_rates_rejects_unsigned_request_when_required(client, fred_upstream, monkeypatch, relay_settings) -> None:
    upstream = fred_upstream(SERIES_VALUES)
    monkeypatch.setattr(relay_settings.hubspot, "require_signature", True)
    monkeypatch.setattr(relay_settings.hubspot, "client_secret", "shh")

    response = client.get("/hubspot/rates")

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid signature"}
    assert upstream.requests == []


def test_rates_accepts_signed_request(client, fred_upstream, monkeypatch, relay_settings) -> None:
    fred_upstream(SERIES_VALUES)
    monkeypatch.setattr(relay_settings.hubspot, "require_signature", True)
    monkeypatch.setattr(relay_settings.hubspot, "client_secret", "shh")
    timestamp = str(int(time.time() * 1000))
    signature = compute_signature("shh", "GET", "https://testserver/hubspot/rates?portalId=123", "", timestamp)

    response = client.get(
        "/hubspot/rates",
        params={"portalId": "123"},
        headers={SIGNATURE_HEADER: signature, TIMESTAMP_HEADER: timestamp},
    )

    assert response.status_code == 200
    assert response.json()["SOFR"] == 5.31


def test_signature_required_without_secret_is_misconfiguration(client, fred_upstream, monkeypatch, relay_settings) -> None:
    fred_upstream(SERIES_VALUES)
    monkeypatch.setattr(relay_settings.hubspot, "require_signature", True)

    response = client.get("/hubspot/rates")

    assert response.status_code == 500
    assert response.json() == {"error": "Server not configured"}
