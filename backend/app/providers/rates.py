from __future__ import annotations

import asyncio

from app.providers import fred
from app.schemas.rates import RateSnapshot


RATE_SERIES: dict[str, str] = {
    "SOFR": "SOFR",
    "PRIME": "DPRIME",
    "TREASURY_5Y": "DGS5",
    "TREASURY_10Y": "DGS10",
}


async def fetch_rate_snapshot() -> RateSnapshot:
    results = await asyncio.gather(
        *(asyncio.to_thread(fred.fetch_latest_value, series_id) for series_id in RATE_SERIES.values()),
        return_exceptions=True,
    )
    # all four calls have settled; any failure fails the whole snapshot
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return RateSnapshot(**dict(zip(RATE_SERIES.keys(), results)))
