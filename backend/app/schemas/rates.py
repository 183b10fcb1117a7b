from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class RateSnapshot(BaseModel):
    SOFR: Optional[float] = None
    PRIME: Optional[float] = None
    TREASURY_5Y: Optional[float] = None
    TREASURY_10Y: Optional[float] = None
