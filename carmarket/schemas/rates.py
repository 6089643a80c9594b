from pydantic import BaseModel


class TickerEntry(BaseModel):
    currency: str
    rate: float  # units of this currency per 1 STG
    display: str
    trend: str  # "up", "down" or "flat"


class RatesResponse(BaseModel):
    rates: dict[str, float]  # STG per 1 unit
    live: bool
    ticker: list[TickerEntry]
