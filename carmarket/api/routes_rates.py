from fastapi import APIRouter, Request

from carmarket.schemas.rates import RatesResponse, TickerEntry
from carmarket.services.currency import ExchangeRateTable, RateSnapshot

router = APIRouter(prefix="/api/v1/rates", tags=["rates"])


@router.get("", response_model=RatesResponse)
async def get_rates(request: Request):
    snapshot: RateSnapshot | None = getattr(request.app.state, "rates", None)
    if snapshot is None:
        snapshot = RateSnapshot(table=ExchangeRateTable())

    ticker = [
        TickerEntry(
            currency=code,
            rate=quote,
            display=f"{quote:.2f}",
            trend=snapshot.trends.get(code, "flat"),
        )
        for code, quote in snapshot.quotes.items()
    ]
    return RatesResponse(rates=snapshot.table.as_dict(), live=snapshot.live, ticker=ticker)
