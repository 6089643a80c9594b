import logging
import math
from dataclasses import dataclass, field

import httpx

from carmarket.config import settings
from carmarket.schemas.listing import Currency
from carmarket.services.storage import LocalStorage

logger = logging.getLogger(__name__)

BASE_CURRENCY = Currency.STG

SYMBOLS = {
    "STG": "£",
    "TL": "₺",
    "EUR": "€",
}

# Rate source currency codes for the currencies we price in
SOURCE_CODES = {
    Currency.TL: "TRY",
    Currency.EUR: "EUR",
}

LAST_RATES_KEY = "last_rates"


def fallback_rates() -> dict[str, float]:
    return {
        Currency.STG.value: 1.0,
        Currency.TL.value: settings.FALLBACK_TL_RATE,
        Currency.EUR.value: settings.FALLBACK_EUR_RATE,
    }


def _finite(value) -> float | None:
    """``value`` as a finite float, or None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _positive(value) -> float | None:
    number = _finite(value)
    return number if number is not None and number > 0 else None


class ExchangeRateTable:
    """Units of STG per one unit of each currency. STG is always 1."""

    def __init__(self, rates: dict[str, float] | None = None):
        self._rates = fallback_rates()
        for code, rate in (rates or {}).items():
            rate = _positive(rate)
            if rate is None:
                logger.warning(f"Ignoring unusable rate for {code}, keeping {self._rates.get(str(code).upper())}")
                continue
            self._rates[str(code).upper()] = rate
        self._rates[BASE_CURRENCY.value] = 1.0

    def rate(self, currency) -> float:
        code = _code(currency)
        # Unknown codes are treated as the base currency
        return self._rates.get(code, 1.0)

    def to_base(self, amount, currency) -> float:
        return _to_number(amount) * self.rate(currency)

    def from_base(self, amount, currency) -> float:
        return _to_number(amount) / self.rate(currency)

    def as_dict(self) -> dict[str, float]:
        return dict(self._rates)


@dataclass
class RateSnapshot:
    table: ExchangeRateTable
    live: bool = False
    # 1 STG = x units, as quoted by the rate source
    quotes: dict[str, float] = field(default_factory=dict)
    trends: dict[str, str] = field(default_factory=dict)


def _code(currency) -> str:
    if isinstance(currency, Currency):
        return currency.value
    return str(currency or BASE_CURRENCY.value).upper()


def _to_number(amount) -> float:
    if isinstance(amount, str):
        amount = amount.strip()
    number = _finite(amount)
    return number if number is not None else 0.0


def _group(number: float) -> str:
    if float(number).is_integer():
        return f"{int(number):,}"
    text = f"{round(number, 3):,.3f}".rstrip("0").rstrip(".")
    return text


def format_price(amount, currency) -> str:
    """Currency symbol plus the amount with grouped thousands."""
    symbol = SYMBOLS.get(_code(currency), SYMBOLS["STG"])

    if isinstance(amount, bool) or amount is None or amount == "":
        return f"{symbol}0"
    if isinstance(amount, (int, float)):
        if _finite(amount) is None:
            return f"{symbol}0"
        return f"{symbol}{_group(amount)}"
    value = _finite(str(amount).replace(",", "").strip())
    if value is None:
        return f"{symbol}0"
    return f"{symbol}{int(value):,}"


def format_mileage(km) -> str:
    if km is None or km == "" or isinstance(km, bool):
        return ""
    value = _finite(str(km).replace(",", ""))
    if value is None:
        return ""
    return f"{int(value):,} KM"


def compute_trend(current: float | None, previous: float | None) -> str:
    if current is None or previous is None:
        return "flat"
    if current > previous:
        return "up"
    if current < previous:
        return "down"
    return "flat"


def _read_quotes(data) -> dict[str, float]:
    """Positive finite quotes per currency from a rate source payload."""
    source_rates = data.get("rates") if isinstance(data, dict) else None
    if not isinstance(source_rates, dict):
        raise ValueError(f"Unexpected rate payload: {str(data)[:100]}")

    quotes = {}
    for currency, source_code in SOURCE_CODES.items():
        quote = _positive(source_rates.get(source_code))
        if quote is None:
            logger.warning(f"No usable {source_code} quote in rate payload")
            continue
        quotes[currency.value] = quote
    return quotes


def _last_quotes(storage: LocalStorage | None) -> dict[str, float | None]:
    last = storage.get_json(LAST_RATES_KEY, {}) if storage else {}
    if not isinstance(last, dict):
        last = {}
    return {code: _finite(last.get(code.lower())) for code in ("TL", "EUR")}


async def fetch_exchange_rates(
    storage: LocalStorage | None = None,
    client: httpx.AsyncClient | None = None,
) -> RateSnapshot:
    """Fetch current rates from the rate source, fallback to config.

    The previous quotes are read from local storage to compute the ticker
    trends and the new quotes are saved back for the next run. Never raises.
    """
    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                data = await _get_rates(own_client)
        else:
            data = await _get_rates(client)
        quotes = _read_quotes(data)
        table = ExchangeRateTable({code: 1 / quote for code, quote in quotes.items()})
    except Exception as e:
        fallback = ExchangeRateTable()
        logger.warning(f"Failed to fetch exchange rates: {e}, using fallback {fallback.as_dict()}")
        return RateSnapshot(table=fallback)

    last = _last_quotes(storage)
    snapshot = RateSnapshot(
        table=table,
        live=bool(quotes),
        quotes=quotes,
        trends={code: compute_trend(quote, last.get(code)) for code, quote in quotes.items()},
    )
    for code in quotes:
        logger.info(f"Updated {code} rate: 1 {code} = {snapshot.table.rate(code):.6f} STG")

    if storage and quotes:
        try:
            storage.set_json(LAST_RATES_KEY, {code.lower(): quotes.get(code) for code in ("TL", "EUR")})
        except OSError as e:
            logger.error(f"Error saving rate snapshot: {e}")
    return snapshot


async def _get_rates(client: httpx.AsyncClient):
    resp = await client.get(settings.EXCHANGE_RATE_API, timeout=settings.HTTP_TIMEOUT)
    resp.raise_for_status()
    return resp.json()
