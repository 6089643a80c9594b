from pydantic import BaseModel

from carmarket.schemas.listing import Currency, ListingStatus

ANY = "any"


class FilterCriteria(BaseModel):
    search: str = ""
    brand: str = ANY
    location: str = ANY
    fuel_type: str = ANY
    transmission: str = ANY
    currency: Currency = Currency.STG
    min_price: float = 0
    max_price: float | None = None  # None means the catalog ceiling
    status: ListingStatus | None = None
