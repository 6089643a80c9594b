from pydantic import BaseModel

from carmarket.schemas.listing import Currency, Listing, ListingStatus


class TransitionRequest(BaseModel):
    transition: str


class PendingConfirmationResponse(BaseModel):
    listing_id: str
    transition: str
    prompt: str
    token: str


class ConfirmRequest(BaseModel):
    token: str


class TransitionResultResponse(BaseModel):
    listing_id: str
    transition: str
    status: ListingStatus | None
    deleted: bool = False


class EditRequest(BaseModel):
    brand: str
    model: str
    price: float | str
    currency: Currency = Currency.STG
    seller_name: str
    publish: bool = False


class AdminListingsResponse(BaseModel):
    view: str
    total: int
    listings: list[Listing]
