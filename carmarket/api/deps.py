from fastapi import HTTPException, Request

from carmarket.config import settings
from carmarket.schemas.listing import Listing, ListingCard
from carmarket.services.currency import ExchangeRateTable, format_mileage, format_price
from carmarket.services.errors import (
    CatalogError, ConfigurationError, ConfirmationExpired, ImageUploadError,
    InvalidTransition, ListingNotFound, StoreError, ValidationError,
)
from carmarket.services.favorites import FavoritesSet
from carmarket.services.storage import LocalStorage

ERROR_STATUS = {
    ConfigurationError: 503,
    StoreError: 502,
    ImageUploadError: 502,
    ValidationError: 422,
    ListingNotFound: 404,
    InvalidTransition: 409,
    ConfirmationExpired: 410,
}


def http_error(exc: CatalogError) -> HTTPException:
    for exc_type, status in ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def get_storage(request: Request) -> LocalStorage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        storage = LocalStorage(settings.LOCAL_STORAGE_PATH)
        request.app.state.storage = storage
    return storage


def get_favorites(request: Request) -> FavoritesSet:
    return FavoritesSet(get_storage(request))


def get_rates(request: Request) -> ExchangeRateTable:
    snapshot = getattr(request.app.state, "rates", None)
    return snapshot.table if snapshot else ExchangeRateTable()


def listing_card(listing: Listing, is_favorite: bool = False) -> ListingCard:
    specs = " • ".join(part for part in (listing.transmission, listing.fuel_type) if part)
    return ListingCard(
        id=listing.id,
        title=listing.title,
        brand=listing.brand,
        model=listing.model,
        price=listing.price,
        currency=listing.currency,
        formatted_price=format_price(listing.price, listing.currency),
        status=listing.status,
        year=listing.year,
        mileage=format_mileage(listing.mileage_km),
        specs=specs,
        location=listing.location,
        seller_name=listing.seller_name,
        image_url=listing.primary_image,
        is_favorite=is_favorite,
    )
