import logging

import httpx
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.api.deps import get_favorites, get_rates, http_error, listing_card
from carmarket.config import settings
from carmarket.db import crud
from carmarket.db.database import get_db
from carmarket.schemas.filters import ANY, FilterCriteria
from carmarket.schemas.listing import (
    Currency, ListingDetailResponse, ListingStatus, ListingsResponse, SubmissionResponse,
)
from carmarket.services.catalog import Catalog
from carmarket.services.contact import build_contact
from carmarket.services.currency import ExchangeRateTable, format_mileage, format_price
from carmarket.services.errors import CatalogError
from carmarket.services.favorites import FavoritesSet
from carmarket.services.image_host import ImageHost
from carmarket.services.normalization import normalize_record, normalize_records
from carmarket.services.sources import get_source
from carmarket.services.submission import ImageFile, SubmissionForm, submit_listing

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/listings", tags=["listings"])


@router.get("", response_model=ListingsResponse)
async def browse_listings(
    search: str = "",
    brand: str = ANY,
    location: str = ANY,
    fuel_type: str = ANY,
    transmission: str = ANY,
    currency: Currency = Currency.STG,
    min_price: float = Query(0, ge=0),
    max_price: float | None = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
    rates: ExchangeRateTable = Depends(get_rates),
    favorites: FavoritesSet = Depends(get_favorites),
):
    criteria = FilterCriteria(
        search=search,
        brand=brand,
        location=location,
        fuel_type=fuel_type,
        transmission=transmission,
        currency=currency,
        min_price=min_price,
        max_price=max_price,
        status=ListingStatus.PUBLISHED,
    )
    try:
        source = get_source(db)
        listings = await source.fetch_listings(ListingStatus.PUBLISHED)
    except CatalogError as e:
        raise http_error(e)

    catalog = Catalog(listings, rates)
    matches = catalog.search(criteria)
    favorite_ids = set(favorites.ids())
    return ListingsResponse(
        total=len(matches),
        listings=[listing_card(l, l.id in favorite_ids) for l in matches],
    )


@router.get("/detail", response_model=ListingDetailResponse)
async def listing_detail(
    id: str | None = None,
    db: AsyncSession = Depends(get_db),
    favorites: FavoritesSet = Depends(get_favorites),
):
    if not id:
        raise HTTPException(status_code=404, detail="Listing not found")

    try:
        record = await crud.get_car(db, id)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching listing {id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail="Listing not found")

    listing = normalize_record(record)

    similar = []
    try:
        similar_records = await crud.get_similar_cars(db, listing.id, listing.brand, settings.SIMILAR_LIMIT)
        if not similar_records:
            similar_records = await crud.get_similar_cars(db, listing.id, None, settings.SIMILAR_FALLBACK_LIMIT)
        similar = normalize_records(similar_records)
    except SQLAlchemyError as e:
        # The detail view stays usable without suggestions
        logger.error(f"Error fetching similar listings for {id}: {e}")

    favorite_ids = set(favorites.ids())
    return ListingDetailResponse(
        listing=listing,
        formatted_price=format_price(listing.price, listing.currency),
        mileage=format_mileage(listing.mileage_km),
        contact=build_contact(listing),
        similar=[listing_card(s, s.id in favorite_ids) for s in similar],
        is_favorite=listing.id in favorite_ids,
    )


@router.post("", response_model=SubmissionResponse, status_code=201)
async def submit(
    brand: str = Form(""),
    model: str = Form(""),
    price: str = Form(""),
    currency: str = Form("STG"),
    year: str = Form(""),
    mileage_km: str = Form(""),
    description: str = Form(""),
    seller_name: str = Form(""),
    seller_phone: str = Form(""),
    location: str = Form(""),
    transmission: str = Form(""),
    fuel_type: str = Form(""),
    images: list[UploadFile] = File(default=[]),
    db: AsyncSession = Depends(get_db),
):
    form = SubmissionForm(
        brand=brand,
        model=model,
        price=price,
        currency=currency,
        year=year,
        mileage_km=mileage_km,
        description=description,
        seller_name=seller_name,
        seller_phone=seller_phone,
        location=location,
        transmission=transmission,
        fuel_type=fuel_type,
        images=[
            ImageFile(filename=f.filename or "image", content_type=f.content_type or "", data=await f.read())
            for f in images
        ],
    )

    try:
        async with httpx.AsyncClient() as client:
            result = await submit_listing(db, ImageHost(client), form)
    except CatalogError as e:
        logger.error(f"Submission failed: {e}")
        raise http_error(e)

    return SubmissionResponse(
        id=result.listing_id,
        status=ListingStatus.PENDING_APPROVAL,
        images=result.image_urls,
        images_saved=result.images_saved,
    )
