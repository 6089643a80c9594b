import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.api.deps import get_favorites, listing_card
from carmarket.db import crud
from carmarket.db.database import get_db
from carmarket.schemas.listing import ListingsResponse
from carmarket.services.favorites import FavoritesSet
from carmarket.services.filtering import sort_newest_first
from carmarket.services.normalization import normalize_records

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/favorites", tags=["favorites"])


@router.get("", response_model=ListingsResponse)
async def list_favorites(
    db: AsyncSession = Depends(get_db),
    favorites: FavoritesSet = Depends(get_favorites),
):
    favorite_ids = favorites.ids()
    if not favorite_ids:
        return ListingsResponse(total=0, listings=[])

    try:
        records = await crud.get_cars_by_ids(db, favorite_ids)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching favorite listings: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    listings = sort_newest_first(normalize_records(records))
    return ListingsResponse(
        total=len(listings),
        listings=[listing_card(l, True) for l in listings],
    )


@router.post("/{listing_id}/toggle")
async def toggle_favorite(listing_id: str, favorites: FavoritesSet = Depends(get_favorites)):
    is_favorite = favorites.toggle(listing_id)
    return {"id": listing_id, "is_favorite": is_favorite, "count": favorites.count()}
