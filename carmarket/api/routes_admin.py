import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.api.deps import get_rates, http_error
from carmarket.db.database import get_db
from carmarket.schemas.admin import (
    AdminListingsResponse, ConfirmRequest, EditRequest,
    PendingConfirmationResponse, TransitionRequest, TransitionResultResponse,
)
from carmarket.schemas.listing import Listing
from carmarket.services.catalog import Catalog
from carmarket.services.currency import ExchangeRateTable
from carmarket.services.errors import CatalogError
from carmarket.services.exporter import export_listings_to_excel
from carmarket.services.filtering import VIEWS
from carmarket.services.lifecycle import confirm_transition, edit_listing, request_transition
from carmarket.services.sources import DatabaseSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


async def load_catalog(db: AsyncSession, rates: ExchangeRateTable) -> Catalog:
    """Every listing regardless of status, straight from the store."""
    try:
        listings = await DatabaseSource(db).fetch_listings()
    except CatalogError as e:
        raise http_error(e)
    return Catalog(listings, rates)


def _check_view(view: str):
    if view not in VIEWS:
        raise HTTPException(status_code=400, detail=f"Unknown view: {view}")


@router.get("/listings", response_model=AdminListingsResponse)
async def moderation_view(
    view: str = "pending",
    db: AsyncSession = Depends(get_db),
    rates: ExchangeRateTable = Depends(get_rates),
):
    _check_view(view)
    catalog = await load_catalog(db, rates)
    listings = catalog.view(view)
    return AdminListingsResponse(view=view, total=len(listings), listings=listings)


@router.post("/listings/{listing_id}/transitions", response_model=PendingConfirmationResponse)
async def start_transition(
    listing_id: str,
    request: TransitionRequest,
    db: AsyncSession = Depends(get_db),
    rates: ExchangeRateTable = Depends(get_rates),
):
    catalog = await load_catalog(db, rates)
    try:
        pending = request_transition(catalog, listing_id, request.transition)
    except CatalogError as e:
        raise http_error(e)

    return PendingConfirmationResponse(
        listing_id=pending.listing_id,
        transition=pending.transition.value,
        prompt=pending.prompt,
        token=pending.token,
    )


@router.post("/transitions/confirm", response_model=TransitionResultResponse)
async def confirm(
    request: ConfirmRequest,
    db: AsyncSession = Depends(get_db),
    rates: ExchangeRateTable = Depends(get_rates),
):
    catalog = await load_catalog(db, rates)
    try:
        result = await confirm_transition(db, catalog, request.token)
    except CatalogError as e:
        logger.error(f"Transition failed: {e}")
        raise http_error(e)

    return TransitionResultResponse(
        listing_id=result.listing_id,
        transition=result.transition.value,
        status=result.status,
        deleted=result.deleted,
    )


@router.put("/listings/{listing_id}", response_model=Listing)
async def save_edit(
    listing_id: str,
    request: EditRequest,
    db: AsyncSession = Depends(get_db),
    rates: ExchangeRateTable = Depends(get_rates),
):
    catalog = await load_catalog(db, rates)
    try:
        return await edit_listing(
            db, catalog, listing_id,
            brand=request.brand,
            model=request.model,
            price=request.price,
            currency=request.currency,
            seller_name=request.seller_name,
            publish=request.publish,
        )
    except CatalogError as e:
        raise http_error(e)


@router.get("/export")
async def export_view(
    view: str = "all",
    db: AsyncSession = Depends(get_db),
    rates: ExchangeRateTable = Depends(get_rates),
):
    _check_view(view)
    catalog = await load_catalog(db, rates)
    listings = catalog.view(view)
    if not listings:
        raise HTTPException(status_code=404, detail="No listings to export")

    excel_file = export_listings_to_excel(listings, rates, view)
    filename = f"listings_{view}.xlsx"
    return StreamingResponse(
        excel_file,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
