import logging
from datetime import datetime, timezone

from carmarket.config import settings
from carmarket.schemas.filters import ANY, FilterCriteria
from carmarket.schemas.listing import Listing, ListingStatus
from carmarket.services.currency import ExchangeRateTable

logger = logging.getLogger(__name__)

# Moderation dashboard views
VIEWS = {
    "pending": ListingStatus.PENDING_APPROVAL,
    "published": ListingStatus.PUBLISHED,
    "sold": ListingStatus.SOLD,
    "rejected": ListingStatus.REJECTED,
    "all": None,
}


def _is_any(value: str | None) -> bool:
    return not value or value == ANY


def price_range_in_base(criteria: FilterCriteria, rates: ExchangeRateTable) -> tuple[float, float]:
    min_base = rates.to_base(criteria.min_price or 0, criteria.currency)
    if criteria.max_price is None:
        # The ceiling is already a base-currency amount meaning "no limit"
        max_base = settings.PRICE_CEILING
    else:
        max_base = rates.to_base(criteria.max_price, criteria.currency)
    return min_base, max_base


def matches_search(listing: Listing, criteria: FilterCriteria) -> bool:
    term = criteria.search.strip().lower()
    if not term:
        return True
    return (
        term in listing.brand.lower()
        or term in listing.model.lower()
        or term in listing.description.lower()
    )


def matches_brand(listing: Listing, criteria: FilterCriteria) -> bool:
    # Exact match; brand values come from a controlled list
    return _is_any(criteria.brand) or listing.brand == criteria.brand


def matches_price(listing: Listing, min_base: float, max_base: float, rates: ExchangeRateTable) -> bool:
    price_base = rates.to_base(listing.price, listing.currency)
    return min_base <= price_base <= max_base


def matches_location(listing: Listing, criteria: FilterCriteria) -> bool:
    return _is_any(criteria.location) or listing.location == criteria.location


def matches_fuel(listing: Listing, criteria: FilterCriteria) -> bool:
    return _is_any(criteria.fuel_type) or listing.fuel_type == criteria.fuel_type


def matches_transmission(listing: Listing, criteria: FilterCriteria) -> bool:
    return _is_any(criteria.transmission) or listing.transmission == criteria.transmission


def matches_status(listing: Listing, criteria: FilterCriteria) -> bool:
    return criteria.status is None or listing.status == criteria.status


def filter_listings(
    listings: list[Listing],
    criteria: FilterCriteria,
    rates: ExchangeRateTable,
) -> list[Listing]:
    """Listings matching every criterion, in their original order."""
    min_base, max_base = price_range_in_base(criteria, rates)
    logger.debug(
        f"Filtering {len(listings)} listings: {criteria.model_dump(exclude_defaults=True)} "
        f"range={min_base:.2f}-{max_base:.2f} STG"
    )

    result = [
        listing for listing in listings
        if matches_status(listing, criteria)
        and matches_search(listing, criteria)
        and matches_brand(listing, criteria)
        and matches_price(listing, min_base, max_base, rates)
        and matches_location(listing, criteria)
        and matches_fuel(listing, criteria)
        and matches_transmission(listing, criteria)
    ]

    logger.debug(f"Filtered results: {len(result)} of {len(listings)} listings")
    return result


def sort_newest_first(listings: list[Listing]) -> list[Listing]:
    oldest = datetime.min.replace(tzinfo=timezone.utc)

    def key(listing: Listing):
        ts = listing.created_at
        if ts is None:
            return oldest
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts

    return sorted(listings, key=key, reverse=True)


def filter_by_view(listings: list[Listing], view: str) -> list[Listing]:
    if view not in VIEWS:
        raise ValueError(f"Unknown view: {view}")
    status = VIEWS[view]
    if status is None:
        return list(listings)
    # Absent statuses were normalized to pending, so they land in "pending"
    return [listing for listing in listings if listing.status == status]
