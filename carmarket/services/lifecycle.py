"""Moderation lifecycle for listings.

Every status change is a two-step exchange: ``request_transition`` checks the
listing can move and hands back a signed ``PendingConfirmation``; only
``confirm_transition`` touches the store. The token carries the listing id,
the transition and the status it was requested from, so a confirmation that
arrives after someone else moved the listing is refused.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum

from itsdangerous import URLSafeTimedSerializer, SignatureExpired, BadSignature
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.config import settings
from carmarket.db import crud
from carmarket.schemas.listing import Currency, Listing, ListingStatus
from carmarket.services.catalog import Catalog
from carmarket.services.errors import (
    ConfirmationExpired, InvalidTransition, StoreError, ValidationError,
)
from carmarket.services.normalization import parse_currency

logger = logging.getLogger(__name__)

_serializer = URLSafeTimedSerializer(settings.AUTH_SECRET_KEY)
_SALT = "transition"


class Transition(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MARK_SOLD = "mark_sold"
    REPUBLISH = "republish"
    DELETE = "delete"


ALL_STATUSES = frozenset(ListingStatus)

# transition -> (allowed source statuses, target status; None removes the listing)
TRANSITIONS: dict[Transition, tuple[frozenset, ListingStatus | None]] = {
    Transition.APPROVE: (frozenset({ListingStatus.PENDING_APPROVAL}), ListingStatus.PUBLISHED),
    Transition.REJECT: (frozenset({ListingStatus.PENDING_APPROVAL}), ListingStatus.REJECTED),
    Transition.MARK_SOLD: (frozenset({ListingStatus.PUBLISHED}), ListingStatus.SOLD),
    Transition.REPUBLISH: (frozenset({ListingStatus.SOLD}), ListingStatus.PUBLISHED),
    # Generic delete, offered from the "all" view for any status
    Transition.DELETE: (ALL_STATUSES, None),
}

PROMPTS = {
    Transition.APPROVE: "Approve this listing?",
    Transition.REJECT: "Reject this listing?",
    Transition.MARK_SOLD: "Mark this listing as sold?",
    Transition.REPUBLISH: "Publish this listing again?",
    Transition.DELETE: "Permanently delete this listing? This cannot be undone.",
}


@dataclass(frozen=True)
class PendingConfirmation:
    listing_id: str
    transition: Transition
    from_status: ListingStatus
    prompt: str
    token: str


@dataclass(frozen=True)
class TransitionResult:
    listing_id: str
    transition: Transition
    status: ListingStatus | None
    deleted: bool = False


def parse_transition(value) -> Transition:
    try:
        return Transition(value)
    except ValueError:
        raise InvalidTransition(f"Unknown transition: {value}")


def available_transitions(status: ListingStatus) -> list[Transition]:
    return [t for t, (sources, _) in TRANSITIONS.items() if status in sources]


def _check_allowed(listing: Listing, transition: Transition):
    sources, _ = TRANSITIONS[transition]
    if listing.status not in sources:
        raise InvalidTransition(
            f"Cannot {transition.value} listing {listing.id} in status {listing.status.value}"
        )


def request_transition(catalog: Catalog, listing_id: str, transition) -> PendingConfirmation:
    transition = parse_transition(transition)
    listing = catalog.get(listing_id)
    _check_allowed(listing, transition)

    token = _serializer.dumps(
        {"id": listing.id, "transition": transition.value, "from": listing.status.value},
        salt=_SALT,
    )
    return PendingConfirmation(
        listing_id=listing.id,
        transition=transition,
        from_status=listing.status,
        prompt=PROMPTS[transition],
        token=token,
    )


def _load_token(token: str) -> dict:
    try:
        return _serializer.loads(token, salt=_SALT, max_age=settings.CONFIRMATION_MAX_AGE)
    except SignatureExpired:
        raise ConfirmationExpired("Confirmation expired, request the transition again")
    except BadSignature:
        raise InvalidTransition("Invalid confirmation token")


async def confirm_transition(
    db: AsyncSession,
    catalog: Catalog,
    pending: PendingConfirmation | str,
) -> TransitionResult:
    token = pending.token if isinstance(pending, PendingConfirmation) else pending
    data = _load_token(token)

    transition = parse_transition(data.get("transition"))
    listing = catalog.get(data.get("id"))
    if listing.status.value != data.get("from"):
        raise InvalidTransition(
            f"Listing {listing.id} changed to {listing.status.value} since the request"
        )
    _check_allowed(listing, transition)

    _, target = TRANSITIONS[transition]
    if target is None:
        await delete_listing(db, catalog, listing.id)
        return TransitionResult(listing.id, transition, None, deleted=True)

    try:
        await crud.update_car(db, listing.id, {"status": target.value})
    except SQLAlchemyError as e:
        logger.error(f"Error updating listing {listing.id} status: {e}")
        raise StoreError(f"Update failed: {e}") from e

    catalog.set_status(listing.id, target)
    logger.info(f"Listing {listing.id}: {transition.value} ({listing.status.value} -> {target.value})")
    return TransitionResult(listing.id, transition, target)


async def delete_listing(db: AsyncSession, catalog: Catalog, listing_id: str):
    """Remove image rows, then the listing row, then the local copy."""
    try:
        removed = await crud.delete_car_images(db, listing_id)
        logger.debug(f"Deleted {removed} images of listing {listing_id}")
    except SQLAlchemyError as e:
        # Best-effort cleanup; the listing delete still goes ahead
        await db.rollback()
        logger.warning(f"Error deleting images of listing {listing_id}: {e}")

    try:
        await crud.delete_car(db, listing_id)
    except SQLAlchemyError as e:
        logger.error(f"Error deleting listing {listing_id}: {e}")
        raise StoreError(f"Delete failed: {e}") from e

    catalog.remove(listing_id)
    logger.info(f"Listing {listing_id} deleted")


def validate_edit(brand: str, model: str, price, seller_name: str) -> float:
    brand = (brand or "").strip()
    model = (model or "").strip()
    seller_name = (seller_name or "").strip()
    try:
        amount = float(price)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Price must be a number")
    if not brand or not model or not seller_name:
        raise ValidationError("Brand, model and seller are required")
    if not math.isfinite(amount):
        raise ValidationError("Price must be a number")
    if amount <= 0:
        raise ValidationError("Price must be greater than zero")
    return amount


async def edit_listing(
    db: AsyncSession,
    catalog: Catalog,
    listing_id: str,
    brand: str,
    model: str,
    price,
    currency: Currency | str,
    seller_name: str,
    publish: bool = False,
) -> Listing:
    """Save field edits, optionally forcing the listing to published."""
    amount = validate_edit(brand, model, price, seller_name)
    catalog.get(listing_id)

    changes = {
        "brand": brand.strip(),
        "model": model.strip(),
        "price": amount,
        "currency": parse_currency(currency),
        "seller_name": seller_name.strip(),
    }
    if publish:
        changes["status"] = ListingStatus.PUBLISHED

    values = {k: (v.value if isinstance(v, Enum) else v) for k, v in changes.items()}
    try:
        await crud.update_car(db, listing_id, values)
    except SQLAlchemyError as e:
        logger.error(f"Error saving listing {listing_id}: {e}")
        raise StoreError(f"Save failed: {e}") from e

    updated = catalog.update(listing_id, **changes)
    logger.info(f"Listing {listing_id} edited{' and published' if publish else ''}")
    return updated
