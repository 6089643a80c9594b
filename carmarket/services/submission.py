import logging
import math
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.config import settings
from carmarket.db import crud
from carmarket.schemas.listing import ListingStatus
from carmarket.services.errors import StoreError, ValidationError
from carmarket.services.image_host import ImageHost
from carmarket.services.normalization import parse_currency, parse_int

logger = logging.getLogger(__name__)


@dataclass
class ImageFile:
    filename: str
    content_type: str
    data: bytes


@dataclass
class SubmissionForm:
    brand: str
    model: str
    price: str
    currency: str = "STG"
    year: str = ""
    mileage_km: str = ""
    description: str = ""
    seller_name: str = ""
    seller_phone: str = ""
    location: str = ""
    transmission: str = ""
    fuel_type: str = ""
    images: list[ImageFile] = field(default_factory=list)


@dataclass
class SubmissionResult:
    listing_id: str
    image_urls: list[str]
    images_saved: bool


def validate_submission(form: SubmissionForm) -> dict:
    """Check the form and build the store row. Raises before any network call."""
    brand = (form.brand or "").strip()
    model = (form.model or "").strip()
    price_text = (form.price or "").strip()

    if not brand or not model or not price_text or not form.images:
        raise ValidationError("Brand, model, price and at least one image are required")
    if len(form.images) > settings.MAX_UPLOAD_IMAGES:
        raise ValidationError(f"At most {settings.MAX_UPLOAD_IMAGES} images can be uploaded")
    for image in form.images:
        if not (image.content_type or "").startswith("image/"):
            raise ValidationError(f"{image.filename} is not an image file")

    try:
        amount = float(price_text)
    except ValueError:
        raise ValidationError("Price must be a number")
    if not math.isfinite(amount):
        raise ValidationError("Price must be a number")
    if amount < 0:
        raise ValidationError("Price cannot be negative")
    price = int(amount)

    def optional(value: str) -> str | None:
        value = (value or "").strip()
        return value or None

    return {
        "brand": brand,
        "model": model,
        "price": price,
        "currency": parse_currency(form.currency).value,
        "year": parse_int(optional(form.year)),
        "mileage_km": parse_int(optional(form.mileage_km)),
        "description": optional(form.description),
        "seller_name": optional(form.seller_name),
        "seller_phone": optional(form.seller_phone),
        "location": optional(form.location),
        "transmission": optional(form.transmission),
        "fuel_type": optional(form.fuel_type),
        "status": ListingStatus.PENDING_APPROVAL.value,
    }


async def submit_listing(db: AsyncSession, host: ImageHost, form: SubmissionForm) -> SubmissionResult:
    """Validate, upload every image, then write the listing and its images."""
    car_data = validate_submission(form)

    logger.info(f"Uploading {len(form.images)} images for {car_data['brand']} {car_data['model']}")
    urls = await host.upload_all([(img.filename, img.data, img.content_type) for img in form.images])

    try:
        car_id = await crud.insert_car(db, car_data)
    except SQLAlchemyError as e:
        logger.error(f"Error saving submitted listing: {e}")
        raise StoreError(f"Listing could not be saved: {e}") from e

    images_saved = True
    try:
        await crud.insert_car_images(db, car_id, urls)
    except SQLAlchemyError as e:
        # The listing stays usable without images
        await db.rollback()
        images_saved = False
        logger.warning(f"Listing {car_id} created but images failed to save: {e}")

    logger.info(f"Listing {car_id} submitted for approval")
    return SubmissionResult(listing_id=car_id, image_urls=urls, images_saved=images_saved)
