"""Turn raw store or Airtable records into canonical ``Listing`` objects.

Records arrive in two shapes:

* store rows with snake_case columns and a nested ``car_images`` relation
* Airtable records ``{"id", "createdTime", "fields": {...}}`` whose field
  names vary in casing and sometimes carry Turkish accents

All alias lookups live here so the rest of the catalog only ever sees
``Listing`` attributes.
"""
import logging
import math
import re
from datetime import datetime

from carmarket.schemas.listing import Currency, Listing, ListingStatus

logger = logging.getLogger(__name__)

FIELD_ALIASES = {
    "brand": ("brand", "marka", "Marka"),
    "model": ("model", "Model"),
    "price": ("price", "fiyat", "Fiyat"),
    "currency": ("currency", "para_birimi", "ParaBirimi", "paraBirimi"),
    "status": ("status", "durum", "Durum"),
    "year": ("year", "yil", "Yil", "Yıl", "yıl"),
    "mileage_km": ("mileage_km", "mileage", "km", "KM", "Kilometre", "kilometre"),
    "fuel_type": ("fuel_type", "yakit", "Yakit", "Yakıt", "yakıt"),
    "transmission": ("transmission", "vites", "Vites"),
    "body_type": ("body_type", "kasa_tipi", "Kasa Tipi", "KasaTipi", "kasaTipi", "Kasa", "kasa"),
    "color": ("color", "renk", "Renk"),
    "location": ("location", "konum", "Konum"),
    "description": ("description", "aciklama", "Aciklama", "Açıklama", "açıklama"),
    "seller_name": ("seller_name", "satici", "Satici"),
    "seller_phone": ("seller_phone", "telefon", "Telefon"),
    "inspection_notes": ("inspection_notes", "ekspertiz", "Ekspertiz", "Hasar Durumu", "hasar durumu"),
    "created_at": ("created_at", "createdTime", "created_time"),
}

IMAGE_FIELDS = ("car_images", "images", "Resim", "resim", "Image", "image")

STATUS_ALIASES = {
    "onay bekliyor": ListingStatus.PENDING_APPROVAL,
    "pending": ListingStatus.PENDING_APPROVAL,
    "pending_approval": ListingStatus.PENDING_APPROVAL,
    "pendingapproval": ListingStatus.PENDING_APPROVAL,
    "yayında": ListingStatus.PUBLISHED,
    "published": ListingStatus.PUBLISHED,
    "satıldı": ListingStatus.SOLD,
    "sold": ListingStatus.SOLD,
    "reddedildi": ListingStatus.REJECTED,
    "rejected": ListingStatus.REJECTED,
}


def _lookup(record: dict, key: str):
    for alias in FIELD_ALIASES[key]:
        value = record.get(alias)
        if value is not None and value != "":
            return value
    return None


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_amount(value) -> float:
    """Parse a price from a number or a formatted string. Never negative."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        try:
            amount = float(value)
        except OverflowError:
            return 0.0
    else:
        text = str(value).replace(",", "").strip()
        match = re.search(r"-?\d+(?:\.\d+)?", text)
        if not match:
            return 0.0
        amount = float(match.group(0))
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


def parse_int(value) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, int):
        return value
    nums = re.findall(r"\d+", str(value).replace(",", "").replace(".", ""))
    if nums:
        return int(nums[0])
    return None


def parse_currency(value) -> Currency:
    code = _text(value).upper()
    try:
        return Currency(code)
    except ValueError:
        return Currency.STG


def parse_status(value) -> ListingStatus:
    if isinstance(value, ListingStatus):
        return value
    key = _text(value).lower()
    return STATUS_ALIASES.get(key, ListingStatus.PENDING_APPROVAL)


def parse_timestamp(value) -> datetime | None:
    if isinstance(value, datetime):
        return value
    text = _text(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable timestamp: {text!r}")
        return None


def _thumbnail_url(thumbnails) -> str | None:
    large = thumbnails.get("large") if isinstance(thumbnails, dict) else None
    return large.get("url") if isinstance(large, dict) else None


def extract_image_urls(images) -> list[str]:
    """Ordered image URLs from a relation list, an attachment list or a URL."""
    if isinstance(images, str):
        return [images.strip()] if images.strip() else []
    if not isinstance(images, list):
        return []

    entries = [img for img in images if isinstance(img, dict)]
    # sorted() is stable, so equal display_order keeps insertion order
    entries = sorted(entries, key=lambda img: parse_int(img.get("display_order")) or 0)

    urls = []
    for img in entries:
        large = _thumbnail_url(img.get("thumbnails"))
        url = img.get("image_url") or img.get("url") or img.get("thumbnail_url") or large
        if url:
            urls.append(str(url))
    return urls


def normalize_record(raw) -> Listing:
    """Build a ``Listing`` from either record shape. Never raises."""
    if not isinstance(raw, dict):
        raw = {}

    fields = raw.get("fields") if isinstance(raw.get("fields"), dict) else None
    # Airtable keeps its values under "fields"; store rows are flat.
    record = {**raw, **fields} if fields is not None else raw

    images = None
    for key in IMAGE_FIELDS:
        if record.get(key):
            images = record[key]
            break

    return Listing(
        id=_text(raw.get("id")),
        created_at=parse_timestamp(_lookup(record, "created_at")),
        brand=_text(_lookup(record, "brand")),
        model=_text(_lookup(record, "model")),
        price=parse_amount(_lookup(record, "price")),
        currency=parse_currency(_lookup(record, "currency")),
        status=parse_status(_lookup(record, "status")),
        year=parse_int(_lookup(record, "year")),
        mileage_km=parse_int(_lookup(record, "mileage_km")),
        fuel_type=_text(_lookup(record, "fuel_type")),
        transmission=_text(_lookup(record, "transmission")),
        body_type=_text(_lookup(record, "body_type")),
        color=_text(_lookup(record, "color")),
        location=_text(_lookup(record, "location")),
        description=_text(_lookup(record, "description")),
        seller_name=_text(_lookup(record, "seller_name")),
        seller_phone=_text(_lookup(record, "seller_phone")),
        inspection_notes=_text(_lookup(record, "inspection_notes")),
        images=extract_image_urls(images),
    )


def normalize_records(raws) -> list[Listing]:
    return [normalize_record(raw) for raw in raws or []]
