from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Currency(str, Enum):
    STG = "STG"
    TL = "TL"
    EUR = "EUR"


class ListingStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    PUBLISHED = "published"
    SOLD = "sold"
    REJECTED = "rejected"


class Listing(BaseModel):
    id: str
    created_at: datetime | None = None
    brand: str = ""
    model: str = ""
    price: float = Field(default=0, ge=0)
    currency: Currency = Currency.STG
    status: ListingStatus = ListingStatus.PENDING_APPROVAL
    year: int | None = None
    mileage_km: int | None = None
    fuel_type: str = ""
    transmission: str = ""
    body_type: str = ""
    color: str = ""
    location: str = ""
    description: str = ""
    seller_name: str = ""
    seller_phone: str = ""
    inspection_notes: str = ""
    images: list[str] = []

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""

    @property
    def title(self) -> str:
        return f"{self.brand} {self.model}".strip()


class ListingCard(BaseModel):
    id: str
    title: str
    brand: str
    model: str
    price: float
    currency: Currency
    formatted_price: str
    status: ListingStatus
    year: int | None
    mileage: str
    specs: str
    location: str
    seller_name: str
    image_url: str
    is_favorite: bool = False


class ListingsResponse(BaseModel):
    total: int
    listings: list[ListingCard]


class ContactInfo(BaseModel):
    seller_name: str
    phone: str | None
    tel_link: str | None
    whatsapp_link: str | None
    whatsapp_message_link: str | None


class ListingDetailResponse(BaseModel):
    listing: Listing
    formatted_price: str
    mileage: str
    contact: ContactInfo
    similar: list[ListingCard]
    is_favorite: bool


class SubmissionResponse(BaseModel):
    id: str
    status: ListingStatus
    images: list[str]
    images_saved: bool
