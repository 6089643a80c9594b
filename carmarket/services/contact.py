import re
from urllib.parse import quote

from carmarket.schemas.listing import ContactInfo, Listing

DEFAULT_SELLER = "Sahibinden"


def clean_phone_number(phone: str | None) -> str:
    """Digits-only number for WhatsApp links (no leading +)."""
    if not phone:
        return ""
    cleaned = re.sub(r"[\s\-().]", "", str(phone))
    return cleaned[1:] if cleaned.startswith("+") else cleaned


def build_contact(listing: Listing) -> ContactInfo:
    seller = listing.seller_name.strip() or DEFAULT_SELLER
    phone = listing.seller_phone.strip()
    if not phone:
        return ContactInfo(
            seller_name=seller, phone=None, tel_link=None,
            whatsapp_link=None, whatsapp_message_link=None,
        )

    digits = clean_phone_number(phone)
    tel = re.sub(r"[\s\-()]", "", phone)
    message = f"Hi, I'm writing about your {listing.title} listing."
    return ContactInfo(
        seller_name=seller,
        phone=phone,
        tel_link=f"tel:{tel}",
        whatsapp_link=f"https://wa.me/{digits}",
        whatsapp_message_link=f"https://wa.me/{digits}?text={quote(message)}",
    )
