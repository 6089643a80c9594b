import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from carmarket.db.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Car(Base):
    __tablename__ = "cars"

    id = Column(String(36), primary_key=True, default=_new_id)
    brand = Column(String(100), nullable=False)
    model = Column(String(200), nullable=False)
    price = Column(Float, nullable=False, default=0)
    currency = Column(String(10), default="STG")
    status = Column(String(30), default="pending_approval")  # pending_approval, published, sold, rejected
    year = Column(Integer)
    mileage_km = Column(Integer)
    fuel_type = Column(String(50))
    transmission = Column(String(50))
    body_type = Column(String(50))
    color = Column(String(50))
    location = Column(String(200))
    description = Column(Text)
    seller_name = Column(String(200))
    seller_phone = Column(String(50))
    inspection_notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    images = relationship("CarImage", lazy="selectin", order_by="CarImage.display_order")

    __table_args__ = (
        Index("ix_cars_status", "status"),
        Index("ix_cars_brand", "brand"),
    )


class CarImage(Base):
    __tablename__ = "car_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    car_id = Column(String(36), ForeignKey("cars.id"), nullable=False)
    image_url = Column(String(1000))
    thumbnail_url = Column(String(1000))
    display_order = Column(Integer, default=0)

    __table_args__ = (
        Index("ix_car_images_car_id", "car_id"),
    )


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String(200))
    role = Column(String(30), default="member")  # member, gallery, ambassador
    whatsapp = Column(String(50))
    email = Column(String(200))
    gallery_name = Column(String(200))
