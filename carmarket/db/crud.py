from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.db.models import Car, CarImage, Profile


# --- Records ---

def car_to_record(car: Car) -> dict:
    """Store row plus its image relation, shaped like the hosted store returns it."""
    return {
        "id": car.id,
        "created_at": car.created_at,
        "brand": car.brand,
        "model": car.model,
        "price": car.price,
        "currency": car.currency,
        "status": car.status,
        "year": car.year,
        "mileage_km": car.mileage_km,
        "fuel_type": car.fuel_type,
        "transmission": car.transmission,
        "body_type": car.body_type,
        "color": car.color,
        "location": car.location,
        "description": car.description,
        "seller_name": car.seller_name,
        "seller_phone": car.seller_phone,
        "inspection_notes": car.inspection_notes,
        "car_images": [
            {
                "id": img.id,
                "image_url": img.image_url,
                "thumbnail_url": img.thumbnail_url,
                "display_order": img.display_order,
            }
            for img in car.images
        ],
    }


def _cars_query():
    return select(Car).execution_options(populate_existing=True)


# --- Cars ---

async def get_cars_with_images(db: AsyncSession, status: str | None = None) -> list[dict]:
    query = _cars_query()
    if status:
        query = query.where(Car.status == status)
    result = await db.execute(query.order_by(Car.created_at.desc()))
    return [car_to_record(car) for car in result.scalars().all()]


async def get_car(db: AsyncSession, car_id: str) -> dict | None:
    result = await db.execute(_cars_query().where(Car.id == car_id))
    car = result.scalar_one_or_none()
    return car_to_record(car) if car else None


async def get_cars_by_ids(db: AsyncSession, car_ids: list[str]) -> list[dict]:
    if not car_ids:
        return []
    result = await db.execute(_cars_query().where(Car.id.in_(car_ids)))
    return [car_to_record(car) for car in result.scalars().all()]


async def get_similar_cars(
    db: AsyncSession,
    car_id: str,
    brand: str | None,
    limit: int,
    status: str = "published",
) -> list[dict]:
    query = _cars_query().where(Car.status == status, Car.id != car_id)
    if brand is not None:
        query = query.where(Car.brand == brand)
    result = await db.execute(query.order_by(Car.created_at.desc()).limit(limit))
    return [car_to_record(car) for car in result.scalars().all()]


async def insert_car(db: AsyncSession, data: dict) -> str:
    car = Car(
        brand=data.get("brand"),
        model=data.get("model"),
        price=data.get("price", 0),
        currency=data.get("currency", "STG"),
        status=data.get("status", "pending_approval"),
        year=data.get("year"),
        mileage_km=data.get("mileage_km"),
        fuel_type=data.get("fuel_type"),
        transmission=data.get("transmission"),
        body_type=data.get("body_type"),
        color=data.get("color"),
        location=data.get("location"),
        description=data.get("description"),
        seller_name=data.get("seller_name"),
        seller_phone=data.get("seller_phone"),
        inspection_notes=data.get("inspection_notes"),
    )
    if data.get("created_at"):
        car.created_at = data["created_at"]
    db.add(car)
    await db.commit()
    return car.id


async def insert_car_images(db: AsyncSession, car_id: str, urls: list[str]):
    for order, url in enumerate(urls):
        db.add(CarImage(car_id=car_id, image_url=url, display_order=order))
    await db.commit()


async def update_car(db: AsyncSession, car_id: str, values: dict) -> bool:
    result = await db.execute(update(Car).where(Car.id == car_id).values(**values))
    await db.commit()
    return result.rowcount > 0


async def delete_car_images(db: AsyncSession, car_id: str) -> int:
    result = await db.execute(delete(CarImage).where(CarImage.car_id == car_id))
    await db.commit()
    return result.rowcount


async def delete_car(db: AsyncSession, car_id: str) -> bool:
    result = await db.execute(delete(Car).where(Car.id == car_id))
    await db.commit()
    return result.rowcount > 0


# --- Profiles ---

async def get_profiles(db: AsyncSession, role: str | None = None) -> list[Profile]:
    query = select(Profile)
    if role:
        query = query.where(Profile.role == role)
    result = await db.execute(query.order_by(Profile.full_name.asc()))
    return list(result.scalars().all())


async def update_profile_role(db: AsyncSession, profile_id: str, role: str) -> bool:
    result = await db.execute(update(Profile).where(Profile.id == profile_id).values(role=role))
    await db.commit()
    return result.rowcount > 0


async def delete_profile(db: AsyncSession, profile_id: str) -> bool:
    result = await db.execute(delete(Profile).where(Profile.id == profile_id))
    await db.commit()
    return result.rowcount > 0
