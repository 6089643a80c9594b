import logging
from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.config import settings
from carmarket.db import crud
from carmarket.schemas.listing import Listing, ListingStatus
from carmarket.services.errors import ConfigurationError, StoreError
from carmarket.services.normalization import normalize_records

logger = logging.getLogger(__name__)


class RecordSource(ABC):
    SOURCE_NAME: str = ""

    @abstractmethod
    async def fetch_raw(self, status: ListingStatus | None = None) -> list[dict]:
        """Raw records, optionally restricted to one status."""
        pass

    async def fetch_listings(self, status: ListingStatus | None = None) -> list[Listing]:
        raws = await self.fetch_raw(status)
        listings = normalize_records(raws)
        if status is not None:
            listings = [listing for listing in listings if listing.status == status]
        logger.info(f"[{self.SOURCE_NAME}] {len(listings)} listings loaded")
        return listings


class DatabaseSource(RecordSource):
    SOURCE_NAME = "Database"

    def __init__(self, db: AsyncSession):
        self.db = db

    async def fetch_raw(self, status: ListingStatus | None = None) -> list[dict]:
        try:
            return await crud.get_cars_with_images(self.db, status.value if status else None)
        except SQLAlchemyError as e:
            logger.error(f"[{self.SOURCE_NAME}] Query failed: {e}")
            raise StoreError(f"Failed to load listings: {e}") from e


class AirtableSource(RecordSource):
    """Reads the Airtable table. Status filtering happens client-side."""

    SOURCE_NAME = "Airtable"

    def __init__(self, client: httpx.AsyncClient | None = None):
        if not settings.AIRTABLE_API_KEY or not settings.AIRTABLE_BASE_ID:
            raise ConfigurationError("Airtable API key or base ID not configured")
        self.client = client

    def _table_url(self) -> str:
        return f"{settings.AIRTABLE_API}/{settings.AIRTABLE_BASE_ID}/{quote(settings.AIRTABLE_TABLE)}"

    async def _fetch_page(self, client: httpx.AsyncClient, offset: str | None) -> dict:
        params = {"offset": offset} if offset else None
        resp = await client.get(
            self._table_url(),
            params=params,
            headers={"Authorization": f"Bearer {settings.AIRTABLE_API_KEY}"},
            timeout=settings.HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.json()

    async def _fetch_all(self, client: httpx.AsyncClient) -> list[dict]:
        records = []
        offset = None
        while True:
            data = await self._fetch_page(client, offset)
            records.extend(data.get("records") or [])
            offset = data.get("offset")
            if not offset:
                break
        return records

    async def fetch_raw(self, status: ListingStatus | None = None) -> list[dict]:
        try:
            if self.client is None:
                async with httpx.AsyncClient() as client:
                    records = await self._fetch_all(client)
            else:
                records = await self._fetch_all(self.client)
        except httpx.HTTPError as e:
            logger.error(f"[{self.SOURCE_NAME}] Fetch failed: {e}")
            raise StoreError(f"Airtable API error: {e}") from e

        logger.debug(f"[{self.SOURCE_NAME}] Total records fetched: {len(records)}")
        return records


def get_source(db: AsyncSession) -> RecordSource:
    if settings.LISTING_SOURCE == "airtable":
        return AirtableSource()
    return DatabaseSource(db)
