import asyncio
import logging

import httpx

from carmarket.config import settings
from carmarket.services.errors import ConfigurationError, ImageUploadError

logger = logging.getLogger(__name__)


class ImageHost:
    """ImgBB-compatible upload endpoint. One image per call."""

    def __init__(self, client: httpx.AsyncClient, api_key: str | None = None):
        self.client = client
        self.api_key = api_key if api_key is not None else settings.IMGBB_API_KEY

    async def upload_image(self, filename: str, data: bytes, content_type: str, index: int | None = None) -> str:
        try:
            resp = await self.client.post(
                settings.IMGBB_UPLOAD_URL,
                params={"key": self.api_key},
                files={"image": (filename, data, content_type)},
                timeout=settings.HTTP_TIMEOUT,
            )
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ImageUploadError(str(e), index) from e

        if not isinstance(payload, dict) or not payload.get("success"):
            error = (payload.get("error") if isinstance(payload, dict) else None) or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ImageUploadError(message or "Unknown error", index)

        url = payload["data"]["url"]
        logger.debug(f"Uploaded {filename} -> {url}")
        return url

    async def upload_all(self, files: list[tuple[str, bytes, str]]) -> list[str]:
        """Upload concurrently and wait for the whole batch.

        Any failure fails the batch with the first error in file order.
        Images that already reached the host are not cleaned up.
        """
        if not self.api_key:
            raise ConfigurationError("Image host API key not configured")
        tasks = [
            self.upload_image(filename, data, content_type, index=i)
            for i, (filename, data, content_type) in enumerate(files)
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error(f"{len(errors)} of {len(files)} image uploads failed")
            raise errors[0]
        return list(results)
