import logging

from carmarket.services.storage import LocalStorage

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favorites"


class FavoritesSet:
    """Listing ids bookmarked on this device. No server-side counterpart."""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    def ids(self) -> list[str]:
        stored = self.storage.get_json(FAVORITES_KEY, [])
        if not isinstance(stored, list):
            logger.error(f"Ignoring malformed favorites value: {stored!r}")
            return []
        return [str(item) for item in stored]

    def is_favorite(self, listing_id: str) -> bool:
        return listing_id in self.ids()

    def toggle(self, listing_id: str) -> bool:
        """Flip membership, persist, and return the new membership."""
        favorites = self.ids()
        if listing_id in favorites:
            favorites.remove(listing_id)
            is_favorite = False
        else:
            favorites.append(listing_id)
            is_favorite = True
        self.storage.set_json(FAVORITES_KEY, favorites)
        logger.debug(f"Favorite {listing_id} -> {is_favorite} ({len(favorites)} total)")
        return is_favorite

    def count(self) -> int:
        return len(self.ids())
