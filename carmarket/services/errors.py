class CatalogError(Exception):
    """Base class for every failure the catalog surfaces to a view."""


class ConfigurationError(CatalogError):
    """Backend credentials or endpoints are missing. Not retried."""


class StoreError(CatalogError):
    """A query or mutation against the record store failed."""


class ValidationError(CatalogError):
    """Input rejected before any network call was made."""


class ListingNotFound(CatalogError):
    def __init__(self, listing_id: str):
        super().__init__(f"Listing not found: {listing_id}")
        self.listing_id = listing_id


class InvalidTransition(CatalogError):
    pass


class ConfirmationExpired(CatalogError):
    pass


class ImageUploadError(CatalogError):
    def __init__(self, message: str, index: int | None = None):
        if index is not None:
            message = f"Image {index + 1}: {message}"
        super().__init__(message)
        self.index = index
