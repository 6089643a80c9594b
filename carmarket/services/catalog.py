from carmarket.schemas.filters import FilterCriteria
from carmarket.schemas.listing import Listing, ListingStatus
from carmarket.services.currency import ExchangeRateTable
from carmarket.services.errors import ListingNotFound
from carmarket.services.filtering import filter_by_view, filter_listings, sort_newest_first


class Catalog:
    """In-memory listing collection owned by one view.

    Mutated only between awaits, after the store accepted the change.
    """

    def __init__(self, listings: list[Listing] | None = None, rates: ExchangeRateTable | None = None):
        self.rates = rates or ExchangeRateTable()
        self.listings: list[Listing] = sort_newest_first(listings or [])

    def __len__(self) -> int:
        return len(self.listings)

    def get(self, listing_id: str) -> Listing:
        for listing in self.listings:
            if listing.id == listing_id:
                return listing
        raise ListingNotFound(listing_id)

    def find(self, listing_id: str) -> Listing | None:
        try:
            return self.get(listing_id)
        except ListingNotFound:
            return None

    def search(self, criteria: FilterCriteria) -> list[Listing]:
        return filter_listings(self.listings, criteria, self.rates)

    def view(self, name: str) -> list[Listing]:
        return filter_by_view(self.listings, name)

    def set_status(self, listing_id: str, status: ListingStatus) -> Listing:
        return self.update(listing_id, status=status)

    def update(self, listing_id: str, **changes) -> Listing:
        for idx, listing in enumerate(self.listings):
            if listing.id == listing_id:
                updated = listing.model_copy(update=changes)
                self.listings[idx] = updated
                return updated
        raise ListingNotFound(listing_id)

    def remove(self, listing_id: str):
        self.listings = [listing for listing in self.listings if listing.id != listing_id]
