import pytest
from sqlalchemy.exc import OperationalError

from carmarket.config import settings
from carmarket.db import crud
from carmarket.schemas.listing import Currency, ListingStatus
from carmarket.services import lifecycle
from carmarket.services.catalog import Catalog
from carmarket.services.errors import (
    ConfirmationExpired, InvalidTransition, ListingNotFound, ValidationError,
)
from carmarket.services.lifecycle import (
    Transition, available_transitions, confirm_transition, edit_listing, request_transition,
)
from carmarket.services.sources import DatabaseSource

from conftest import add_car


async def load_catalog(db) -> Catalog:
    return Catalog(await DatabaseSource(db).fetch_listings())


class TestTransitionTable:
    def test_available_transitions(self):
        assert available_transitions(ListingStatus.PENDING_APPROVAL) == [
            Transition.APPROVE, Transition.REJECT, Transition.DELETE,
        ]
        assert available_transitions(ListingStatus.PUBLISHED) == [Transition.MARK_SOLD, Transition.DELETE]
        assert available_transitions(ListingStatus.SOLD) == [Transition.REPUBLISH, Transition.DELETE]
        assert available_transitions(ListingStatus.REJECTED) == [Transition.DELETE]


class TestTwoStepTransitions:
    async def test_approve_publishes(self, db, scenario_cars):
        catalog = await load_catalog(db)

        pending = request_transition(catalog, scenario_cars["C"], "approve")
        assert pending.from_status == ListingStatus.PENDING_APPROVAL
        assert pending.prompt

        # Nothing changes until the confirmation arrives
        assert (await crud.get_car(db, scenario_cars["C"]))["status"] == "pending_approval"

        result = await confirm_transition(db, catalog, pending)
        assert result.status == ListingStatus.PUBLISHED
        assert catalog.get(scenario_cars["C"]).status == ListingStatus.PUBLISHED

        published = await DatabaseSource(db).fetch_listings(ListingStatus.PUBLISHED)
        assert scenario_cars["C"] in [listing.id for listing in published]

    async def test_sold_and_republish(self, db, scenario_cars):
        catalog = await load_catalog(db)
        listing_id = scenario_cars["A"]

        await confirm_transition(db, catalog, request_transition(catalog, listing_id, Transition.MARK_SOLD))
        assert (await crud.get_car(db, listing_id))["status"] == "sold"

        await confirm_transition(db, catalog, request_transition(catalog, listing_id, "republish"))
        assert (await crud.get_car(db, listing_id))["status"] == "published"

    async def test_confirm_with_token_string(self, db, scenario_cars):
        catalog = await load_catalog(db)
        pending = request_transition(catalog, scenario_cars["C"], "reject")

        result = await confirm_transition(db, catalog, pending.token)
        assert result.status == ListingStatus.REJECTED

    async def test_disallowed_transition(self, db, scenario_cars):
        catalog = await load_catalog(db)
        with pytest.raises(InvalidTransition):
            request_transition(catalog, scenario_cars["A"], "approve")
        with pytest.raises(InvalidTransition):
            request_transition(catalog, scenario_cars["A"], "archive")

    async def test_unknown_listing(self, db, scenario_cars):
        catalog = await load_catalog(db)
        with pytest.raises(ListingNotFound):
            request_transition(catalog, "missing", "approve")

    async def test_stale_confirmation_refused(self, db, scenario_cars):
        catalog = await load_catalog(db)
        approve = request_transition(catalog, scenario_cars["C"], "approve")
        reject = request_transition(catalog, scenario_cars["C"], "reject")

        await confirm_transition(db, catalog, reject)
        with pytest.raises(InvalidTransition):
            await confirm_transition(db, catalog, approve)
        assert (await crud.get_car(db, scenario_cars["C"]))["status"] == "rejected"

    async def test_tampered_token(self, db, scenario_cars):
        catalog = await load_catalog(db)
        pending = request_transition(catalog, scenario_cars["C"], "approve")
        with pytest.raises(InvalidTransition):
            await confirm_transition(db, catalog, pending.token + "x")

    async def test_expired_token(self, db, scenario_cars, monkeypatch):
        catalog = await load_catalog(db)
        pending = request_transition(catalog, scenario_cars["C"], "approve")

        monkeypatch.setattr(settings, "CONFIRMATION_MAX_AGE", -1)
        with pytest.raises(ConfirmationExpired):
            await confirm_transition(db, catalog, pending)
        assert (await crud.get_car(db, scenario_cars["C"]))["status"] == "pending_approval"


class TestDelete:
    async def test_delete_removes_images_and_listing(self, db):
        listing_id = await add_car(db, images=["https://img/1.jpg", "https://img/2.jpg"], status="rejected")
        catalog = await load_catalog(db)
        assert catalog.get(listing_id).images == ["https://img/1.jpg", "https://img/2.jpg"]

        result = await confirm_transition(db, catalog, request_transition(catalog, listing_id, "delete"))

        assert result.deleted
        assert await crud.get_car(db, listing_id) is None
        assert await crud.delete_car_images(db, listing_id) == 0
        assert catalog.find(listing_id) is None

    async def test_image_cleanup_failure_does_not_block(self, db, monkeypatch):
        listing_id = await add_car(db, status="published")
        catalog = await load_catalog(db)

        async def failing_delete(db, car_id):
            raise OperationalError("DELETE FROM car_images", {}, Exception("locked"))

        monkeypatch.setattr(crud, "delete_car_images", failing_delete)
        await lifecycle.delete_listing(db, catalog, listing_id)

        assert await crud.get_car(db, listing_id) is None


class TestEdit:
    async def test_edit_and_publish(self, db, scenario_cars):
        catalog = await load_catalog(db)

        updated = await edit_listing(
            db, catalog, scenario_cars["C"],
            brand=" BMW ", model="118i", price="6500", currency="EUR",
            seller_name="Galeri Kıbrıs", publish=True,
        )

        assert updated.model == "118i"
        assert updated.price == 6500
        assert updated.currency == Currency.EUR
        assert updated.status == ListingStatus.PUBLISHED
        row = await crud.get_car(db, scenario_cars["C"])
        assert row["brand"] == "BMW"
        assert row["status"] == "published"
        assert row["seller_name"] == "Galeri Kıbrıs"

    async def test_edit_keeps_status(self, db, scenario_cars):
        catalog = await load_catalog(db)
        updated = await edit_listing(
            db, catalog, scenario_cars["C"], "BMW", "118d", 5200, "STG", "Ali",
        )
        assert updated.status == ListingStatus.PENDING_APPROVAL

    @pytest.mark.parametrize("brand,model,price,seller", [
        ("", "118d", 5000, "Ali"),
        ("BMW", "118d", 0, "Ali"),
        ("BMW", "118d", "cheap", "Ali"),
        ("BMW", "118d", "inf", "Ali"),
        ("BMW", "118d", float("nan"), "Ali"),
        ("BMW", "118d", 10 ** 400, "Ali"),
        ("BMW", "118d", 5000, "  "),
    ])
    async def test_edit_validation(self, db, scenario_cars, brand, model, price, seller):
        catalog = await load_catalog(db)
        with pytest.raises(ValidationError):
            await edit_listing(db, catalog, scenario_cars["C"], brand, model, price, "STG", seller)
        assert (await crud.get_car(db, scenario_cars["C"]))["price"] == 5000
