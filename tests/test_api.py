import io

import openpyxl

from carmarket.db.models import Profile


class TestBrowse:
    async def test_published_only(self, client, scenario_cars):
        resp = await client.get("/api/v1/listings")
        assert resp.status_code == 200
        data = resp.json()
        # Newest first
        assert [l["id"] for l in data["listings"]] == [scenario_cars["B"], scenario_cars["A"]]
        assert data["listings"][0]["formatted_price"] == "€15,000"

    async def test_price_filter_in_stg(self, client, scenario_cars):
        resp = await client.get("/api/v1/listings", params={"max_price": 12000, "currency": "STG"})
        assert [l["id"] for l in resp.json()["listings"]] == [scenario_cars["A"]]

    async def test_negative_price_rejected(self, client, scenario_cars):
        resp = await client.get("/api/v1/listings", params={"min_price": -1})
        assert resp.status_code == 422


class TestDetail:
    async def test_detail_with_similar_fallback(self, client, scenario_cars):
        resp = await client.get("/api/v1/listings/detail", params={"id": scenario_cars["A"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["listing"]["brand"] == "BMW"
        assert data["formatted_price"] == "£10,000"
        assert data["contact"]["seller_name"] == "Sahibinden"
        # No other published BMW, so any published listing is suggested
        assert [s["id"] for s in data["similar"]] == [scenario_cars["B"]]

    async def test_missing_listing(self, client, scenario_cars):
        assert (await client.get("/api/v1/listings/detail", params={"id": "nope"})).status_code == 404
        assert (await client.get("/api/v1/listings/detail")).status_code == 404


class TestFavorites:
    async def test_toggle_and_list(self, client, scenario_cars):
        resp = await client.post(f"/api/v1/favorites/{scenario_cars['A']}/toggle")
        assert resp.json() == {"id": scenario_cars["A"], "is_favorite": True, "count": 1}

        favorites = (await client.get("/api/v1/favorites")).json()
        assert [l["id"] for l in favorites["listings"]] == [scenario_cars["A"]]

        browse = (await client.get("/api/v1/listings")).json()
        flags = {l["id"]: l["is_favorite"] for l in browse["listings"]}
        assert flags == {scenario_cars["A"]: True, scenario_cars["B"]: False}

        resp = await client.post(f"/api/v1/favorites/{scenario_cars['A']}/toggle")
        assert resp.json()["is_favorite"] is False
        assert (await client.get("/api/v1/favorites")).json()["total"] == 0

    async def test_deleted_favorite_is_skipped(self, client, scenario_cars):
        await client.post("/api/v1/favorites/gone/toggle")
        assert (await client.get("/api/v1/favorites")).json()["listings"] == []


class TestAuth:
    async def test_login(self, client):
        from carmarket.config import settings
        resp = await client.post("/api/v1/auth/login", json={
            "email": settings.AUTH_EMAIL, "password": settings.AUTH_PASSWORD,
        })
        assert resp.status_code == 200
        token = resp.json()["token"]

        headers = {"Authorization": f"Bearer {token}"}
        assert (await client.post("/api/v1/auth/check", headers=headers)).status_code == 200
        await client.post("/api/v1/auth/logout", headers=headers)
        assert (await client.post("/api/v1/auth/check", headers=headers)).status_code == 401

    async def test_logout_leaves_other_sessions(self, client):
        from carmarket.auth import create_token
        from carmarket.config import settings
        first = {"Authorization": f"Bearer {create_token(settings.AUTH_EMAIL)}"}
        second = {"Authorization": f"Bearer {create_token(settings.AUTH_EMAIL)}"}
        assert first != second

        await client.post("/api/v1/auth/logout", headers=first)

        assert (await client.post("/api/v1/auth/check", headers=first)).status_code == 401
        assert (await client.post("/api/v1/auth/check", headers=second)).status_code == 200
        assert (await client.get("/api/v1/admin/listings", headers=second)).status_code == 200

    async def test_wrong_password(self, client):
        resp = await client.post("/api/v1/auth/login", json={"email": "x@example.com", "password": "nope"})
        assert resp.status_code == 401

    async def test_admin_requires_session(self, client):
        assert (await client.get("/api/v1/admin/listings")).status_code == 401
        assert (await client.get("/api/v1/users")).status_code == 401
        assert (await client.post("/api/v1/listings")).status_code == 401


class TestModeration:
    async def test_approve_flow(self, client, auth_headers, scenario_cars):
        pending = (await client.get("/api/v1/admin/listings", params={"view": "pending"}, headers=auth_headers)).json()
        assert [l["id"] for l in pending["listings"]] == [scenario_cars["C"]]

        resp = await client.post(
            f"/api/v1/admin/listings/{scenario_cars['C']}/transitions",
            json={"transition": "approve"}, headers=auth_headers,
        )
        assert resp.status_code == 200
        token = resp.json()["token"]

        resp = await client.post("/api/v1/admin/transitions/confirm", json={"token": token}, headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "published"

        browse = (await client.get("/api/v1/listings")).json()
        assert scenario_cars["C"] in [l["id"] for l in browse["listings"]]

        # The same confirmation cannot be replayed
        resp = await client.post("/api/v1/admin/transitions/confirm", json={"token": token}, headers=auth_headers)
        assert resp.status_code == 409

    async def test_invalid_transition(self, client, auth_headers, scenario_cars):
        resp = await client.post(
            f"/api/v1/admin/listings/{scenario_cars['A']}/transitions",
            json={"transition": "republish"}, headers=auth_headers,
        )
        assert resp.status_code == 409

        resp = await client.post(
            "/api/v1/admin/listings/missing/transitions",
            json={"transition": "approve"}, headers=auth_headers,
        )
        assert resp.status_code == 404

    async def test_unknown_view(self, client, auth_headers):
        resp = await client.get("/api/v1/admin/listings", params={"view": "archived"}, headers=auth_headers)
        assert resp.status_code == 400

    async def test_edit(self, client, auth_headers, scenario_cars):
        resp = await client.put(
            f"/api/v1/admin/listings/{scenario_cars['C']}",
            json={"brand": "BMW", "model": "120d", "price": 7000, "currency": "EUR",
                  "seller_name": "Ali", "publish": True},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "published"

        resp = await client.put(
            f"/api/v1/admin/listings/{scenario_cars['C']}",
            json={"brand": "BMW", "model": "120d", "price": -1, "seller_name": "Ali"},
            headers=auth_headers,
        )
        assert resp.status_code == 422

    async def test_export(self, client, auth_headers, scenario_cars):
        resp = await client.get("/api/v1/admin/export", params={"view": "all"}, headers=auth_headers)
        assert resp.status_code == 200

        wb = openpyxl.load_workbook(io.BytesIO(resp.content))
        ws = wb.active
        assert ws.cell(row=1, column=2).value == "Brand"
        assert ws.max_row == 4

    async def test_export_empty_view(self, client, auth_headers, scenario_cars):
        resp = await client.get("/api/v1/admin/export", params={"view": "sold"}, headers=auth_headers)
        assert resp.status_code == 404


class TestSubmission:
    async def test_validation_error(self, client, auth_headers):
        resp = await client.post(
            "/api/v1/listings",
            data={"brand": "", "model": "Civic", "price": "9000"},
            files={"images": ("front.jpg", b"data", "image/jpeg")},
            headers=auth_headers,
        )
        assert resp.status_code == 422


class TestUsers:
    async def test_directory(self, client, auth_headers, db):
        db.add_all([
            Profile(id="u1", full_name="Ayşe", role="ambassador"),
            Profile(id="u2", full_name="Can", role="gallery", gallery_name="Can Motors"),
            Profile(id="u3", full_name="Deniz", role="member"),
        ])
        await db.commit()

        data = (await client.get("/api/v1/users", params={"filter": "gallery"}, headers=auth_headers)).json()
        assert [u["display_name"] for u in data["users"]] == ["Can (Can Motors)"]

        resp = await client.patch("/api/v1/users/u3/role", json={"role": "ambassador"}, headers=auth_headers)
        assert resp.status_code == 200
        resp = await client.patch("/api/v1/users/u3/role", json={"role": "gallery"}, headers=auth_headers)
        assert resp.status_code == 422

        assert (await client.delete("/api/v1/users/u1", headers=auth_headers)).status_code == 200
        assert (await client.delete("/api/v1/users/u1", headers=auth_headers)).status_code == 404


async def test_rates(client):
    data = (await client.get("/api/v1/rates")).json()
    assert data["rates"] == {"STG": 1.0, "TL": 0.024, "EUR": 0.85}
    assert data["live"] is False
    assert data["ticker"] == []
