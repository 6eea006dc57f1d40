from couponhub.models import Coupon

from conftest import make_brand, make_category, make_coupon, with_csrf


class TestCategories:
    def test_delete_refused_while_coupons_exist(self, client, db, admin_headers):
        category = make_category(db)
        make_coupon(db, make_brand(db), category)

        r = client.delete(f"/categories/{category.id}", headers=admin_headers)

        assert r.status_code == 400

    def test_delete_empty_category(self, client, db, admin_headers):
        category = make_category(db)

        r = client.delete(f"/categories/{category.id}", headers=admin_headers)

        assert r.status_code == 200
        assert client.get(f"/categories/{category.id}").status_code == 404

    def test_duplicate_name_rejected(self, client, db, admin_headers):
        make_category(db, "Travel")

        r = client.post("/categories", json={"name": "Travel"}, headers=with_csrf(client, admin_headers))

        assert r.status_code == 400


class TestBrands:
    def test_delete_removes_coupons(self, client, db, admin_headers):
        brand = make_brand(db)
        make_coupon(db, brand, make_category(db))

        r = client.delete(f"/brands/{brand.id}", headers=admin_headers)

        assert r.status_code == 200
        assert db.query(Coupon).count() == 0

    def test_lookup_by_slug_includes_count(self, client, db):
        brand = make_brand(db, "Acme")
        category = make_category(db)
        make_coupon(db, brand, category)
        make_coupon(db, brand, category, title="Second")

        r = client.get("/brands/slug/acme")

        assert r.status_code == 200
        assert r.json()["data"]["couponCount"] == 2

    def test_duplicate_name_rejected(self, client, db, admin_headers):
        make_brand(db, "Acme")

        r = client.post("/brands", json={"name": "Acme"}, headers=with_csrf(client, admin_headers))

        assert r.status_code == 400
        assert r.json()["message"] == "Brand already exists"


class TestCoupons:
    def test_create_requires_existing_refs(self, client, db, admin_headers):
        brand = make_brand(db)
        payload = {
            "title": "Ten off",
            "type": "COUPON_CODE",
            "discountType": "PERCENTAGE",
            "discountValue": 10,
            "brandId": brand.id,
            "categoryId": "missing",
        }

        r = client.post("/coupons/create", json=payload, headers=admin_headers)

        assert r.status_code == 400

    def test_create_rejects_inverted_dates(self, client, db, admin_headers):
        brand, category = make_brand(db), make_category(db)
        payload = {
            "title": "Ten off",
            "type": "DEAL",
            "discountType": "FIXED_AMOUNT",
            "discountValue": 10,
            "brandId": brand.id,
            "categoryId": category.id,
            "startDate": "2030-02-01",
            "endDate": "2030-01-01",
        }

        r = client.post("/coupons/create", json=payload, headers=admin_headers)

        assert r.status_code == 400

    def test_create_coupon(self, client, db, admin_headers):
        brand, category = make_brand(db), make_category(db)
        payload = {
            "title": "Ten off",
            "code": "TEN",
            "type": "COUPON_CODE",
            "discountType": "PERCENTAGE",
            "discountValue": 10,
            "usageLimit": 5,
            "brandId": brand.id,
            "categoryId": category.id,
        }

        r = client.post("/coupons/create", json=payload, headers=admin_headers)

        assert r.status_code == 201, r.text
        data = r.json()["data"]
        assert data["usedCount"] == 0
        assert data["brand"]["name"] == "Acme"

    def test_listing_hides_inactive_and_marks_favorites(self, client, db, user, user_headers):
        brand, category = make_brand(db), make_category(db)
        liked = make_coupon(db, brand, category, title="Liked")
        make_coupon(db, brand, category, title="Other")
        make_coupon(db, brand, category, title="Hidden", is_active=False)
        assert client.post("/user/favorites", json={"couponId": liked.id}, headers=user_headers).status_code == 201

        r = client.get("/coupons", headers=user_headers)

        assert r.status_code == 200
        items = {c["title"]: c for c in r.json()["data"]}
        assert set(items) == {"Liked", "Other"}
        assert items["Liked"]["isFavorite"] is True
        assert items["Other"]["isFavorite"] is False
        assert r.json()["pagination"]["total"] == 2


class TestSearch:
    def test_federated_search(self, client, db):
        brand = make_brand(db, "Sunny Travel")
        category = make_category(db, "Travel")
        make_coupon(db, brand, category, title="Travel deal")
        make_coupon(db, brand, category, title="Unrelated", code="XYZ")

        r = client.get("/search", params={"q": "travel"})

        assert r.status_code == 200
        data = r.json()["data"]
        assert {c["title"] for c in data["coupons"]} == {"Travel deal", "Unrelated"}
        assert [b["name"] for b in data["brands"]] == ["Sunny Travel"]
        assert [c["name"] for c in data["categories"]] == ["Travel"]

    def test_rejects_unsafe_query(self, client):
        assert client.get("/search", params={"q": "<script>"}).status_code == 400

    def test_type_filter(self, client, db):
        make_brand(db, "Travelmax")

        r = client.get("/search", params={"q": "travel", "type": "categories"})

        assert r.status_code == 200
        assert r.json()["data"]["brands"] == []
