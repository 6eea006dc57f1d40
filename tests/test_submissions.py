from couponhub.models import Brand, Coupon, UserSubmission

from conftest import make_brand, make_category, with_csrf


def submit(client, type_, payload, headers=None):
    r = client.post("/submissions", json={"type": type_, "payload": payload}, headers=with_csrf(client, headers))
    assert r.status_code == 201, r.text
    return r.json()["data"]


class TestSubmissionIntake:
    def test_anonymous_submission_is_pending(self, client):
        data = submit(client, "BRAND", {"name": "New Shop"})
        assert data["status"] == "PENDING"
        assert data["userId"] is None

    def test_signed_in_submission_keeps_user(self, client, user, user_headers):
        data = submit(client, "COUPON", {"title": "Half price"}, user_headers)
        assert data["userId"] == user.id

    def test_requires_csrf(self, client):
        r = client.post("/submissions", json={"type": "BRAND", "payload": {"name": "x"}})
        assert r.status_code == 403

    def test_admin_listing_filters(self, client, admin_headers):
        submit(client, "BRAND", {"name": "One"})
        submit(client, "COUPON", {"title": "Two"})

        r = client.get("/submissions", params={"type": "COUPON"}, headers=admin_headers)
        assert r.status_code == 200
        assert [s["type"] for s in r.json()["data"]] == ["COUPON"]

    def test_listing_requires_admin(self, client, user_headers):
        assert client.get("/submissions", headers=user_headers).status_code == 403


class TestSubmissionStatus:
    def test_pending_to_approved(self, client, admin_headers):
        sub = submit(client, "BRAND", {"name": "Shop"})

        r = client.patch("/submissions", json={"id": sub["id"], "action": "status", "status": "APPROVED"}, headers=admin_headers)

        assert r.status_code == 200
        assert r.json()["data"]["status"] == "APPROVED"

    def test_decided_submission_cannot_change(self, client, admin_headers):
        sub = submit(client, "BRAND", {"name": "Shop"})
        client.patch("/submissions", json={"id": sub["id"], "action": "status", "status": "REJECTED"}, headers=admin_headers)

        r = client.patch("/submissions", json={"id": sub["id"], "action": "status", "status": "APPROVED"}, headers=admin_headers)

        assert r.status_code == 400

    def test_missing_status(self, client, admin_headers):
        sub = submit(client, "BRAND", {"name": "Shop"})

        r = client.patch("/submissions", json={"id": sub["id"], "action": "status"}, headers=admin_headers)

        assert r.status_code == 400
        assert r.json()["message"] == "Missing status"

    def test_unknown_submission(self, client, admin_headers):
        r = client.patch("/submissions", json={"id": "nope", "action": "status", "status": "APPROVED"}, headers=admin_headers)
        assert r.status_code == 404


class TestSubmissionMove:
    def test_existing_brand_returns_its_id(self, client, db, admin_headers):
        brand = make_brand(db, "Acme")
        sub = submit(client, "BRAND", {"name": "Acme"})

        r = client.patch("/submissions", json={"id": sub["id"], "action": "move"}, headers=admin_headers)

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["movedTo"] == "brand"
        assert data["id"] == brand.id
        assert data["note"] == "Brand already existed"
        assert db.query(Brand).count() == 1

    def test_new_brand_created_inactive(self, client, db, admin_headers):
        sub = submit(client, "BRAND", {"name": "Fresh Goods", "website": "https://fresh.example.com", "extra": 1})

        r = client.patch("/submissions", json={"id": sub["id"], "action": "move"}, headers=admin_headers)

        assert r.status_code == 200
        brand = db.get(Brand, r.json()["data"]["id"])
        assert brand.slug == "fresh-goods"
        assert brand.is_active is False

    def test_brand_slug_clash_rejected(self, client, db, admin_headers):
        make_brand(db, "Fresh Goods")
        sub = submit(client, "BRAND", {"name": "fresh goods"})

        r = client.patch("/submissions", json={"id": sub["id"], "action": "move"}, headers=admin_headers)

        assert r.status_code == 400

    def test_coupon_created_with_safe_defaults(self, client, db, admin_headers):
        brand, category = make_brand(db), make_category(db)
        sub = submit(client, "COUPON", {"title": "Spring sale", "brandId": brand.id, "categoryId": category.id})

        r = client.patch("/submissions", json={"id": sub["id"], "action": "move"}, headers=admin_headers)

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["movedTo"] == "coupon"
        assert data["status"] == "PENDING"
        coupon = db.get(Coupon, data["id"])
        assert coupon.type == "COUPON_CODE"
        assert coupon.discount_type == "PERCENTAGE"
        assert coupon.discount_value == 0
        assert (coupon.is_active, coupon.is_verified, coupon.is_exclusive) == (False, False, False)

    def test_coupon_with_missing_category_rejected(self, client, db, admin_headers):
        brand = make_brand(db)
        sub = submit(client, "COUPON", {"title": "Spring sale", "brandId": brand.id, "categoryId": "missing"})

        r = client.patch("/submissions", json={"id": sub["id"], "action": "move"}, headers=admin_headers)

        assert r.status_code == 400
        assert db.query(Coupon).count() == 0

    def test_move_applies_explicit_status(self, client, db, admin_headers):
        sub = submit(client, "BRAND", {"name": "Approved Shop"})

        r = client.patch(
            "/submissions", json={"id": sub["id"], "action": "move", "status": "APPROVED"}, headers=admin_headers
        )

        assert r.status_code == 200
        assert r.json()["data"]["status"] == "APPROVED"
        db.expire_all()
        assert db.get(UserSubmission, sub["id"]).status == "APPROVED"

    def test_rejected_submission_cannot_move(self, client, admin_headers):
        sub = submit(client, "BRAND", {"name": "Nope"})
        client.patch("/submissions", json={"id": sub["id"], "action": "status", "status": "REJECTED"}, headers=admin_headers)

        r = client.patch("/submissions", json={"id": sub["id"], "action": "move"}, headers=admin_headers)

        assert r.status_code == 400
