from conftest import make_brand, make_category, make_coupon


class TestProfile:
    def test_update_profile(self, client, user_headers):
        r = client.put("/user/profile", json={"name": "Sam Shopper", "email": "sam@example.com"}, headers=user_headers)

        assert r.status_code == 200
        assert r.json()["data"]["email"] == "sam@example.com"

    def test_email_taken(self, client, admin, user_headers):
        r = client.put("/user/profile", json={"name": "Sam", "email": admin.email}, headers=user_headers)
        assert r.status_code == 400

    def test_settings_round_trip(self, client, user_headers):
        r = client.put("/user/settings", json={"settings": {"newsletter": True}}, headers=user_headers)
        assert r.status_code == 200

        assert client.get("/user/settings", headers=user_headers).json()["data"]["settings"] == {"newsletter": True}


class TestFavorites:
    def test_add_list_remove(self, client, db, user_headers):
        coupon = make_coupon(db, make_brand(db), make_category(db))

        assert client.post("/user/favorites", json={"couponId": coupon.id}, headers=user_headers).status_code == 201
        assert [c["id"] for c in client.get("/user/favorites", headers=user_headers).json()["data"]] == [coupon.id]

        r = client.delete("/user/favorites", params={"couponId": coupon.id}, headers=user_headers)
        assert r.status_code == 200
        assert client.get("/user/favorites", headers=user_headers).json()["data"] == []

    def test_duplicate_favorite(self, client, db, user_headers):
        coupon = make_coupon(db, make_brand(db), make_category(db))
        client.post("/user/favorites", json={"couponId": coupon.id}, headers=user_headers)

        r = client.post("/user/favorites", json={"couponId": coupon.id}, headers=user_headers)

        assert r.status_code == 400
        assert r.json()["message"] == "Coupon already favorited"

    def test_unknown_coupon(self, client, user_headers):
        assert client.post("/user/favorites", json={"couponId": "missing"}, headers=user_headers).status_code == 404

    def test_remove_missing_favorite(self, client, user_headers):
        assert client.delete("/user/favorites", params={"couponId": "missing"}, headers=user_headers).status_code == 404


class TestStats:
    def test_savings_estimate(self, client, db, user_headers):
        brand, category = make_brand(db), make_category(db)
        pct = make_coupon(db, brand, category, discount_value=10, min_order_value=100)
        fixed = make_coupon(db, brand, category, title="Five", discount_type="FIXED_AMOUNT", discount_value=5)
        client.post(f"/coupons/{pct.id}/use", headers=user_headers)
        client.post(f"/coupons/{fixed.id}/use", headers=user_headers)
        client.post("/user/favorites", json={"couponId": fixed.id}, headers=user_headers)

        data = client.get("/user/stats", headers=user_headers).json()["data"]

        assert data == {"favoriteCoupons": 1, "usedCoupons": 2, "totalSavings": 15.0}


class TestContact:
    def test_submit_and_list(self, client, admin_headers):
        body = {"type": "PARTNER", "name": "Pat", "email": "pat@example.com", "message": "Let's work together"}

        assert client.post("/contact", json=body).status_code == 201

        r = client.get("/contact", params={"type": "PARTNER"}, headers=admin_headers)
        assert [c["name"] for c in r.json()["data"]] == ["Pat"]
        assert client.get("/contact", params={"type": "CONTACT"}, headers=admin_headers).json()["data"] == []
