from couponhub.models import CouponUsage
from couponhub.services import redemptions

from conftest import failing_insert, make_brand, make_category, make_coupon


def _usages(db, coupon_id):
    db.expire_all()
    return db.query(CouponUsage).filter(CouponUsage.coupon_id == coupon_id).all()


def _used_count(client, coupon_id):
    r = client.get(f"/coupons/{coupon_id}")
    assert r.status_code == 200
    return r.json()["data"]["usedCount"]


class TestCouponRedemption:
    def test_sequential_redemptions_stop_at_limit(self, client, db):
        coupon = make_coupon(db, make_brand(db), make_category(db), usage_limit=2)

        codes = [client.post(f"/coupons/{coupon.id}/use").status_code for _ in range(3)]

        assert codes == [200, 200, 400]
        assert _used_count(client, coupon.id) == 2
        assert len(_usages(db, coupon.id)) == 2

    def test_limit_reached_message(self, client, db):
        coupon = make_coupon(db, make_brand(db), make_category(db), usage_limit=1, used_count=1)

        r = client.post(f"/coupons/{coupon.id}/use")

        assert r.status_code == 400
        assert r.json()["message"] == "Coupon usage limit reached"

    def test_repeat_anonymous_use_without_limit(self, client, db):
        coupon = make_coupon(db, make_brand(db), make_category(db))

        first = client.post(f"/coupons/{coupon.id}/use")
        second = client.post(f"/coupons/{coupon.id}/use")

        assert first.status_code == second.status_code == 200
        assert first.json()["data"]["coupon"]["code"] == "SAVE10"
        assert _used_count(client, coupon.id) == 2
        usages = _usages(db, coupon.id)
        assert len(usages) == 2
        assert all(u.user_id is None for u in usages)

    def test_signed_in_use_records_user(self, client, db, user, user_headers):
        coupon = make_coupon(db, make_brand(db), make_category(db))

        r = client.post(f"/coupons/{coupon.id}/use", headers={**user_headers, "User-Agent": "pytest-agent"})

        assert r.status_code == 200
        [usage] = _usages(db, coupon.id)
        assert usage.user_id == user.id
        assert usage.user_agent == "pytest-agent"

    def test_inactive_coupon_rejected(self, client, db):
        coupon = make_coupon(db, make_brand(db), make_category(db), is_active=False)

        r = client.post(f"/coupons/{coupon.id}/use")

        assert r.status_code == 400
        assert r.json()["message"] == "Coupon is not active"
        assert _usages(db, coupon.id) == []

    def test_unknown_coupon_is_404(self, client):
        r = client.post("/coupons/does-not-exist/use")
        assert r.status_code == 404
        assert r.json()["message"] == "Coupon not found"

    def test_unexpected_failure_still_answers_success(self, client, db, monkeypatch):
        coupon = make_coupon(db, make_brand(db), make_category(db))

        async def boom(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(redemptions, "_load_coupon", boom)
        r = client.post(f"/coupons/{coupon.id}/use")

        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["message"] == "Coupon opened"
        assert body["data"] == {}

    def test_failed_usage_insert_does_not_fail_request(self, client, db):
        coupon = make_coupon(db, make_brand(db), make_category(db))

        with failing_insert(CouponUsage, "insert failed"):
            r = client.post(f"/coupons/{coupon.id}/use")

        assert r.status_code == 200
        body = r.json()
        assert body["message"] == "Coupon usage recorded successfully"
        assert body["data"]["coupon"]["code"] == "SAVE10"
        assert body["data"]["coupon"]["brand"] == "Acme"
        assert _used_count(client, coupon.id) == 1
        assert _usages(db, coupon.id) == []
