from datetime import datetime, timedelta

from couponhub.models import AuditLog, Coupon, User, UserSubmission

from conftest import failing_insert, login, make_brand, make_category, make_coupon, make_user, with_csrf


def _log(db, action, when, resource_type="brand"):
    entry = AuditLog(
        action=action,
        user_id="admin-id",
        user_email="admin@example.com",
        user_role="ADMIN",
        resource_type=resource_type,
        resource_id="r1",
        ip_address="127.0.0.1",
        user_agent="pytest",
        endpoint="/brands",
        method="POST",
        timestamp=when,
    )
    db.add(entry)
    db.commit()
    return entry


class TestAuditLogs:
    def test_newest_first_with_filters(self, client, db, admin_headers):
        base = datetime(2030, 1, 1, 12, 0, 0)
        _log(db, "BRAND_CREATED", base)
        _log(db, "BRAND_UPDATED", base + timedelta(minutes=5))
        _log(db, "CATEGORY_CREATED", base + timedelta(minutes=10), resource_type="category")

        r = client.get("/admin/audit-logs", params={"resourceType": "brand"}, headers=admin_headers)

        assert r.status_code == 200
        body = r.json()
        assert [e["action"] for e in body["data"]] == ["BRAND_UPDATED", "BRAND_CREATED"]
        assert body["pagination"]["total"] == 2

    def test_date_window(self, client, db, admin_headers):
        base = datetime(2030, 1, 1, 12, 0, 0)
        _log(db, "BRAND_CREATED", base)
        _log(db, "BRAND_UPDATED", base + timedelta(days=2))

        r = client.get(
            "/admin/audit-logs",
            params={"resourceType": "brand", "startDate": "2030-01-02T00:00:00", "endDate": "2030-01-05T00:00:00"},
            headers=admin_headers,
        )

        assert [e["action"] for e in r.json()["data"]] == ["BRAND_UPDATED"]

    def test_invalid_filters_rejected(self, client, admin_headers):
        assert client.get("/admin/audit-logs", params={"limit": 101}, headers=admin_headers).status_code == 400
        assert client.get("/admin/audit-logs", params={"page": 0}, headers=admin_headers).status_code == 400
        assert client.get("/admin/audit-logs", params={"action": "NOT_AN_ACTION"}, headers=admin_headers).status_code == 400
        r = client.get(
            "/admin/audit-logs",
            params={"startDate": "2030-02-01T00:00:00", "endDate": "2030-01-01T00:00:00"},
            headers=admin_headers,
        )
        assert r.status_code == 400

    def test_brand_write_is_audited(self, client, db, admin, admin_headers):
        client.post("/brands", json={"name": "Acme"}, headers=with_csrf(client, admin_headers))

        r = client.get("/admin/audit-logs", params={"action": "BRAND_CREATED"}, headers=admin_headers)

        [entry] = r.json()["data"]
        assert entry["userId"] == admin.id
        assert entry["resourceName"] == "Acme"
        assert entry["newValues"]["name"] == "Acme"


class TestAuditFailure:
    def test_coupon_create_still_succeeds(self, client, db, admin_headers):
        brand, category = make_brand(db), make_category(db)
        payload = {
            "title": "Ten off",
            "code": "TEN",
            "type": "COUPON_CODE",
            "discountType": "PERCENTAGE",
            "discountValue": 10,
            "brandId": brand.id,
            "categoryId": category.id,
        }

        with failing_insert(AuditLog):
            r = client.post("/coupons/create", json=payload, headers=admin_headers)

        assert r.status_code == 201, r.text
        assert r.json()["data"]["title"] == "Ten off"
        db.expire_all()
        assert db.get(Coupon, r.json()["data"]["id"]) is not None
        assert db.query(AuditLog).filter(AuditLog.action == "COUPON_CREATED").count() == 0

    def test_submission_status_change_still_succeeds(self, client, db, admin_headers):
        r = client.post("/submissions", json={"type": "BRAND", "payload": {"name": "Shop"}}, headers=with_csrf(client))
        sub_id = r.json()["data"]["id"]

        with failing_insert(AuditLog):
            r = client.patch(
                "/submissions", json={"id": sub_id, "action": "status", "status": "APPROVED"}, headers=admin_headers
            )

        assert r.status_code == 200, r.text
        assert r.json()["data"]["status"] == "APPROVED"
        db.expire_all()
        assert db.get(UserSubmission, sub_id).status == "APPROVED"

    def test_register_still_succeeds(self, client, db):
        with failing_insert(AuditLog):
            r = client.post("/auth/register", json={"name": "Jo", "email": "jo@example.com", "password": "secret1"})

        assert r.status_code == 201, r.text
        assert r.json()["data"]["email"] == "jo@example.com"
        assert db.query(User).filter(User.email == "jo@example.com").count() == 1


class TestUserAdministration:
    def test_deactivate_revokes_sessions(self, client, db, admin_headers, user, user_headers):
        r = client.patch(
            f"/admin/users/{user.id}/toggle-status",
            json={"isActive": False},
            headers=with_csrf(client, admin_headers),
        )

        assert r.status_code == 200
        assert r.json()["data"]["sessionsRevoked"] == 1
        assert client.get("/user/profile", headers=user_headers).status_code == 401

    def test_cannot_toggle_self(self, client, admin, admin_headers):
        r = client.patch(
            f"/admin/users/{admin.id}/toggle-status",
            json={"isActive": False},
            headers=with_csrf(client, admin_headers),
        )
        assert r.status_code == 400

    def test_user_listing(self, client, db, admin_headers):
        make_user(db, "alice@example.com")
        make_user(db, "bob@example.com", is_active=False)

        r = client.get("/admin/users", params={"status": "inactive"}, headers=admin_headers)

        assert r.status_code == 200
        assert [u["email"] for u in r.json()["data"]] == ["bob@example.com"]

    def test_user_session_info(self, client, user, user_headers, admin_headers):
        r = client.get(f"/admin/users/{user.id}/sessions", headers=admin_headers)

        assert r.status_code == 200
        info = r.json()["data"]["sessionInfo"]
        assert info["activeSessions"] == 1
        assert info["isLocked"] is False


class TestSessionAdministration:
    def test_force_logout(self, client, db, user, user_headers, admin_headers):
        body = {"userId": user.id, "reason": "suspicious activity"}

        r = client.post("/admin/sessions", json=body, headers=with_csrf(client, admin_headers))

        assert r.status_code == 200
        assert r.json()["data"]["sessionsRevoked"] == 1
        assert client.get("/user/profile", headers=user_headers).status_code == 401

        again = client.post("/admin/sessions", json=body, headers=with_csrf(client, admin_headers))
        assert again.json()["data"]["sessionsRevoked"] == 0

    def test_unlock(self, client, user, admin_headers):
        for _ in range(5):
            client.post("/auth/login", json={"email": user.email, "password": "wrong"})

        r = client.post("/admin/sessions/unlock", json={"userId": user.id}, headers=with_csrf(client, admin_headers))

        assert r.status_code == 200
        login(client, user.email)

    def test_stats(self, client, admin_headers):
        r = client.get("/admin/sessions", headers=admin_headers)
        assert r.status_code == 200
        assert r.json()["data"]["activeSessions"] == 1


class TestDashboards:
    def test_stats_and_usage_analytics(self, client, db, admin_headers):
        coupon = make_coupon(db, make_brand(db), make_category(db))
        client.post(f"/coupons/{coupon.id}/use")

        stats = client.get("/admin/stats", params={"timeRange": "30d"}, headers=admin_headers)
        assert stats.status_code == 200
        assert stats.json()["data"]["totalCoupons"] == 1
        assert stats.json()["data"]["usageInRange"] == 1

        usage = client.get("/admin/usage-analytics", params={"period": "30d"}, headers=admin_headers)
        assert usage.status_code == 200
        assert usage.json()["data"]["totalUsages"] == 1
        assert usage.json()["data"]["topCoupons"][0]["couponId"] == coupon.id

        usages = client.get("/admin/coupon-usages", headers=admin_headers)
        assert usages.json()["pagination"]["total"] == 1

    def test_security_dashboard(self, client, user, admin_headers):
        client.post("/auth/login", json={"email": user.email, "password": "wrong"})

        r = client.get("/admin/security-dashboard", headers=admin_headers)

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["recentEvents"]["failedLogins"] == 1
        assert data["sessionStats"]["activeSessions"] == 1

    def test_admin_only(self, client, user_headers):
        assert client.get("/admin/stats", headers=user_headers).status_code == 403
