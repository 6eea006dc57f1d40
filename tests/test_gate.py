from conftest import with_csrf

BRAND = {"name": "Acme", "description": "Tools and more"}


class TestSecurityGateOrder:
    def test_missing_token_is_401(self, client):
        r = client.post("/brands", json=BRAND)
        assert r.status_code == 401
        assert r.json()["success"] is False

    def test_non_admin_is_403(self, client, user_headers):
        r = client.post("/brands", json=BRAND, headers=with_csrf(client, user_headers))
        assert r.status_code == 403
        assert r.json()["message"] == "Admin access required"

    def test_missing_csrf_is_403(self, client, admin_headers):
        r = client.post("/brands", json=BRAND, headers=admin_headers)
        assert r.status_code == 403
        assert r.json()["message"] == "Invalid CSRF token"

    def test_csrf_from_another_caller_is_rejected(self, client, admin_headers):
        anon_token = with_csrf(client)["X-CSRF-Token"]
        r = client.post("/brands", json=BRAND, headers={**admin_headers, "X-CSRF-Token": anon_token})
        assert r.status_code == 403

    def test_invalid_body_is_400_with_field_errors(self, client, admin_headers):
        r = client.post("/brands", json={"name": ""}, headers=with_csrf(client, admin_headers))
        assert r.status_code == 400
        body = r.json()
        assert body["message"] == "Validation failed"
        assert any(e["field"] == "name" for e in body["errors"])

    def test_unknown_fields_are_rejected(self, client, admin_headers):
        r = client.post("/brands", json={**BRAND, "slug": "x"}, headers=with_csrf(client, admin_headers))
        assert r.status_code == 400

    def test_rate_limit_checked_before_body(self, client, admin_headers):
        headers = with_csrf(client, admin_headers)
        for _ in range(20):
            assert client.post("/brands", json={"name": ""}, headers=headers).status_code == 400

        r = client.post("/brands", json=BRAND, headers=headers)
        assert r.status_code == 429
        assert int(r.headers["Retry-After"]) > 0

    def test_valid_request_passes(self, client, admin_headers):
        r = client.post("/brands", json=BRAND, headers=with_csrf(client, admin_headers))
        assert r.status_code == 201
        data = r.json()["data"]
        assert data["slug"] == "acme"
        assert data["isActive"] is True

    def test_security_headers_present(self, client):
        r = client.get("/health")
        assert r.headers["X-Content-Type-Options"] == "nosniff"
        assert r.headers["X-Frame-Options"] == "DENY"

    def test_revoked_session_token_rejected(self, client, admin, admin_headers):
        from couponhub.core.sessions import session_manager

        assert client.get("/admin/sessions", headers=admin_headers).status_code == 200
        session_manager.force_logout_user(admin.id, "test")
        assert client.get("/admin/sessions", headers=admin_headers).status_code == 401
