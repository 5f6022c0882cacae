"""
End-to-end tests through the FastAPI application and the request pipeline.
"""
from fastapi import status

from conftest import PASSWORD, csrf_from, login

AJAX = {"X-Requested-With": "XMLHttpRequest"}


class TestHealth:

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "ok", "database": "not configured"}
        assert response.headers["X-Process-Time"].endswith(" sec")


class TestSessionStorage:

    def test_injected_backend_is_used(self, app, session_backend):
        assert len(session_backend) == 0
        assert app.pipeline.session_manager.backend is session_backend

    def test_abandoned_sessions_do_not_accumulate(self, client, session_backend, clock):
        for _ in range(20):
            client.cookies.clear()
            client.get("/login")
        assert len(session_backend) == 20

        clock.advance(3601)
        client.cookies.clear()
        client.get("/login")
        assert len(session_backend) == 1


class TestLoginFlow:

    def test_home_redirects_guests_to_login(self, client):
        response = client.get("/")
        assert response.status_code == status.HTTP_302_FOUND
        assert response.headers["location"] == "/login"

    def test_login_page_sets_session_and_form_token(self, client):
        response = client.get("/login")
        assert response.status_code == status.HTTP_200_OK
        assert 'name="csrf_token"' in response.text
        assert '<meta name="csrf-token"' in response.text
        assert "SPMS_SESSION" in client.cookies

    def test_successful_login(self, client):
        client.get("/login")
        before = client.cookies.get("SPMS_SESSION")
        assert before
        response = login(client)

        assert response.status_code == status.HTTP_302_FOUND
        assert response.headers["location"] == "/dashboard"
        assert client.cookies.get("SPMS_SESSION") != before

        dashboard = client.get("/dashboard")
        assert dashboard.status_code == status.HTTP_200_OK
        assert "Alice Admin" in dashboard.text
        assert "Login successful" in dashboard.text

    def test_failed_login_reports_remaining_attempts(self, client):
        response = login(client, password="wrong-password")
        assert response.headers["location"] == "/login"

        page = client.get("/login")
        assert "4 attempts remaining" in page.text

    def test_lockout_message(self, client):
        for _ in range(5):
            login(client, password="wrong-password")

        login(client)
        page = client.get("/login")
        assert "15 minutes remaining" in page.text
        assert client.get("/dashboard").status_code == status.HTTP_302_FOUND

    def test_ajax_login_failure_is_json(self, client):
        token = csrf_from(client)
        response = client.post(
            "/login",
            data={"username": "alice", "password": "nope", "csrf_token": token},
            headers=AJAX,
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {
            "success": False,
            "message": "Invalid username or password (4 attempts remaining)",
        }

    def test_login_page_bounces_authenticated_users(self, client):
        login(client)
        response = client.get("/login")
        assert response.status_code == status.HTTP_302_FOUND
        assert response.headers["location"] == "/dashboard"

    def test_intended_url_is_restored(self, client):
        response = client.get("/change-password")
        assert response.headers["location"] == "/login"

        response = login(client)
        assert response.headers["location"] == "/change-password"

    def test_logout(self, client):
        login(client)
        response = client.get("/logout")
        assert response.headers["location"] == "/login"
        assert client.get("/dashboard").status_code == status.HTTP_302_FOUND


class TestGuards:

    def test_protected_page_redirects_browser(self, client):
        response = client.get("/dashboard")
        assert response.status_code == status.HTTP_302_FOUND
        assert response.headers["location"] == "/login"

    def test_protected_page_returns_401_for_ajax(self, client):
        response = client.get("/dashboard", headers=AJAX)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {
            "success": False,
            "message": "Authentication required",
            "redirect": "/login",
        }

    def test_role_guard(self, client):
        login(client, username="carol")
        response = client.get("/dashboard/data", headers=AJAX)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["success"] is False

        response = client.get("/dashboard/data")
        assert response.headers["location"] == "/unauthorized"
        assert client.get("/unauthorized").status_code == status.HTTP_403_FORBIDDEN

    def test_role_guard_allows_staff(self, client):
        login(client, username="bob")
        response = client.get("/dashboard/data", headers=AJAX)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["user"]["role"] == "manager"


class TestCsrfGate:

    def test_post_without_token_is_blocked(self, client, side_effects):
        response = client.post("/probe", data={"x": "1"})
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert "CSRF token validation failed" in response.text
        assert side_effects == []

    def test_post_with_wrong_token_is_blocked_as_json(self, client, side_effects):
        csrf_from(client)
        response = client.post("/probe/9", headers={**AJAX, "X-CSRF-Token": "0" * 64})
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["message"] == "CSRF token validation failed"
        assert side_effects == []

    def test_post_with_token_reaches_handler(self, client, side_effects):
        token = csrf_from(client)
        response = client.post("/probe/9", data={"csrf_token": token})
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "params": {"item_id": "9"}}

        # tokens are reusable within their lifetime
        response = client.post("/probe/10", headers={"X-CSRF-Token": token})
        assert response.status_code == status.HTTP_200_OK
        assert [call["params"] for call in side_effects] == [{"item_id": "9"}, {"item_id": "10"}]

    def test_malformed_form_body_is_rejected_not_crashed(self, client, side_effects):
        response = client.post(
            "/probe", content=b"garbage", headers={"Content-Type": "multipart/form-data"},
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert side_effects == []

    def test_malformed_form_body_with_header_token(self, client, side_effects):
        token = csrf_from(client)
        response = client.post(
            "/probe",
            content=b"garbage",
            headers={"Content-Type": "multipart/form-data", "X-CSRF-Token": token},
        )
        assert response.status_code == status.HTTP_200_OK
        assert len(side_effects) == 1

    def test_login_without_token_is_blocked(self, client):
        client.get("/login")
        response = client.post("/login", data={"username": "alice", "password": PASSWORD})
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert client.get("/dashboard").status_code == status.HTTP_302_FOUND


class TestRememberMe:

    def test_remember_cookie_restores_session(self, client):
        login(client, remember=True)
        old_token = client.cookies.get("remember_token")
        assert old_token

        client.cookies.delete("SPMS_SESSION")
        assert client.get("/dashboard").status_code == status.HTTP_200_OK

        new_token = client.cookies.get("remember_token")
        assert new_token != old_token

    def test_superseded_cookie_fails(self, client):
        login(client, remember=True)
        old_token = client.cookies.get("remember_token")

        client.cookies.delete("SPMS_SESSION")
        client.get("/dashboard")

        client.cookies.clear()
        client.cookies.set("remember_token", old_token)
        assert client.get("/dashboard").status_code == status.HTTP_302_FOUND

    def test_logout_kills_remember_cookie(self, client):
        login(client, remember=True)
        token = client.cookies.get("remember_token")
        client.get("/logout")
        assert client.cookies.get("remember_token") is None

        client.cookies.set("remember_token", token)
        assert client.get("/dashboard").status_code == status.HTTP_302_FOUND


class TestSessionTimeout:

    def test_rotation_keeps_user_logged_in(self, client, clock):
        login(client)
        first = client.cookies.get("SPMS_SESSION")

        clock.advance(301)
        assert client.get("/dashboard").status_code == status.HTTP_200_OK
        assert client.cookies.get("SPMS_SESSION") != first

    def test_check_endpoint(self, client):
        assert client.get("/auth/check", headers=AJAX).json() == {"authenticated": False, "user": None}
        login(client)
        body = client.get("/auth/check", headers=AJAX).json()
        assert body["authenticated"] is True
        assert body["user"]["username"] == "alice"


class TestErrors:

    def test_unknown_route(self, client):
        assert client.get("/missing").status_code == status.HTTP_404_NOT_FOUND
        assert client.get("/missing", headers=AJAX).json()["message"] == "Page not found"

    def test_handler_crash_is_generic(self, client):
        response = client.get("/boom")
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert "kaboom" not in response.text


class TestChangePassword:

    def test_change_password(self, client, store):
        login(client, username="carol")
        token = csrf_from(client, "/change-password")

        response = client.post("/change-password", data={
            "csrf_token": token,
            "current_password": PASSWORD,
            "new_password": "brand-new-pass",
            "confirm_password": "brand-new-pass",
        })
        assert response.headers["location"] == "/dashboard"

        client.get("/logout")
        assert login(client, username="carol").headers["location"] == "/login"
        assert login(client, username="carol", password="brand-new-pass").headers["location"] == "/dashboard"

    def test_mismatched_confirmation(self, client):
        login(client, username="carol")
        token = csrf_from(client, "/change-password")

        response = client.post("/change-password", data={
            "csrf_token": token,
            "current_password": PASSWORD,
            "new_password": "brand-new-pass",
            "confirm_password": "different-pass",
        })
        assert response.headers["location"] == "/change-password"
        assert "Please check your input" in client.get("/change-password").text
