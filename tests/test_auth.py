# tests/test_auth.py
from datetime import timedelta

from storefront.utils.security import create_access_token

from conftest import PASSWORD, auth_headers


class TestRegister:
    def test_register_returns_token_and_sends_welcome(self, client, notifier):
        response = client.post(
            "/api/auth/register", json={"name": "Anna Nowak", "email": "Anna@Example.com", "password": "hunter22"}
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "anna@example.com"
        assert data["role"] == "customer"
        assert data["token"]
        assert "password_hash" not in data
        assert notifier.sent == [("send_welcome_task", (data["id"],))]

    def test_duplicate_email_is_409(self, client, customer):
        response = client.post(
            "/api/auth/register", json={"name": "Someone", "email": customer.email, "password": "hunter22"}
        )

        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "User already exists"}

    def test_short_password_is_422(self, client):
        response = client.post("/api/auth/register", json={"name": "Anna", "email": "a@example.com", "password": "123"})

        assert response.status_code == 422
        assert response.json()["message"] == "Validation failed"


class TestLogin:
    def test_login_and_me(self, client, customer):
        login = client.post("/api/auth/login", json={"email": customer.email, "password": PASSWORD})

        assert login.status_code == 200
        token = login.json()["data"]["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["data"]["id"] == customer.id

    def test_wrong_password_and_unknown_email_look_the_same(self, client, customer):
        wrong = client.post("/api/auth/login", json={"email": customer.email, "password": "nope123"})
        unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"success": False, "message": "Invalid credentials"}

    def test_deactivated_account(self, client, make):
        user = make.user(email="gone@example.com", is_active=False)

        response = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})

        assert response.status_code == 401
        assert response.json()["message"] == "Account is deactivated"


class TestTokens:
    def test_missing_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["message"] == "Not authorized, no token"

    def test_garbage_and_expired_tokens(self, client, customer):
        expired = create_access_token(customer.id, expires_delta=timedelta(minutes=-1))

        for token in ("not-a-jwt", expired):
            response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
            assert response.status_code == 401
            assert response.json()["message"] == "Not authorized, token failed"

    def test_token_of_deleted_user(self, client, db, make):
        user = make.user(email="temp@example.com")
        headers = auth_headers(user)
        db.delete(user)
        db.commit()

        response = client.get("/api/auth/me", headers=headers)

        assert response.status_code == 401

    def test_admin_routes_reject_customers(self, client, customer):
        response = client.get("/api/admin/analytics/dashboard", headers=auth_headers(customer))

        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized as an admin"


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_unknown_route(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Route not found"}
