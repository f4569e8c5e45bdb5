from app.core.security import decode_access_token
from app.models import UserRole
from tests.conftest import PASSWORD, create_user


async def test_login_returns_token_and_profile(client, ca_user):
    response = await client.post("/api/auth/login", json={"username": "auditor", "password": PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Login successful"
    assert body["token_type"] == "bearer"
    assert body["expires_in"] > 0
    assert body["user"]["role"] == "CA"
    assert body["user"]["last_login"] is not None
    assert "password_hash" not in body["user"]
    assert decode_access_token(body["token"]) == str(ca_user.id)

    response = await client.get(
        "/api/auth/profile", headers={"Authorization": f"Bearer {body['token']}"}
    )
    assert response.status_code == 200
    assert response.json()["user"]["username"] == "auditor"


async def test_login_rejects_bad_credentials(client, ca_user):
    for username, password in (("auditor", "wrong-password"), ("nobody", PASSWORD)):
        response = await client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Invalid credentials"}


async def test_login_rejects_inactive_user(client):
    await create_user("retired", UserRole.EMPLOYEE, is_active=False)

    response = await client.post("/api/auth/login", json={"username": "retired", "password": PASSWORD})

    assert response.status_code == 403
    assert response.json()["message"] == "Your account has been deactivated"


async def test_register(client):
    payload = {
        "username": "newca",
        "email": "NewCA@Example.com",
        "password": "longenough",
        "full_name": "New CA",
    }

    response = await client.post("/api/auth/register", json=payload)

    assert response.status_code == 201
    user = response.json()["data"]
    assert user["email"] == "newca@example.com"
    assert user["role"] == "CA"

    response = await client.post("/api/auth/register", json={**payload, "email": "other@example.com"})
    assert response.status_code == 409
    assert response.json()["message"] == "Username or email already exists"

    response = await client.post("/api/auth/login", json={"username": "newca", "password": "longenough"})
    assert response.status_code == 200


async def test_register_validates_input(client):
    response = await client.post(
        "/api/auth/register",
        json={"username": "x", "email": "not-an-email", "password": "123", "full_name": "X"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_me_and_logout(client, employee_headers):
    response = await client.get("/api/auth/me", headers=employee_headers)
    assert response.json()["user"]["role"] == "EMPLOYEE"

    response = await client.post("/api/auth/logout", headers=employee_headers)
    assert response.json() == {"success": True, "message": "Logged out successfully", "data": None}


async def test_invalid_token(client):
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_change_password(client, employee_headers):
    response = await client.post(
        "/api/auth/change-password",
        json={"currentPassword": "wrong", "newPassword": "brandnew1"},
        headers=employee_headers,
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Current password is incorrect"

    response = await client.post(
        "/api/auth/change-password",
        json={"current_password": PASSWORD, "new_password": "brandnew1"},
        headers=employee_headers,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Password changed successfully"

    response = await client.post("/api/auth/login", json={"username": "clerk", "password": PASSWORD})
    assert response.status_code == 401
    response = await client.post("/api/auth/login", json={"username": "clerk", "password": "brandnew1"})
    assert response.status_code == 200
