from conftest import PASSWORD, login


def test_login_with_form_returns_token_and_user(client, seed):
    response = client.post("/api/auth/login", data={"username": "admin", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["token_type"] == "bearer"
    assert body["data"]["user"]["username"] == "admin"
    assert body["data"]["user"]["role_name"] == "admin"
    assert body["access_token"] == body["data"]["access_token"]


def test_login_with_json_body(client, seed):
    response = client.post("/api/auth/login", json={"username": "accountant", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["data"]["user"]["company_id"] == seed["parent_id"]


def test_login_wrong_password(client, seed):
    response = client.post("/api/auth/login", data={"username": "admin", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_login_missing_fields(client, seed):
    response = client.post("/api/auth/login", json={"username": "admin"})
    assert response.status_code == 400


def test_me_requires_token(client, seed):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_me_returns_permissions(client, seed):
    headers = login(client, "viewer")
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["permissions"] == ["reports.view"]


def test_logout_closes_session(client, seed):
    headers = login(client, "admin")
    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    # The JWT is still well formed but its session row is inactive
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_role_check_forbids(client, seed):
    headers = login(client, "viewer")
    response = client.post("/api/users/", headers=headers, json={
        "username": "newbie", "password": "secret123", "role_id": 1, "company_id": seed["parent_id"],
    })
    assert response.status_code == 403
    assert response.json()["success"] is False


def test_admin_creates_and_deactivates_user(client, seed):
    headers = login(client, "admin")
    response = client.post("/api/users/", headers=headers, json={
        "username": "newbie", "password": "secret123", "role_id": 1, "company_id": seed["branch_id"],
    })
    assert response.status_code == 201
    user_id = response.json()["data"]["id"]

    # The new user can log in
    login(client, "newbie")

    response = client.delete(f"/api/users/{user_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_active"] is False

    response = client.post("/api/auth/login", data={"username": "newbie", "password": "secret123"})
    assert response.status_code == 401


def test_duplicate_username_conflicts(client, seed):
    headers = login(client, "admin")
    response = client.post("/api/users/", headers=headers, json={
        "username": "viewer", "password": "secret123", "role_id": 1, "company_id": seed["parent_id"],
    })
    assert response.status_code == 409


def test_validation_error_lists_fields(client, seed):
    headers = login(client, "admin")
    response = client.post("/api/users/", headers=headers, json={"username": "x"})
    assert response.status_code == 400
    fields = {e["field"] for e in response.json()["data"]["errors"]}
    assert "password" in fields
    assert "username" in fields


def test_list_roles(client, seed):
    headers = login(client, "viewer")
    response = client.get("/api/users/roles", headers=headers)
    assert response.status_code == 200
    names = {r["name"] for r in response.json()["data"]}
    assert {"admin", "accountant", "viewer"} <= names
