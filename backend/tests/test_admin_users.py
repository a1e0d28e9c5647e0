def _create_member(client, headers, email="member@example.com", roles=("VIEW",)):
    return client.post(
        "/api/v1/admin/users",
        headers=headers,
        json={"email": email, "password": "secret123", "roles": list(roles), "full_name": "Member"},
    )


def test_create_and_list_members(client, auth_headers):
    headers = auth_headers()

    created = _create_member(client, headers, email="Member@Example.com", roles=("view",))
    assert created.status_code == 201
    member = created.json()
    assert member["email"] == "member@example.com"
    assert member["roles"] == ["VIEW"]
    assert member["is_active"] is True

    listed = client.get("/api/v1/admin/users", headers=headers, params={"q": "member"})
    assert [m["email"] for m in listed.json()] == ["member@example.com"]

    assert auth_headers("member@example.com", "secret123")


def test_create_member_rejects_duplicates_and_unknown_roles(client, auth_headers):
    headers = auth_headers()
    assert _create_member(client, headers).status_code == 201

    duplicate = _create_member(client, headers)
    unknown = _create_member(client, headers, email="other@example.com", roles=("ROOT",))

    assert duplicate.status_code == 409
    assert unknown.status_code == 400
    assert unknown.json()["detail"] == "Unknown roles: ROOT"


def test_update_member(client, auth_headers):
    headers = auth_headers()
    member_id = _create_member(client, headers).json()["id"]

    response = client.patch(
        f"/api/v1/admin/users/{member_id}",
        headers=headers,
        json={"roles": ["ADMIN"], "full_name": "Promoted"},
    )

    assert response.status_code == 200
    assert response.json()["roles"] == ["ADMIN"]
    assert response.json()["full_name"] == "Promoted"


def test_admin_cannot_deactivate_self(client, auth_headers):
    headers = auth_headers()
    me = client.get("/api/v1/auth/me", headers=headers).json()

    response = client.patch(f"/api/v1/admin/users/{me['id']}", headers=headers, json={"is_active": False})

    assert response.status_code == 400


def test_members_of_other_workspaces_are_hidden(client, auth_headers, make_user):
    outsider_id = make_user("outsider@example.com", "secret123", org_slug="elsewhere")
    headers = auth_headers()

    listed = client.get("/api/v1/admin/users", headers=headers).json()
    response = client.patch(f"/api/v1/admin/users/{outsider_id}", headers=headers, json={"full_name": "X"})

    assert "outsider@example.com" not in {m["email"] for m in listed}
    assert response.status_code == 404


def test_delete_member(client, auth_headers):
    headers = auth_headers()
    member_id = _create_member(client, headers).json()["id"]
    assert auth_headers("member@example.com", "secret123")

    response = client.delete(f"/api/v1/admin/users/{member_id}", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "User member@example.com removed from the workspace"}
    listed = client.get("/api/v1/admin/users", headers=headers).json()
    assert "member@example.com" not in {m["email"] for m in listed}
    login = client.post("/api/v1/auth/login", json={"email": "member@example.com", "password": "secret123"})
    assert login.status_code == 401


def test_delete_member_guards(client, auth_headers, make_user):
    outsider_id = make_user("outsider@example.com", "secret123", org_slug="elsewhere")
    headers = auth_headers()
    me = client.get("/api/v1/auth/me", headers=headers).json()

    assert client.delete(f"/api/v1/admin/users/{me['id']}", headers=headers).status_code == 400
    assert client.delete(f"/api/v1/admin/users/{outsider_id}", headers=headers).status_code == 404
