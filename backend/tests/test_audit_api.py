from app.db.session import SessionLocal
from app.models.org import Org
from app.services.audit.recorder import AuditEvent, AuditRecorder
from app.services.audit.trail import AuditTrail


def _login(client, email: str, password: str) -> str:
    response = client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    assert response.status_code == 200
    return response.json()["access_token"]


def _admin_headers(client) -> dict:
    token = _login(client, "admin@example.com", "admin123")
    return {"Authorization": f"Bearer {token}"}


def _events(client, headers, **params) -> dict:
    response = client.get("/api/v1/audit", headers=headers, params=params)
    assert response.status_code == 200
    return response.json()


def test_profile_update_is_audited_after_response(client):
    headers = _admin_headers(client)
    me = client.get("/api/v1/auth/me", headers=headers).json()

    response = client.patch(
        "/api/v1/profile/me?x=1",
        headers={**headers, "X-Correlation-ID": "corr-profile", "User-Agent": "pytest-agent"},
        json={"full_name": "Ada"},
    )
    assert response.status_code == 200
    assert response.json()["full_name"] == "Ada"

    body = _events(client, headers, event_type="Update my profile")
    assert body["pagination"] == {"total": 1, "page": 1, "limit": 10, "totalPages": 1}
    event = body["data"][0]
    assert event["userId"] == me["id"]
    assert event["orgId"] == me["org_id"]
    assert event["details"]["updatedFields"] == ["full_name"]
    assert event["details"]["userEmail"] == "admin@example.com"
    assert event["correlationId"] == "corr-profile"
    assert event["action"] == "update"
    assert event["resourceType"] == "profile"
    assert event["resourceId"] == me["id"]
    assert event["userAgent"] == "pytest-agent"
    assert event["deviceInfo"]["userAgent"] == "pytest-agent"


def test_failed_requests_are_not_audited(client):
    headers = _admin_headers(client)

    invalid = client.patch("/api/v1/profile/me", headers=headers, json={"full_name": "x" * 300})
    assert invalid.status_code == 422
    anonymous = client.patch("/api/v1/profile/me", json={"full_name": "Ada"})
    assert anonymous.status_code == 401

    assert _events(client, headers, event_type="Update my profile")["pagination"]["total"] == 0


def test_failing_store_does_not_fail_the_request(client, failing_store):
    headers = _admin_headers(client)
    registry = client.app.state.audit_registry
    client.app.state.audit_trail = AuditTrail(registry, AuditRecorder(failing_store))

    response = client.patch("/api/v1/profile/me", headers=headers, json={"full_name": "Ada"})

    assert response.status_code == 200
    assert response.json()["full_name"] == "Ada"
    assert _events(client, headers, event_type="Update my profile")["pagination"]["total"] == 0


def test_workspace_and_team_changes_are_audited(client):
    headers = _admin_headers(client)

    renamed = client.patch("/api/v1/orgs/current", headers=headers, json={"name": "Acme"})
    assert renamed.status_code == 200

    created = client.post(
        "/api/v1/admin/users",
        headers=headers,
        json={"email": "member@example.com", "password": "secret123", "roles": ["VIEW"]},
    )
    assert created.status_code == 201
    member_id = created.json()["id"]

    updated = client.patch(
        f"/api/v1/admin/users/{member_id}",
        headers=headers,
        json={"is_active": False},
    )
    assert updated.status_code == 200

    workspace = _events(client, headers, event_type="Update workspace data")["data"][0]
    assert workspace["details"]["workspaceName"] == "Acme"
    assert workspace["details"]["updatedFields"] == ["name"]
    assert workspace["resourceType"] == "org"

    create_event = _events(client, headers, event_type="Create user")["data"][0]
    assert create_event["details"]["createdUserId"] == member_id
    assert create_event["details"]["memberRoles"] == ["VIEW"]
    assert create_event["action"] == "create"

    update_event = _events(client, headers, event_type="Update user data")["data"][0]
    assert update_event["details"]["teamMemberId"] == member_id
    assert update_event["details"]["newStatus"] is False
    assert update_event["resourceId"] == member_id

    by_resource = client.get(f"/api/v1/audit/resource/admin/{member_id}", headers=headers)
    assert by_resource.status_code == 200
    assert by_resource.json()["pagination"]["total"] == 2


def test_member_removal_and_role_changes_are_audited(client):
    headers = _admin_headers(client)
    member_id = client.post(
        "/api/v1/admin/users",
        headers=headers,
        json={"email": "leaver@example.com", "password": "secret123", "roles": ["VIEW"]},
    ).json()["id"]

    removed = client.delete(f"/api/v1/admin/users/{member_id}", headers=headers)
    assert removed.status_code == 200

    created = client.post("/api/v1/admin/roles", headers=headers, json={"name": "auditor"})
    assert created.status_code == 201
    role_id = created.json()["id"]
    renamed = client.patch(f"/api/v1/admin/roles/{role_id}", headers=headers, json={"name": "reviewer"})
    assert renamed.status_code == 200
    deleted = client.delete(f"/api/v1/admin/roles/{role_id}", headers=headers)
    assert deleted.status_code == 200

    delete_user = _events(client, headers, event_type="Delete user")["data"][0]
    assert delete_user["action"] == "delete"
    assert delete_user["resourceId"] == member_id
    assert delete_user["details"]["teamMemberId"] == member_id
    assert delete_user["details"]["success"] is True
    assert "leaver@example.com" in delete_user["details"]["message"]

    create_role = _events(client, headers, event_type="Create role")["data"][0]
    assert create_role["details"]["roleName"] == "AUDITOR"
    assert create_role["details"]["createdRoleId"] == role_id
    assert create_role["action"] == "create"

    update_role = _events(client, headers, event_type="Update role")["data"][0]
    assert update_role["details"]["roleId"] == str(role_id)
    assert update_role["details"]["newName"] == "REVIEWER"
    assert update_role["details"]["updatedFields"] == ["name"]

    delete_role = _events(client, headers, event_type="Delete role")["data"][0]
    assert delete_role["action"] == "delete"
    assert delete_role["resourceId"] == str(role_id)
    assert delete_role["details"]["message"] == "Role REVIEWER deleted"


def test_rejected_member_removal_is_not_audited(client):
    headers = _admin_headers(client)
    me = client.get("/api/v1/auth/me", headers=headers).json()

    response = client.delete(f"/api/v1/admin/users/{me['id']}", headers=headers)

    assert response.status_code == 400
    assert _events(client, headers, event_type="Delete user")["pagination"]["total"] == 0


def test_user_listing_and_purge(client):
    headers = _admin_headers(client)
    me = client.get("/api/v1/auth/me", headers=headers).json()
    client.patch("/api/v1/profile/me", headers=headers, json={"full_name": "One"})
    client.patch("/api/v1/profile/me", headers=headers, json={"phone": "555"})

    by_user = client.get(
        f"/api/v1/audit/user/{me['id']}",
        headers=headers,
        params={"limit": 1, "event_type": "Update my profile"},
    )
    assert by_user.status_code == 200
    page = by_user.json()
    assert len(page["data"]) == 1
    assert page["pagination"]["totalPages"] == 2

    purge = client.delete(f"/api/v1/audit/user/{me['id']}", headers=headers)
    assert purge.status_code == 200
    assert purge.json() == {"deleted_count": 3}
    assert _events(client, headers)["pagination"]["total"] == 0


def test_manual_register_and_stats(client):
    headers = _admin_headers(client)
    client.patch("/api/v1/profile/me", headers=headers, json={"full_name": "Ada"})

    for duration in (30, 60):
        registered = client.post(
            "/api/v1/audit/register",
            headers=headers,
            json={
                "eventType": "document.view",
                "action": "read",
                "resourceType": "document",
                "resourceId": "doc-1",
                "details": {"viewDuration": duration},
            },
        )
        assert registered.status_code == 201
        assert registered.json()["eventType"] == "document.view"

    stats = client.get("/api/v1/audit/stats", headers=headers)
    assert stats.status_code == 200
    by_type = {item["eventType"]: item for item in stats.json()}
    assert by_type["document.view"] == {
        "eventType": "document.view",
        "count": 2,
        "uniqueUsers": 1,
        "avgViewDuration": 45.0,
    }
    assert "avgViewDuration" not in by_type["Update my profile"]

    only_docs = client.get("/api/v1/audit/stats", headers=headers, params={"event_type": "document.view"})
    assert [item["eventType"] for item in only_docs.json()] == ["document.view"]


def test_audit_queries_are_scoped_to_the_workspace(client):
    headers = _admin_headers(client)
    db = SessionLocal()
    try:
        other = Org(name="Elsewhere", slug="elsewhere")
        db.add(other)
        db.commit()
        db.refresh(other)
        other_id = other.id
    finally:
        db.close()

    client.app.state.audit_store.insert(AuditEvent(event_type="login", user_id="x", org_id=other_id))

    visible = _events(client, headers, limit=100)["data"]
    assert visible
    assert all(event["userId"] != "x" for event in visible)
    stats = client.get("/api/v1/audit/stats", headers=headers).json()
    assert "login" not in {item["eventType"] for item in stats}


def test_audit_endpoints_require_admin(client):
    response = client.get("/api/v1/audit")
    assert response.status_code == 401

    headers = _admin_headers(client)
    invalid = client.get("/api/v1/audit", headers=headers, params={"page": 0})
    assert invalid.status_code == 422

    inverted = client.get(
        "/api/v1/audit",
        headers=headers,
        params={"start_date": "2026-10-02", "end_date": "2026-10-01"},
    )
    assert inverted.status_code == 400


def test_only_first_login_of_the_day_is_audited(client):
    headers = _admin_headers(client)
    _admin_headers(client)

    logins = _events(client, headers, event_type="Login")
    assert logins["pagination"]["total"] == 1
    event = logins["data"][0]
    assert event["details"]["firstAccess"] is True
    assert event["details"]["userEmail"] == "admin@example.com"
    assert event["resourceType"] == "auth"


def test_logout_is_audited(client):
    login = client.post(
        "/api/v1/auth/login",
        json={"email": "admin@example.com", "password": "admin123"},
    ).json()
    headers = {"Authorization": f"Bearer {login['access_token']}"}

    logout = client.post("/api/v1/auth/logout", json={"refresh_token": login["refresh_token"]})
    assert logout.status_code == 200

    logouts = _events(client, headers, event_type="Logout")["data"]
    assert len(logouts) == 1
    assert logouts[0]["action"] == "create"
