"""API tests: gates, status codes and error rendering."""
from conftest import auth_headers


OWNER = auth_headers("owner@co.com", "Olive Owner")
VIEWER = auth_headers("viewer@co.com", "Victor Viewer")


def bootstrap(client):
    response = client.post("/members/bootstrap", headers=OWNER)
    assert response.status_code == 200
    return response.json()


def role_id(client, name):
    roles = client.get("/permissions/roles", headers=OWNER).json()
    return next(role["id"] for role in roles if role["name"] == name)


def add_viewer(client):
    invite = client.post(
        "/members/",
        json={"email": "Viewer@co.com", "role_id": role_id(client, "Viewer")},
        headers=OWNER,
    )
    assert invite.status_code == 201
    accepted = client.post("/members/accept", headers=VIEWER)
    assert accepted.status_code == 200
    return accepted.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["authorization_mode"] == "enforced"


def test_requires_bearer_token(client):
    assert client.get("/permissions/roles").status_code in (401, 403)
    response = client.get("/permissions/roles", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_bootstrap_and_access_context(client):
    me = client.get("/permissions/me", headers=OWNER).json()
    assert me["is_bootstrap"] is True
    assert me["role"] is None
    assert me["can_manage_roles"] is True

    member = bootstrap(client)
    assert member["status"] == "active"
    assert member["role"]["name"] == "Owner"
    assert member["role"]["permissions"]["user_management"] == "admin"

    me = client.get("/permissions/me", headers=OWNER).json()
    assert me["is_bootstrap"] is False
    assert me["role"]["privilege_level"] == 100
    assert me["authorization_mode"] == "enforced"


def test_modules(client):
    bootstrap(client)
    modules = client.get("/permissions/modules", headers=OWNER).json()
    assert len(modules) == 7
    assert modules[0]["key"] == "hiring_onboarding"

    response = client.get("/permissions/modules/nope", headers=OWNER)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_role_lifecycle(client):
    bootstrap(client)
    created = client.post(
        "/permissions/roles",
        json={"name": "Finance", "description": "Books", "permissions": {"payroll": "manage", "bogus": "view"}},
        headers=OWNER,
    )
    assert created.status_code == 201
    role = created.json()
    assert role["privilege_level"] == 50
    assert role["permissions"] == {"payroll": "manage"}

    detail = client.get(f"/permissions/roles/{role['id']}", headers=OWNER).json()
    assert detail["member_count"] == 0
    assert detail["summary"] == "Can manage Payroll"

    updated = client.put(
        f"/permissions/roles/{role['id']}",
        json={"name": "Finance", "permissions": {"contracts": "view"}},
        headers=OWNER,
    ).json()
    assert updated["permissions"] == {"contracts": "view"}

    copy = client.post(
        f"/permissions/roles/{role['id']}/duplicate", json={"name": "Finance 2"}, headers=OWNER
    )
    assert copy.status_code == 201
    assert copy.json()["description"] == "Copy of Finance"

    assert client.delete(f"/permissions/roles/{role['id']}", headers=OWNER).status_code == 204
    assert client.get(f"/permissions/roles/{role['id']}", headers=OWNER).status_code == 404


def test_system_role_errors_render(client):
    bootstrap(client)
    response = client.delete(f"/permissions/roles/{role_id(client, 'Owner')}", headers=OWNER)
    assert response.status_code == 409
    assert response.json()["error"] == "SystemRoleImmutable"


def test_role_in_use_reports_count(client):
    bootstrap(client)
    role = client.post("/permissions/roles", json={"name": "Temp"}, headers=OWNER).json()
    client.post("/members/", json={"email": "t@co.com", "role_id": role["id"]}, headers=OWNER)

    response = client.delete(f"/permissions/roles/{role['id']}", headers=OWNER)
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "RoleInUse"
    assert body["count"] == 1


def test_viewer_is_gated(client):
    bootstrap(client)
    viewer = add_viewer(client)
    assert viewer["status"] == "active"

    response = client.post("/permissions/roles", json={"name": "Mine"}, headers=VIEWER)
    assert response.status_code == 403
    assert response.json()["error"] == "NotAuthorized"

    response = client.post(
        "/members/", json={"email": "friend@co.com", "role_id": viewer["role_id"]}, headers=VIEWER
    )
    assert response.status_code == 403

    assert client.get("/permissions/audit-logs", headers=VIEWER).status_code == 403
    # reads stay open to members
    assert client.get("/members/", headers=VIEWER).status_code == 200


def test_member_errors(client):
    owner = bootstrap(client)
    viewer = add_viewer(client)

    duplicate = client.post(
        "/members/", json={"email": "VIEWER@CO.COM", "role_id": viewer["role_id"]}, headers=OWNER
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "DuplicateEmail"

    self_removal = client.delete(f"/members/{owner['id']}", headers=OWNER)
    assert self_removal.status_code == 400
    assert self_removal.json()["error"] == "SelfRemoval"

    resend = client.post(f"/members/{viewer['id']}/resend", headers=OWNER)
    assert resend.status_code == 400
    assert resend.json()["error"] == "Validation"

    moved = client.patch(
        f"/members/{viewer['id']}/role",
        json={"role_id": role_id(client, "Payroll Specialist")},
        headers=OWNER,
    )
    assert moved.status_code == 200
    assert moved.json()["role"]["name"] == "Payroll Specialist"

    assert client.delete(f"/members/{viewer['id']}", headers=OWNER).status_code == 204


def test_invalid_body_is_400(client):
    bootstrap(client)
    response = client.post("/members/", json={"email": "not-an-email", "role_id": "x"}, headers=OWNER)
    assert response.status_code == 400
    assert "email" in response.json()


def test_summary_and_audit_log(client):
    bootstrap(client)
    summary = client.post(
        "/permissions/summary",
        json={"permissions": {"payroll": "admin", "contracts": "manage", "company_settings": "view"}},
        headers=OWNER,
    )
    assert summary.json() == {"summary": "Can manage Contracts, Payroll, view Company"}

    client.post("/permissions/roles", json={"name": "Logged"}, headers=OWNER)
    logs = client.get("/permissions/audit-logs?resource_type=role", headers=OWNER).json()
    assert logs["total"] == 1
    assert logs["items"][0]["action"] == "create"
