"""HTTP endpoint tests."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
from httpx import AsyncClient

from scripts.seed_matrix import DEFAULT_ACTIONS
from tests.support import auth_headers, make_token


pytestmark = pytest.mark.asyncio

ROLE_COUNT = 7
ACTION_COUNT = len(DEFAULT_ACTIONS)


def _cell(body: dict, action_name: str, role_id: str) -> dict:
    row = next(row for row in body["rows"] if row["action"]["name"] == action_name)
    return next(cell for cell in row["cells"] if cell["role_id"] == role_id)


# ============================================================================
# Authentication
# ============================================================================

async def test_health_needs_no_token(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_matrix_requires_a_token(client: AsyncClient, seeded) -> None:
    response = await client.get("/matrix")
    assert response.status_code in (401, 403)


async def test_expired_token_is_rejected(client: AsyncClient, seeded) -> None:
    token = make_token(seeded.viewer_id, expires_in=timedelta(minutes=-5))
    response = await client.get("/matrix", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_first_login_creates_profile_without_role(client: AsyncClient, seeded) -> None:
    response = await client.get("/users/me", headers=auth_headers("newcomer-account"))

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["profile"]["id"] == "newcomer-account"
    assert body["profile"]["role_id"] is None
    assert body["role_name"] is None
    assert body["capability"] == "view"
    assert body["operations"] == ["export", "view"]


async def test_me_reports_capability_from_role(client: AsyncClient, seeded) -> None:
    response = await client.get("/users/me", headers=auth_headers(seeded.editor_id))

    body = response.json()
    assert body["role_name"] == "Edit & View"
    assert body["capability"] == "edit"
    assert "edit_permissions" in body["operations"]
    assert "manage_users" not in body["operations"]


# ============================================================================
# Matrix
# ============================================================================

async def test_grid_lists_every_role_and_action(client: AsyncClient, seeded) -> None:
    response = await client.get("/matrix", headers=auth_headers(seeded.viewer_id))

    assert response.status_code == 200, response.text
    body = response.json()
    assert len(body["roles"]) == ROLE_COUNT
    assert len(body["rows"]) == ACTION_COUNT
    assert all(len(row["cells"]) == ROLE_COUNT for row in body["rows"])

    approve = _cell(body, "Approve Expense Reports", seeded.roles["Manager"])
    assert approve["status"] == "granted"
    assert approve["limit_value"] == 10000
    # system roles have no rows and resolve to denied
    assert _cell(body, "Database Access", seeded.roles["Admin"])["status"] == "denied"


async def test_grid_filters(client: AsyncClient, seeded) -> None:
    response = await client.get(
        "/matrix",
        params={"category": "Financial", "search": "report"},
        headers=auth_headers(seeded.viewer_id),
    )

    body = response.json()
    assert [row["action"]["name"] for row in body["rows"]] == [
        "Access Financial Reports",
        "Approve Expense Reports",
    ]
    assert body["category"] == "Financial"
    assert body["search"] == "report"
    assert body["role"] == "all"


async def test_grid_role_column_filter(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.viewer_id)
    manager_id = seeded.roles["Manager"]

    response = await client.get("/matrix", params={"role": manager_id}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert [role["name"] for role in body["roles"]] == ["Manager"]
    assert len(body["rows"]) == ACTION_COUNT
    assert all([cell["role_id"] for cell in row["cells"]] == [manager_id] for row in body["rows"])
    assert body["role"] == manager_id

    missing = await client.get("/matrix", params={"role": "no-such-role"}, headers=headers)
    assert missing.status_code == 404


async def test_categories_and_summary(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.viewer_id)

    categories = (await client.get("/matrix/categories", headers=headers)).json()
    assert set(categories) == {
        "User Management", "Financial", "Project Management", "Human Resources", "System"
    }

    summary = (await client.get("/matrix/summary", headers=headers)).json()
    assert summary["roles"] == ROLE_COUNT
    assert summary["actions"] == ACTION_COUNT
    assert summary["users"] == 4
    assert summary["unset"] == 3 * ACTION_COUNT
    assert summary["granted"] + summary["conditional"] + summary["denied"] == 4 * ACTION_COUNT


async def test_export_ignores_filters(client: AsyncClient, seeded) -> None:
    response = await client.get(
        "/matrix/export",
        params={"category": "System"},
        headers=auth_headers(seeded.viewer_id),
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    expected_name = f"authorization-matrix-{date.today().isoformat()}.csv"
    assert expected_name in response.headers["content-disposition"]

    lines = response.text.split("\n")
    assert lines[0] == '"Role","Action","Status","Limit","Conditions","Category"'
    assert len(lines) == 1 + ROLE_COUNT * ACTION_COUNT + 1
    assert '"Manager","Approve Expense Reports","granted","10000","","Financial"' in lines


async def test_resolve_single_cell(client: AsyncClient, seeded) -> None:
    response = await client.get(
        "/matrix/resolve",
        params={
            "role_id": seeded.roles["Employee"],
            "action_id": seeded.actions["Assign Tasks"],
        },
        headers=auth_headers(seeded.viewer_id),
    )

    assert response.json()["status"] == "conditional"
    assert response.json()["conditions"] == "Within assigned projects only"


# ============================================================================
# Permission edits
# ============================================================================

async def test_viewer_cannot_edit(client: AsyncClient, seeded) -> None:
    payload = {
        "role_id": seeded.roles["Contractor"],
        "action_id": seeded.actions["Process Payroll"],
        "status": "granted",
    }
    response = await client.put("/matrix/permissions", json=payload, headers=auth_headers(seeded.viewer_id))
    assert response.status_code == 403

    resolved = await client.get(
        "/matrix/resolve",
        params={"role_id": payload["role_id"], "action_id": payload["action_id"]},
        headers=auth_headers(seeded.viewer_id),
    )
    assert resolved.json()["status"] == "denied"


async def test_user_without_role_is_view_only(client: AsyncClient, seeded) -> None:
    response = await client.post(
        "/matrix/permissions/toggle",
        json={"role_id": seeded.roles["Manager"], "action_id": seeded.actions["Process Payroll"]},
        headers=auth_headers(seeded.unassigned_id),
    )
    assert response.status_code == 403


async def test_editor_sets_a_cell_with_legacy_status(client: AsyncClient, seeded) -> None:
    payload = {
        "role_id": seeded.roles["Contractor"],
        "action_id": seeded.actions["Process Payroll"],
        "status": "allowed",
        "limit_value": 500,
    }
    response = await client.put("/matrix/permissions", json=payload, headers=auth_headers(seeded.editor_id))

    assert response.status_code == 200, response.text
    assert response.json()["status"] == "granted"
    assert response.json()["limit_value"] == 500


async def test_put_without_limit_keeps_existing_limit(client: AsyncClient, seeded) -> None:
    payload = {
        "role_id": seeded.roles["Manager"],
        "action_id": seeded.actions["Approve Expense Reports"],
        "status": "conditional",
        "conditions": "Under review",
    }
    response = await client.put("/matrix/permissions", json=payload, headers=auth_headers(seeded.admin_id))

    body = response.json()
    assert body["status"] == "conditional"
    assert body["limit_value"] == 10000
    assert body["conditions"] == "Under review"


@pytest.mark.parametrize(
    "overrides",
    [{"status": "maybe"}, {"limit_value": -1}, {"role_id": None}],
)
async def test_invalid_edit_is_a_bad_request(client: AsyncClient, seeded, overrides: dict) -> None:
    payload = {
        "role_id": seeded.roles["Contractor"],
        "action_id": seeded.actions["Process Payroll"],
        "status": "granted",
        **overrides,
    }
    response = await client.put("/matrix/permissions", json=payload, headers=auth_headers(seeded.editor_id))
    assert response.status_code == 400


async def test_edit_of_unknown_role_is_not_found(client: AsyncClient, seeded) -> None:
    payload = {"role_id": "missing", "action_id": seeded.actions["Process Payroll"], "status": "granted"}
    response = await client.put("/matrix/permissions", json=payload, headers=auth_headers(seeded.editor_id))

    assert response.status_code == 404
    assert "detail" in response.json()


async def test_toggle_cycles_a_missing_cell(client: AsyncClient, seeded) -> None:
    payload = {"role_id": seeded.roles["Admin"], "action_id": seeded.actions["Database Access"]}
    headers = auth_headers(seeded.editor_id)

    statuses = []
    for _ in range(3):
        response = await client.post("/matrix/permissions/toggle", json=payload, headers=headers)
        assert response.status_code == 200, response.text
        statuses.append(response.json()["status"])

    assert statuses == ["granted", "conditional", "denied"]


# ============================================================================
# Catalog
# ============================================================================

async def test_only_admin_manages_roles(client: AsyncClient, seeded) -> None:
    payload = {"name": "Auditor", "color": "#0EA5E9"}

    denied = await client.post("/roles", json=payload, headers=auth_headers(seeded.editor_id))
    assert denied.status_code == 403

    created = await client.post("/roles", json=payload, headers=auth_headers(seeded.admin_id))
    assert created.status_code == 201, created.text
    assert created.json()["is_system_role"] is False

    duplicate = await client.post("/roles", json=payload, headers=auth_headers(seeded.admin_id))
    assert duplicate.status_code == 409


async def test_blank_role_name_is_rejected(client: AsyncClient, seeded) -> None:
    response = await client.post("/roles", json={"name": "   "}, headers=auth_headers(seeded.admin_id))
    assert response.status_code == 400
    assert "name" in response.json()


@pytest.mark.parametrize("field", ["name", "color"])
async def test_null_role_field_is_a_bad_request(client: AsyncClient, seeded, field: str) -> None:
    headers = auth_headers(seeded.admin_id)
    role_id = seeded.roles["Manager"]

    response = await client.patch(f"/roles/{role_id}", json={field: None}, headers=headers)
    assert response.status_code == 400
    assert field in response.json()

    role = (await client.get(f"/roles/{role_id}", headers=headers)).json()
    assert role["name"] == "Manager"
    assert role["color"] is not None


async def test_null_action_name_is_a_bad_request(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.admin_id)
    action_id = seeded.actions["Approve Expense Reports"]

    response = await client.patch(f"/actions/{action_id}", json={"name": None}, headers=headers)
    assert response.status_code == 400
    assert "name" in response.json()

    action = (await client.get(f"/actions/{action_id}", headers=headers)).json()
    assert action["name"] == "Approve Expense Reports"

    # null stays allowed for the optional columns
    cleared = await client.patch(f"/actions/{action_id}", json={"description": None}, headers=headers)
    assert cleared.status_code == 200
    assert cleared.json()["description"] is None


async def test_system_roles_are_protected(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.admin_id)
    role_id = seeded.roles["Edit & View"]

    deleted = await client.delete(f"/roles/{role_id}", headers=headers)
    assert deleted.status_code == 409

    renamed = await client.patch(f"/roles/{role_id}", json={"name": "Editors"}, headers=headers)
    assert renamed.status_code == 409

    recolored = await client.patch(f"/roles/{role_id}", json={"color": "#111111"}, headers=headers)
    assert recolored.status_code == 200
    assert recolored.json()["name"] == "Edit & View"


async def test_assigned_role_cannot_be_deleted(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.admin_id)
    role_id = seeded.roles["Employee"]

    assigned = await client.patch(
        f"/users/{seeded.unassigned_id}/role", json={"role_id": role_id}, headers=headers
    )
    assert assigned.status_code == 200

    response = await client.delete(f"/roles/{role_id}", headers=headers)
    assert response.status_code == 409


async def test_deleting_a_role_drops_its_column(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.admin_id)

    response = await client.delete(f"/roles/{seeded.roles['Contractor']}", headers=headers)
    assert response.status_code == 204

    grid = (await client.get("/matrix", headers=headers)).json()
    assert len(grid["roles"]) == ROLE_COUNT - 1
    summary = (await client.get("/matrix/summary", headers=headers)).json()
    assert summary["granted"] + summary["conditional"] + summary["denied"] == 3 * ACTION_COUNT


async def test_new_action_starts_denied(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.admin_id)

    created = await client.post(
        "/actions",
        json={"name": "Deploy Code", "description": "Ship to production", "category": "Engineering"},
        headers=headers,
    )
    assert created.status_code == 201, created.text

    grid = (await client.get("/matrix", params={"category": "Engineering"}, headers=headers)).json()
    assert len(grid["rows"]) == 1
    assert {cell["status"] for cell in grid["rows"][0]["cells"]} == {"denied"}


# ============================================================================
# Users
# ============================================================================

async def test_admin_creates_user(client: AsyncClient, seeded, identity) -> None:
    payload = {
        "email": "new.hire@example.com",
        "password": "correct horse battery",
        "full_name": "New Hire",
        "role_id": seeded.roles["Employee"],
    }
    response = await client.post("/users/", json=payload, headers=auth_headers(seeded.admin_id))

    assert response.status_code == 201, response.text
    assert response.json()["role_id"] == seeded.roles["Employee"]
    assert identity.sign_ups == ["new.hire@example.com"]
    assert identity.deleted == []


async def test_failed_profile_insert_removes_the_new_account(client: AsyncClient, seeded, identity) -> None:
    headers = auth_headers(seeded.admin_id)
    # Appwrite hands back an id that already has a profile, so the insert conflicts
    identity.next_account_id = seeded.viewer_id
    payload = {
        "email": "second.hire@example.com",
        "password": "correct horse battery",
        "role_id": seeded.roles["Employee"],
    }

    response = await client.post("/users/", json=payload, headers=headers)

    assert response.status_code == 409
    assert identity.deleted == [seeded.viewer_id]
    users = (await client.get("/users/", headers=headers)).json()
    assert "second.hire@example.com" not in {user["email"] for user in users}


async def test_invalid_user_is_rejected_before_sign_up(client: AsyncClient, seeded, identity) -> None:
    headers = auth_headers(seeded.admin_id)

    bad_email = await client.post(
        "/users/",
        json={"email": "not-an-email", "password": "long enough", "role_id": seeded.roles["Employee"]},
        headers=headers,
    )
    assert bad_email.status_code == 400

    missing_role = await client.post(
        "/users/",
        json={"email": "someone@example.com", "password": "long enough", "role_id": "missing"},
        headers=headers,
    )
    assert missing_role.status_code == 404

    assert identity.sign_ups == []


async def test_non_admin_cannot_create_user(client: AsyncClient, seeded, identity) -> None:
    payload = {"email": "x@example.com", "password": "long enough", "role_id": seeded.roles["Employee"]}
    response = await client.post("/users/", json=payload, headers=auth_headers(seeded.editor_id))

    assert response.status_code == 403
    assert identity.sign_ups == []


async def test_admin_cannot_change_own_role(client: AsyncClient, seeded) -> None:
    response = await client.patch(
        f"/users/{seeded.admin_id}/role",
        json={"role_id": None},
        headers=auth_headers(seeded.admin_id),
    )
    assert response.status_code == 400


async def test_access_view_is_self_or_admin(client: AsyncClient, seeded) -> None:
    own = await client.get(f"/users/{seeded.viewer_id}/access", headers=auth_headers(seeded.viewer_id))
    assert own.status_code == 200
    assert own.json()["role_assigned"] is True

    other = await client.get(f"/users/{seeded.editor_id}/access", headers=auth_headers(seeded.viewer_id))
    assert other.status_code == 403


async def test_user_without_role_has_no_access(client: AsyncClient, seeded) -> None:
    response = await client.get(
        f"/users/{seeded.unassigned_id}/access", headers=auth_headers(seeded.admin_id)
    )

    body = response.json()
    assert body["role_assigned"] is False
    assert len(body["access"]) == ACTION_COUNT
    assert {entry["status"] for entry in body["access"]} == {"denied"}


async def test_exclusion_denies_one_action_for_one_user(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.admin_id)
    action_id = seeded.actions["Approve Expense Reports"]
    await client.patch(
        f"/users/{seeded.unassigned_id}/role",
        json={"role_id": seeded.roles["Manager"]},
        headers=headers,
    )

    created = await client.post(
        f"/users/{seeded.unassigned_id}/exclusions",
        json={"action_id": action_id, "reason": "Pending audit"},
        headers=headers,
    )
    assert created.status_code == 201, created.text

    access = (await client.get(f"/users/{seeded.unassigned_id}/access", headers=headers)).json()
    entry = next(item for item in access["access"] if item["action_id"] == action_id)
    assert entry["status"] == "denied"
    assert entry["excluded"] is True
    assert entry["exclusion_reason"] == "Pending audit"

    # the role itself is untouched
    grid = (await client.get("/matrix", headers=headers)).json()
    assert _cell(grid, "Approve Expense Reports", seeded.roles["Manager"])["status"] == "granted"

    removed = await client.delete(
        f"/users/{seeded.unassigned_id}/exclusions/{created.json()['id']}", headers=headers
    )
    assert removed.status_code == 204

    access = (await client.get(f"/users/{seeded.unassigned_id}/access", headers=headers)).json()
    entry = next(item for item in access["access"] if item["action_id"] == action_id)
    assert entry["status"] == "granted"
    assert entry["limit_value"] == 10000


async def test_duplicate_exclusion_conflicts(client: AsyncClient, seeded) -> None:
    headers = auth_headers(seeded.admin_id)
    payload = {"action_id": seeded.actions["Process Payroll"]}

    first = await client.post(f"/users/{seeded.viewer_id}/exclusions", json=payload, headers=headers)
    second = await client.post(f"/users/{seeded.viewer_id}/exclusions", json=payload, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 409
