"""Tests for the REST API endpoints."""

from __future__ import annotations

import httpx
import pytest

from marias.api.app import create_api
from marias.config import Config
from marias.db import Repository, close_db, get_session, init_db
from marias.seed import seed_defaults


@pytest.fixture(autouse=True)
async def db():
    """In-memory SQLite DB with default roles, admin and two staff users."""
    await init_db("sqlite+aiosqlite://")
    await seed_defaults()
    async with get_session() as s:
        repo = Repository(s)
        await repo.create_user("maria", "maria123", "Maria", "maria@example.com", "Manager")
        await repo.create_user("joao", "joao123", "João", "joao@example.com", "Employee")
    yield
    await close_db()


@pytest.fixture
async def api_client():
    app = create_api(Config(database_url="sqlite+aiosqlite://"))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _login(client: httpx.AsyncClient, username: str, password: str) -> dict:
    resp = await client.post(
        "/api/auth/login", json={"username": username, "password": password}
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
async def admin(api_client):
    return await _login(api_client, "admin", "admin123")


@pytest.fixture
async def manager(api_client):
    return await _login(api_client, "maria", "maria123")


@pytest.fixture
async def employee(api_client):
    return await _login(api_client, "joao", "joao123")


# ---------------------------------------------------------------
# Auth
# ---------------------------------------------------------------


async def test_login_returns_token_and_user(api_client):
    resp = await api_client.post(
        "/api/auth/login", json={"username": "MARIA", "password": "maria123"}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["token"]
    assert data["user"]["username"] == "maria"
    assert data["user"]["role"] == "Manager"
    assert "password_hash" not in data["user"]


async def test_login_bad_password(api_client):
    resp = await api_client.post(
        "/api/auth/login", json={"username": "maria", "password": "wrong"}
    )
    assert resp.status_code == 401


async def test_login_missing_fields(api_client):
    resp = await api_client.post("/api/auth/login", json={"username": "maria"})
    assert resp.status_code == 400


async def test_me_requires_token(api_client):
    resp = await api_client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


async def test_me_rejects_unknown_token(api_client):
    resp = await api_client.get(
        "/api/auth/me", headers={"Authorization": "Bearer not-a-real-token"}
    )
    assert resp.status_code == 401


async def test_me(api_client, employee):
    resp = await api_client.get("/api/auth/me", headers=employee)
    assert resp.status_code == 200
    assert resp.json()["username"] == "joao"


async def test_logout_revokes_token(api_client, employee):
    resp = await api_client.post("/api/auth/logout", headers=employee)
    assert resp.status_code == 200
    resp = await api_client.get("/api/auth/me", headers=employee)
    assert resp.status_code == 401


# ---------------------------------------------------------------
# Users and roles (permission "team")
# ---------------------------------------------------------------


async def test_employee_cannot_list_users(api_client, employee):
    resp = await api_client.get("/api/users", headers=employee)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Insufficient permissions"


async def test_manager_lists_users(api_client, manager):
    resp = await api_client.get("/api/users", headers=manager)
    assert resp.status_code == 200
    assert [u["username"] for u in resp.json()] == ["admin", "maria", "joao"]


async def test_create_user(api_client, admin):
    body = {
        "username": "bia",
        "password": "bia12345",
        "name": "Bia",
        "email": "bia@example.com",
        "role": "Employee",
    }
    resp = await api_client.post("/api/users", json=body, headers=admin)
    assert resp.status_code == 201
    assert resp.json()["username"] == "bia"

    resp = await api_client.post("/api/users", json=body, headers=admin)
    assert resp.status_code == 409


async def test_create_user_unknown_role(api_client, admin):
    body = {
        "username": "bia",
        "password": "bia12345",
        "name": "Bia",
        "email": "bia@example.com",
        "role": "Intern",
    }
    resp = await api_client.post("/api/users", json=body, headers=admin)
    assert resp.status_code == 400


async def test_roles(api_client, admin):
    resp = await api_client.get("/api/roles", headers=admin)
    assert [r["name"] for r in resp.json()] == ["Admin", "Manager", "Employee"]

    resp = await api_client.post(
        "/api/roles", json={"name": "Driver", "permissions": ["tasks"]}, headers=admin
    )
    assert resp.status_code == 201
    assert resp.json()["permissions"] == ["tasks"]

    resp = await api_client.post(
        "/api/roles", json={"name": "Driver", "permissions": []}, headers=admin
    )
    assert resp.status_code == 409


async def test_custom_role_gates_endpoints(api_client, admin):
    await api_client.post(
        "/api/roles", json={"name": "Driver", "permissions": ["tasks"]}, headers=admin
    )
    async with get_session() as s:
        await Repository(s).create_user("rui", "rui12345", "Rui", "rui@example.com", "Driver")
    driver = await _login(api_client, "rui", "rui12345")

    assert (await api_client.get("/api/tasks", headers=driver)).status_code == 200
    assert (await api_client.get("/api/channels", headers=driver)).status_code == 403


async def test_role_name_is_case_sensitive(api_client):
    async with get_session() as s:
        await Repository(s).create_user("zé", "ze123456", "Zé", "ze@example.com", "admin")
    headers = await _login(api_client, "zé", "ze123456")
    resp = await api_client.get("/api/users", headers=headers)
    assert resp.status_code == 403


# ---------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------


async def test_inventory_create_and_list(api_client, manager, employee):
    resp = await api_client.post(
        "/api/inventory",
        json={
            "name": "Ribbon",
            "category": "craft",
            "quantity": 2,
            "minQuantity": 5,
            "maxQuantity": 100,
            "unit": "m",
        },
        headers=manager,
    )
    assert resp.status_code == 201
    item = resp.json()
    assert item["lowStock"] is True

    resp = await api_client.get("/api/inventory", headers=employee)
    assert resp.status_code == 200
    assert [i["name"] for i in resp.json()] == ["Ribbon"]


async def test_inventory_employee_cannot_create(api_client, employee):
    resp = await api_client.post(
        "/api/inventory",
        json={"name": "Glue", "category": "craft", "maxQuantity": 10, "unit": "un"},
        headers=employee,
    )
    assert resp.status_code == 403


async def test_inventory_validation(api_client, manager):
    resp = await api_client.post(
        "/api/inventory",
        json={"name": "Glue", "category": "craft", "unit": "un"},
        headers=manager,
    )
    assert resp.status_code == 422


async def test_inventory_patch(api_client, manager):
    async with get_session() as s:
        item = await Repository(s).create_inventory_item("Glue", "craft", 50, "un", quantity=1)
    resp = await api_client.patch(
        f"/api/inventory/{item.id}", json={"quantity": 20}, headers=manager
    )
    assert resp.status_code == 200
    assert resp.json()["quantity"] == 20
    assert resp.json()["lowStock"] is False

    resp = await api_client.patch("/api/inventory/999", json={"quantity": 1}, headers=manager)
    assert resp.status_code == 404


async def test_inventory_counts(api_client, manager, employee):
    resp = await api_client.post(
        "/api/inventory/counts",
        json={"itemsChecked": 12, "notes": "Prateleira A"},
        headers=manager,
    )
    assert resp.status_code == 201
    count = resp.json()
    assert count["itemsChecked"] == 12
    assert count["userId"] == 2

    resp = await api_client.post(
        "/api/inventory/counts", json={"itemsChecked": 3}, headers=employee
    )
    assert resp.status_code == 403

    resp = await api_client.get("/api/inventory/counts", headers=employee)
    assert resp.status_code == 200
    assert [c["notes"] for c in resp.json()] == ["Prateleira A"]


# ---------------------------------------------------------------
# Shopping list
# ---------------------------------------------------------------


async def test_shopping_list_open_to_all_staff(api_client, employee, manager):
    resp = await api_client.post(
        "/api/shopping",
        json={"name": "Balões", "category": "Festa", "unit": "pacote"},
        headers=employee,
    )
    assert resp.status_code == 201
    item = resp.json()
    assert item["quantity"] == 1
    assert item["status"] == "pending"
    assert item["createdBy"] == 3

    resp = await api_client.get("/api/shopping", headers=manager)
    assert [i["name"] for i in resp.json()] == ["Balões"]

    resp = await api_client.get("/api/shopping")
    assert resp.status_code == 401


async def test_shopping_mark_purchased(api_client, employee, manager):
    resp = await api_client.post(
        "/api/shopping",
        json={"name": "Fita", "category": "Aviamentos", "quantity": 3, "unit": "rolo"},
        headers=employee,
    )
    item_id = resp.json()["id"]

    resp = await api_client.patch(
        f"/api/shopping/{item_id}", json={"status": "purchased"}, headers=employee
    )
    assert resp.status_code == 403

    resp = await api_client.patch(
        f"/api/shopping/{item_id}", json={"status": "purchased"}, headers=manager
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "purchased"

    resp = await api_client.patch(
        f"/api/shopping/{item_id}", json={"status": "lost"}, headers=manager
    )
    assert resp.status_code == 422

    resp = await api_client.patch(
        "/api/shopping/999", json={"status": "purchased"}, headers=manager
    )
    assert resp.status_code == 404


# ---------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------


async def test_task_lifecycle(api_client, employee):
    resp = await api_client.post(
        "/api/tasks", json={"title": "Wrap gifts"}, headers=employee
    )
    assert resp.status_code == 201
    task = resp.json()
    assert task["status"] == "todo"
    assert task["priority"] == "medium"

    me = (await api_client.get("/api/auth/me", headers=employee)).json()
    assert task["createdBy"] == me["id"]

    resp = await api_client.patch(
        f"/api/tasks/{task['id']}", json={"status": "completed"}, headers=employee
    )
    assert resp.json()["status"] == "completed"

    resp = await api_client.patch("/api/tasks/999", json={"status": "x"}, headers=employee)
    assert resp.status_code == 404


# ---------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------


async def test_admin_only_feedback_hidden_from_staff(api_client, admin, employee):
    for visibility in ("all", "admin"):
        resp = await api_client.post(
            "/api/feedback",
            json={
                "title": f"{visibility} note",
                "description": "text",
                "type": "suggestion",
                "visibility": visibility,
            },
            headers=employee,
        )
        assert resp.status_code == 201

    staff_view = (await api_client.get("/api/feedback", headers=employee)).json()
    admin_view = (await api_client.get("/api/feedback", headers=admin)).json()
    assert [f["title"] for f in staff_view] == ["all note"]
    assert {f["title"] for f in admin_view} == {"all note", "admin note"}


async def test_feedback_patch_requires_permission(api_client, manager, employee):
    resp = await api_client.post(
        "/api/feedback",
        json={"title": "t", "description": "d", "type": "complaint"},
        headers=employee,
    )
    fb_id = resp.json()["id"]

    resp = await api_client.patch(
        f"/api/feedback/{fb_id}", json={"status": "resolved"}, headers=employee
    )
    assert resp.status_code == 403

    resp = await api_client.patch(
        f"/api/feedback/{fb_id}", json={"status": "resolved"}, headers=manager
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "resolved"


# ---------------------------------------------------------------
# Channels and notifications
# ---------------------------------------------------------------


async def test_channels_and_history(api_client, employee):
    resp = await api_client.post("/api/channels", json={"name": "general"}, headers=employee)
    assert resp.status_code == 201
    assert resp.json()["type"] == "channel"

    async with get_session() as s:
        repo = Repository(s)
        await repo.create_message("general", 1, "hi")
        await repo.create_message("general", 2, "hello @admin", [1])

    resp = await api_client.get("/api/channels/general/messages", headers=employee)
    assert resp.status_code == 200
    msgs = resp.json()
    assert [m["content"] for m in msgs] == ["hi", "hello @admin"]
    assert msgs[1]["channelId"] == "general"
    assert msgs[1]["mentions"] == [1]


async def test_notifications_are_private(api_client, admin, employee):
    async with get_session() as s:
        n = await Repository(s).create_notification(
            1, "New Mention", "You were mentioned", "mention", "/chat?channel=general"
        )

    assert (await api_client.get("/api/notifications", headers=employee)).json() == []

    resp = await api_client.post(f"/api/notifications/read/{n.id}", headers=employee)
    assert resp.status_code == 404

    resp = await api_client.post(f"/api/notifications/read/{n.id}", headers=admin)
    assert resp.status_code == 200
    assert resp.json()["read"] is True

    inbox = (await api_client.get("/api/notifications", headers=admin)).json()
    assert inbox[0]["linkTo"] == "/chat?channel=general"


# ---------------------------------------------------------------
# Dashboard and health
# ---------------------------------------------------------------


async def test_dashboard(api_client, employee):
    async with get_session() as s:
        repo = Repository(s)
        await repo.create_inventory_item("Ribbon", "craft", 100, "m", quantity=1)
        await repo.create_task("Wrap gifts", "", created_by=1)

    resp = await api_client.get("/api/dashboard", headers=employee)
    assert resp.status_code == 200
    data = resp.json()
    assert data["stats"] == {"teamMembers": 3, "activeTasks": 1, "inventoryAlerts": 1}
    assert data["tasks"][0]["title"] == "Wrap gifts"
    assert data["inventory"][0]["name"] == "Ribbon"


async def test_health_needs_no_auth(api_client):
    resp = await api_client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["websocket"]["connections"] == 0
    assert data["db_stats"]["users"] == 3


# ---------------------------------------------------------------
# System config
# ---------------------------------------------------------------


async def test_config_requires_configuration_permission(api_client, manager, employee):
    for headers in (manager, employee):
        resp = await api_client.get("/api/config/theme", headers=headers)
        assert resp.status_code == 403
        resp = await api_client.put(
            "/api/config/theme", json={"value": {}}, headers=headers
        )
        assert resp.status_code == 403
        resp = await api_client.get("/api/config/theme/history", headers=headers)
        assert resp.status_code == 403


async def test_config_seeded_theme(api_client, admin):
    resp = await api_client.get("/api/config/theme", headers=admin)
    assert resp.status_code == 200
    data = resp.json()
    assert data["value"]["variant"] == "professional"
    assert data["updatedBy"] == 1


async def test_config_unknown_key(api_client, admin):
    resp = await api_client.get("/api/config/layout", headers=admin)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Configuration not found"


async def test_config_put_requires_value(api_client, admin):
    for body in ({}, {"value": None}):
        resp = await api_client.put("/api/config/theme", json=body, headers=admin)
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Value is required"


async def test_config_put_and_history(api_client, admin):
    new_theme = {
        "primary": "hsl(0 0% 0%)",
        "variant": "professional",
        "appearance": "dark",
        "radius": 0.5,
    }
    resp = await api_client.put(
        "/api/config/theme", json={"value": new_theme}, headers=admin
    )
    assert resp.status_code == 200
    assert resp.json()["value"] == new_theme

    resp = await api_client.get("/api/config/theme/history", headers=admin)
    assert resp.status_code == 200
    [entry] = resp.json()
    assert entry["previousValue"]["appearance"] == "light"
    assert entry["newValue"] == new_theme
    assert entry["changes"] == ["appearance", "primary"]
    assert entry["updatedBy"] == 1

    # A brand new key starts without history
    resp = await api_client.put(
        "/api/config/currency", json={"value": "BRL"}, headers=admin
    )
    assert resp.status_code == 200
    resp = await api_client.get("/api/config/currency/history", headers=admin)
    assert resp.json() == []


async def test_custom_role_with_configuration_permission(api_client, admin):
    async with get_session() as s:
        repo = Repository(s)
        await repo.create_role("Designer", ["configuration"])
        await repo.create_user("bia", "bia12345", "Bia", "bia@example.com", "Designer")
    designer = await _login(api_client, "bia", "bia12345")

    resp = await api_client.get("/api/config/theme", headers=designer)
    assert resp.status_code == 200


# ---------------------------------------------------------------
# Modules
# ---------------------------------------------------------------


async def test_module_registry(api_client, admin, employee):
    body = {"id": "orders", "name": "Pedidos", "dependencies": ["inventory"]}
    resp = await api_client.post("/api/modules", json=body, headers=employee)
    assert resp.status_code == 403

    resp = await api_client.post("/api/modules", json=body, headers=admin)
    assert resp.status_code == 201
    module = resp.json()
    assert module["active"] is True
    assert module["permissions"] == []
    assert module["registeredBy"] == 1

    resp = await api_client.post("/api/modules", json=body, headers=admin)
    assert resp.status_code == 409

    resp = await api_client.get("/api/modules", headers=employee)
    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()] == ["orders"]


async def test_module_patch(api_client, admin, manager):
    await api_client.post(
        "/api/modules", json={"id": "orders", "name": "Pedidos"}, headers=admin
    )
    resp = await api_client.patch(
        "/api/modules/orders", json={"active": False}, headers=manager
    )
    assert resp.status_code == 403

    resp = await api_client.patch(
        "/api/modules/orders", json={"active": False}, headers=admin
    )
    assert resp.status_code == 200
    assert resp.json()["active"] is False
    assert resp.json()["name"] == "Pedidos"

    resp = await api_client.patch(
        "/api/modules/missing", json={"active": False}, headers=admin
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Module not found"
