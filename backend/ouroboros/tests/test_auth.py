from fastapi.routing import APIRoute

from ouroboros.main import app, PUBLIC_ROUTES
from ouroboros.auth import get_current_user


def test_login_returns_token(client, agent):
    user = agent(2)
    resp = client.post("/api/auth/login", json={"username": user.username.upper(), "password": user.password})
    assert resp.status_code == 200
    token = resp.json()["access_token"]
    me = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    body = me.json()
    assert body["username"] == user.username
    assert body["last_login_at"] is not None
    assert body["clearance_title"] == "Acolyte"


def test_login_rejects_bad_password(client, agent):
    user = agent(1)
    resp = client.post("/api/auth/login", json={"username": user.username, "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid credentials"}


def test_login_rejects_deactivated_account(client, agent):
    user = agent(1, is_active=False)
    resp = client.post("/api/auth/login", json={"username": user.username, "password": user.password})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Account deactivated"


def test_deactivated_token_is_refused(client, agent):
    user = agent(3, is_active=False)
    assert client.get("/api/users/me", headers=user.headers).status_code == 401


def test_missing_or_garbage_token(client):
    assert client.get("/api/projects").status_code == 401
    resp = client.get("/api/projects", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Not authenticated"


def test_validation_errors_are_flattened(client):
    resp = client.post("/api/auth/login", json={"password": "x"})
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("username:")


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_all_routes_protected():
    for route in app.routes:
        if not isinstance(route, APIRoute) or not route.path.startswith("/api"):
            continue
        if all((route.path, method) in PUBLIC_ROUTES for method in route.methods):
            continue
        deps = [d.call for d in route.dependant.dependencies]
        assert get_current_user in deps, f"{route.path} missing authentication"
