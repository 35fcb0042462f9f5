import pytest
from fastapi.testclient import TestClient

from ouroboros.main import app


@pytest.fixture(scope="module")
def sovereign(agent):
    ruler = agent(5)
    resp = TestClient(app).post(
        "/api/covenant/init-sovereign",
        json={"covenant_title": "First Coil", "sigil": "∞"},
        headers=ruler.headers,
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["covenant_role"] == "sovereign"
    return ruler


def summon(client, sovereign, **fields):
    payload = {"target_name": "Lyra", "proposed_title": "Keeper of Ash", "proposed_role": "keeper", **fields}
    resp = client.post("/api/covenant/invitations", json=payload, headers=sovereign.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_seat_seeding_is_idempotent(client, agent):
    admin = agent(5)
    assert client.post("/api/covenant/seats/init", headers=agent(4).headers).status_code == 403
    client.post("/api/covenant/seats/init", headers=admin.headers)
    again = client.post("/api/covenant/seats/init", headers=admin.headers)
    assert again.status_code == 200
    assert again.json()["already_exists"] is True

    seats = client.get("/api/covenant/seats", headers=agent(1).headers).json()
    assert seats["can_edit"] is False
    assert len(seats["seats"]) == 15
    orders = [s["sort_order"] for s in seats["seats"]]
    assert orders == sorted(orders)
    assert client.get("/api/covenant/seats", headers=admin.headers).json()["can_edit"] is True

    synced = client.put("/api/covenant/seats/init", headers=admin.headers)
    assert synced.status_code == 200


def test_seat_assignment(client, agent):
    admin = agent(5)
    holder = agent(3)
    client.post("/api/covenant/seats/init", headers=admin.headers)
    seat_id = client.get("/api/covenant/seats", headers=admin.headers).json()["seats"][0]["seat_id"]

    payload = {"seat_id": seat_id, "member_name": "Mara", "member_discord": "mara#0001", "user_id": holder.id}
    assert client.patch("/api/covenant/seats", json=payload, headers=agent(4).headers).status_code == 403

    filled = client.patch("/api/covenant/seats", json=payload, headers=admin.headers)
    assert filled.status_code == 200
    assert filled.json()["member_name"] == "Mara"
    assert filled.json()["appointed_by"] == admin.id

    client.put("/api/covenant/seats/init", headers=admin.headers)
    kept = next(s for s in client.get("/api/covenant/seats", headers=admin.headers).json()["seats"] if s["seat_id"] == seat_id)
    assert kept["member_name"] == "Mara"

    vacated = client.patch("/api/covenant/seats", json={"seat_id": seat_id}, headers=admin.headers).json()
    assert vacated["member_name"] is None
    assert vacated["appointed_at"] is None

    missing = client.patch("/api/covenant/seats", json={"seat_id": "no_such_seat"}, headers=admin.headers)
    assert missing.status_code == 404


def test_single_sovereign(client, agent, sovereign):
    assert client.post("/api/covenant/init-sovereign", headers=agent(4).headers).status_code == 403
    second = client.post("/api/covenant/init-sovereign", headers=agent(5).headers)
    assert second.status_code == 409
    assert second.json()["error"] == "A sovereign already exists"


def test_outsiders_are_refused(client, agent, sovereign):
    outsider = agent(5)
    resp = client.get("/api/covenant/members", headers=outsider.headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Not a member of the covenant"
    assert client.get("/api/covenant/invitations", headers=outsider.headers).status_code == 403


def test_unbound_summons_creates_account(client, sovereign):
    invitation = summon(client, sovereign)
    token = invitation["token"]
    assert len(token) == 96

    preview = client.get(f"/api/covenant/invitations/{token}")
    assert preview.status_code == 200
    assert preview.json()["requires_account"] is True

    missing = client.post(f"/api/covenant/invitations/{token}", json={})
    assert missing.status_code == 400

    accepted = client.post(
        f"/api/covenant/invitations/{token}",
        json={"username": "lyra_ash", "password": "long-enough-pass", "motto": "Ash remembers"},
    )
    assert accepted.status_code == 201
    member = accepted.json()
    assert member["covenant_role"] == "keeper"
    assert member["display_name"] == "Lyra"
    assert member["inducted_by"] == sovereign.id

    again = client.post(f"/api/covenant/invitations/{token}", json={"username": "lyra_two", "password": "long-enough-pass"})
    assert again.status_code == 400

    login = client.post("/api/auth/login", json={"username": "lyra_ash", "password": "long-enough-pass"})
    keeper = {"Authorization": f"Bearer {login.json()['access_token']}"}
    assert client.get("/api/users/me", headers=keeper).json()["clearance_level"] == 0

    assert client.get("/api/covenant/invitations", headers=keeper).status_code == 200
    issue = client.post("/api/covenant/invitations", json={"target_name": "X", "proposed_title": "Y"}, headers=keeper)
    assert issue.status_code == 403
    assert issue.json()["error"] == "Covenant role insufficient"

    roster = client.get("/api/covenant/members", headers=keeper).json()
    assert roster[0]["covenant_role"] == "sovereign"
    assert "keeper" in [m["covenant_role"] for m in roster]


def test_bound_summons_uses_existing_account(client, agent, sovereign):
    target = agent(2)
    invitation = summon(client, sovereign, target_user_id=target.id, target_name="Bound One", proposed_role="initiate")

    assert client.get(f"/api/covenant/invitations/{invitation['token']}").json()["requires_account"] is False
    accepted = client.post(f"/api/covenant/invitations/{invitation['token']}", json={})
    assert accepted.status_code == 201
    assert accepted.json()["user_id"] == target.id

    duplicate = client.post(
        "/api/covenant/invitations",
        json={"target_user_id": target.id, "target_name": "Bound One", "proposed_title": "Again"},
        headers=sovereign.headers,
    )
    assert duplicate.status_code == 409
