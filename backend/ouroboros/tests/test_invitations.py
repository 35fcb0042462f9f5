import uuid
from datetime import datetime, timedelta, timezone

from ouroboros import models


def issue(client, issuer, **fields):
    payload = {"display_name": "New Recruit", "title": "Field Agent", "clearance_level": 1, **fields}
    return client.post("/api/invitations", json=payload, headers=issuer.headers)


def test_issue_requires_level_four(client, agent):
    assert issue(client, agent(3)).status_code == 403


def test_issue_ceiling(client, agent):
    magos = agent(4)
    too_high = issue(client, magos, clearance_level=4)
    assert too_high.status_code == 403
    assert too_high.json() == {"error": "Cannot invite at this clearance level"}
    ok = issue(client, magos, clearance_level=3)
    assert ok.status_code == 201
    assert len(ok.json()["token"]) == 64
    assert ok.json()["status"] == "active"
    assert issue(client, agent(5), clearance_level=5).status_code == 201


def test_rank_must_belong_to_department(client, agent, department):
    magos = agent(4)
    stray = issue(client, magos, rank_id=department.low_rank)
    assert stray.status_code == 400
    assert stray.json()["error"] == "Rank does not belong to department"
    bound = issue(client, magos, department_id=department.id, rank_id=department.low_rank)
    assert bound.status_code == 201
    assert bound.json()["rank_name"] == "Field Agent"


def test_redeem_creates_bound_account(client, agent, department):
    magos = agent(4)
    invitation = issue(client, magos, clearance_level=2, department_id=department.id, rank_id=department.low_rank).json()
    token = invitation["token"]

    preview = client.get(f"/api/invitations/{token}")
    assert preview.status_code == 200
    assert preview.json()["clearance_title"] == "Acolyte"
    assert preview.json()["department_name"] == department.name

    redeemed = client.post(f"/api/invitations/{token}", json={"username": "vesper_recruit", "password": "long-enough-pass"})
    assert redeemed.status_code == 201
    body = redeemed.json()
    assert body["success"] is True
    assert body["username"] == "vesper_recruit"

    me = client.get("/api/users/me", headers={"Authorization": f"Bearer {body['access_token']}"}).json()
    assert me["clearance_level"] == 2
    assert me["display_name"] == "New Recruit"
    assert me["primary_department_id"] == department.id
    assert [m["rank_id"] for m in me["memberships"]] == [department.low_rank]

    login = client.post("/api/auth/login", json={"username": "vesper_recruit", "password": "long-enough-pass"})
    assert login.status_code == 200


def test_double_redemption_fails(client, agent):
    token = issue(client, agent(4)).json()["token"]
    first = client.post(f"/api/invitations/{token}", json={"username": "once_only", "password": "long-enough-pass"})
    assert first.status_code == 201
    second = client.post(f"/api/invitations/{token}", json={"username": "twice_over", "password": "long-enough-pass"})
    assert second.status_code == 400
    assert second.json()["error"] == "Invitation invalid or already used"
    assert client.get(f"/api/invitations/{token}").status_code == 400

    admin = agent(5)
    names = [u["username"] for u in client.get("/api/users", params={"search": "twice_over"}, headers=admin.headers).json()]
    assert names == []


def test_duplicate_username_leaves_token_unused(client, agent):
    taken = agent(1)
    token = issue(client, agent(4)).json()["token"]
    clash = client.post(f"/api/invitations/{token}", json={"username": taken.username, "password": "long-enough-pass"})
    assert clash.status_code == 409
    assert client.get(f"/api/invitations/{token}").status_code == 200


def test_unknown_and_expired_tokens(client, agent, db_session):
    assert client.get("/api/invitations/deadbeef").status_code == 404

    invitation = issue(client, agent(4)).json()
    row = db_session.get(models.Invitation, uuid.UUID(invitation["id"]))
    row.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
    db_session.commit()

    expired = client.get(f"/api/invitations/{invitation['token']}")
    assert expired.status_code == 410
    redeem = client.post(f"/api/invitations/{invitation['token']}", json={"username": "too_late", "password": "long-enough-pass"})
    assert redeem.status_code == 410


def test_redeem_validation(client, agent):
    token = issue(client, agent(4)).json()["token"]
    bad = client.post(f"/api/invitations/{token}", json={"username": "Bad Name", "password": "long-enough-pass"})
    assert bad.status_code == 400
    assert bad.json()["error"].startswith("username:")
    short = client.post(f"/api/invitations/{token}", json={"username": "fine_name", "password": "short"})
    assert short.status_code == 400


def test_list_and_revoke(client, agent):
    issuer = agent(4)
    other = agent(4)
    invitation = issue(client, issuer).json()

    listed = client.get("/api/invitations", headers=other.headers).json()
    assert invitation["id"] in [i["id"] for i in listed]

    foreign = client.delete("/api/invitations", params={"id": invitation["id"]}, headers=other.headers)
    assert foreign.status_code == 403

    revoked = client.delete("/api/invitations", params={"id": invitation["id"]}, headers=issuer.headers)
    assert revoked.status_code == 204
    assert client.get(f"/api/invitations/{invitation['token']}").status_code == 404

    again = client.delete("/api/invitations", params={"id": invitation["id"]}, headers=issuer.headers)
    assert again.status_code == 404


def test_listing_hides_invitations_above_ceiling(client, agent):
    archmagos = agent(5)
    magos = agent(4)
    top = issue(client, archmagos, clearance_level=5).json()
    peer = issue(client, archmagos, clearance_level=4).json()
    low = issue(client, archmagos, clearance_level=3).json()

    seen = client.get("/api/invitations", headers=magos.headers).json()
    ids = [i["id"] for i in seen]
    assert low["id"] in ids
    assert top["id"] not in ids and peer["id"] not in ids
    assert top["token"] not in [i["token"] for i in seen]
    assert all(i["clearance_level"] <= 3 for i in seen)

    everything = [i["id"] for i in client.get("/api/invitations", headers=archmagos.headers).json()]
    assert top["id"] in everything and peer["id"] in everything


def test_used_invitation_cannot_be_revoked(client, agent):
    issuer = agent(4)
    invitation = issue(client, issuer).json()
    client.post(f"/api/invitations/{invitation['token']}", json={"username": "kept_seat", "password": "long-enough-pass"})
    resp = client.delete("/api/invitations", params={"id": invitation["id"]}, headers=agent(5).headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "Invitation not found or already used"

    used = client.get("/api/invitations", params={"show_used": True}, headers=issuer.headers).json()
    assert {i["id"]: i["status"] for i in used}[invitation["id"]] == "used"
