import uuid


def apply(client, **fields):
    suffix = uuid.uuid4().hex[:8]
    payload = {
        "discord_handle": f"seeker#{suffix}",
        "proposed_name": "Hopeful Seeker",
        "username": f"seeker_{suffix}",
        "password": "long-enough-pass",
        "motivation": "Called by the coil",
        **fields,
    }
    return client.post("/api/applications", json=payload), payload


def test_public_submission_and_duplicates(client, agent):
    resp, payload = apply(client, username="Mixed_Case_Seeker")
    assert resp.status_code == 201
    assert resp.json()["success"] is True

    same_user, _ = apply(client, username="mixed_case_seeker")
    assert same_user.status_code == 409
    same_handle, _ = apply(client, discord_handle=payload["discord_handle"])
    assert same_handle.status_code == 409

    existing = agent(1)
    taken, _ = apply(client, username=existing.username)
    assert taken.status_code == 409
    assert taken.json()["error"] == "Username already taken"

    reviewer = agent(4)
    listed = client.get("/api/applications", params={"status": "pending"}, headers=reviewer.headers).json()
    mine = next(a for a in listed if a["id"] == resp.json()["id"])
    assert mine["username"] == "mixed_case_seeker"
    assert "hashed_password" not in mine


def test_review_requires_personnel_clearance(client, agent):
    resp, _ = apply(client)
    app_id = resp.json()["id"]
    assert client.get("/api/applications", headers=agent(3).headers).status_code == 403
    assert client.get(f"/api/applications/{app_id}", headers=agent(3).headers).status_code == 403
    assert client.get(f"/api/applications/{app_id}", headers=agent(4).headers).status_code == 200


def test_approval_creates_account(client, agent, department):
    resp, payload = apply(client, requested_department_id=department.id, requested_rank_id=department.low_rank)
    url = f"/api/applications/{resp.json()['id']}"
    reviewer = agent(4)

    contacted = client.patch(url, json={"status": "contacted", "admin_notes": "Spoke on voice"}, headers=reviewer.headers)
    assert contacted.json()["status"] == "contacted"

    approved = client.patch(url, json={"status": "approved"}, headers=reviewer.headers)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["created_user_id"]

    login = client.post("/api/auth/login", json={"username": payload["username"], "password": payload["password"]})
    assert login.status_code == 200
    me = client.get("/api/users/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"}).json()
    assert me["clearance_level"] == 1
    assert me["primary_department_id"] == department.id

    reopened = client.patch(url, json={"status": "rejected"}, headers=reviewer.headers)
    assert reopened.status_code == 409
    assert reopened.json()["error"] == "Application already approved"


def test_approval_cannot_exceed_reviewer(client, agent, department):
    admin = agent(5)
    rank = client.post(
        "/api/ranks",
        json={"department_id": department.id, "name": "Magos Candidate", "clearance_level": 4},
        headers=admin.headers,
    ).json()
    resp, _ = apply(client, requested_department_id=department.id, requested_rank_id=rank["id"])
    url = f"/api/applications/{resp.json()['id']}"

    blocked = client.patch(url, json={"status": "approved"}, headers=agent(4).headers)
    assert blocked.status_code == 403
    assert client.get(url, headers=admin.headers).json()["status"] == "pending"

    granted = client.patch(url, json={"status": "approved"}, headers=admin.headers)
    assert granted.status_code == 200


def test_rank_outside_department_is_rejected(client, department):
    resp, _ = apply(client, requested_rank_id=department.low_rank)
    assert resp.status_code == 400
