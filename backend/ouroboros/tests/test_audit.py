def test_actions_are_logged_for_the_actor(client, agent):
    user = agent(3)
    client.post("/api/auth/login", json={"username": user.username, "password": user.password})
    project = client.post("/api/projects", json={"name": "Logged"}, headers=user.headers).json()

    logs = client.get("/api/audit", headers=user.headers)
    assert logs.status_code == 200
    data = logs.json()
    assert any(l["action"] == "login" for l in data)
    assert any(l["action"] == "create_project" and l["target_id"] == project["id"] for l in data)
    assert {l["user_id"] for l in data} == {user.id}


def test_scope_is_limited_below_archmagos(client, agent):
    watched = agent(3)
    client.post("/api/projects", json={"name": "Watched"}, headers=watched.headers)

    peer = agent(4)
    peeked = client.get("/api/audit", params={"user_id": watched.id}, headers=peer.headers).json()
    assert all(l["user_id"] == peer.id for l in peeked)

    admin = client.get("/api/audit", params={"user_id": watched.id, "action": "create_project"}, headers=agent(5).headers)
    assert admin.status_code == 200
    assert len(admin.json()) == 1


def test_clearance_change_is_recorded(client, agent):
    admin = agent(5)
    user = agent(1)
    client.patch(f"/api/users/{user.id}", json={"clearance_level": 2}, headers=admin.headers)
    logs = client.get("/api/audit", params={"action": "change_clearance"}, headers=admin.headers).json()
    entry = next(l for l in logs if l["target_id"] == user.id)
    assert entry["details"] == {"from": 1, "to": 2}


def test_rolled_back_actions_leave_no_trace(client, agent):
    proposal = client.post("/api/proposals", json={"name": "Too Dark", "security_class": "BLACK"}, headers=agent(1).headers).json()
    failed = client.post(f"/api/proposals/{proposal['id']}/approve", headers=agent(4).headers)
    assert failed.status_code == 403
    logs = client.get("/api/audit", params={"action": "approve_proposal"}, headers=agent(5).headers).json()
    assert proposal["id"] not in [l["target_id"] for l in logs]


def test_audit_report(client, agent):
    user = agent(3)
    client.post("/api/projects", json={"name": "Counted"}, headers=user.headers)
    client.post("/api/projects", json={"name": "Counted again"}, headers=user.headers)
    params = {
        "start": "2000-01-01T00:00:00",
        "end": "2100-01-01T00:00:00",
    }
    resp = client.get("/api/audit/report", headers=user.headers, params=params)
    assert resp.status_code == 200
    data = resp.json()
    assert {"action": "create_project", "count": 2} in data
