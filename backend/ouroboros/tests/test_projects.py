import re

from ouroboros.services.projects import REDACTED_PLACEHOLDER


def create_project(client, owner, **fields):
    payload = {"name": "Containment Study", **fields}
    resp = client.post("/api/projects", json=payload, headers=owner.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_project_creation_requires_level_three(client, agent):
    resp = client.post("/api/projects", json={"name": "Too Junior"}, headers=agent(2).headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Clearance level 3 required to create projects"}


def test_classification_ceiling_on_creation(client, agent):
    resp = client.post("/api/projects", json={"name": "Deep", "security_class": "RED"}, headers=agent(3).headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Insufficient clearance for this security class"
    project = create_project(client, agent(4), name="Deep", security_class="RED")
    assert project["security_class"] == "RED"


def test_creator_becomes_lead_and_codes_increase(client, agent):
    owner = agent(3)
    first = create_project(client, owner)
    second = create_project(client, owner, name="Follow-up")
    assert re.fullmatch(r"ORB-\d{4}-\d{4}", first["project_code"])
    assert int(second["project_code"][-4:]) == int(first["project_code"][-4:]) + 1

    detail = client.get(f"/api/projects/{first['id']}", headers=owner.headers).json()
    assert detail["my_role"] == "lead"
    assert detail["can_edit"] is True
    assert detail["lead_researcher"]["user_id"] == owner.id
    assert [m["user_id"] for m in detail["team"]] == [owner.id]
    assert detail["approval_info"] is None


def test_read_gate_and_user_access_rule(client, agent):
    owner = agent(4)
    reader = agent(1)
    project = create_project(client, owner, name="Red Room", security_class="RED")
    url = f"/api/projects/{project['id']}"

    denied = client.get(url, headers=reader.headers)
    assert denied.status_code == 403
    assert denied.json() == {"error": "Insufficient clearance"}
    listed = client.get("/api/projects", headers=reader.headers).json()
    assert project["id"] not in [p["id"] for p in listed]

    rule = client.post(
        f"{url}/access",
        json={"access_type": "user", "target_id": reader.id, "role": "observer"},
        headers=owner.headers,
    )
    assert rule.status_code == 201
    assert rule.json()["target_name"]

    detail = client.get(url, headers=reader.headers)
    assert detail.status_code == 200
    assert detail.json()["my_role"] == "observer"
    assert detail.json()["can_edit"] is False
    listed = client.get("/api/projects", params={"security": "RED"}, headers=reader.headers).json()
    assert project["id"] in [p["id"] for p in listed]

    edit = client.patch(url, json={"progress": 10}, headers=reader.headers)
    assert edit.status_code == 403
    assert edit.json()["error"] == "Only project leads and researchers may edit this project"

    removed = client.delete(f"{url}/access", params={"rule_id": rule.json()["id"]}, headers=owner.headers)
    assert removed.status_code == 204
    assert client.get(url, headers=reader.headers).status_code == 403


def test_rank_and_clearance_rules_grant_access(client, agent, department):
    owner = agent(4)
    personnel = agent(4)
    ranked = agent(1)
    cleared = agent(2)
    project = create_project(client, owner, name="Layered", security_class="RED")
    url = f"/api/projects/{project['id']}"

    membership = client.post(
        f"/api/users/{ranked.id}/memberships",
        json={"department_id": department.id, "rank_id": department.low_rank},
        headers=personnel.headers,
    )
    assert membership.status_code == 200

    client.post(
        f"{url}/access",
        json={"access_type": "rank", "target_id": department.low_rank, "role": "researcher"},
        headers=owner.headers,
    )
    client.post(
        f"{url}/access",
        json={"access_type": "clearance", "min_clearance": 2, "role": "assistant"},
        headers=owner.headers,
    )

    ranked_view = client.get(url, headers=ranked.headers).json()
    assert ranked_view["my_role"] == "researcher"
    assert ranked_view["can_edit"] is False
    assert client.get(url, headers=cleared.headers).json()["my_role"] == "assistant"

    rules = client.get(f"{url}/access", headers=owner.headers).json()
    assert {r["access_type"] for r in rules} == {"rank", "clearance"}


def test_access_rule_never_grants_edit_or_logbook(client, agent):
    owner = agent(3)
    outsider = agent(3)
    project = create_project(client, owner, name="Open Door")
    url = f"/api/projects/{project['id']}"

    before = client.patch(url, json={"name": "Taken"}, headers=outsider.headers)
    assert before.status_code == 403

    rule = client.post(
        f"{url}/access",
        json={"access_type": "user", "target_id": outsider.id, "role": "lead"},
        headers=outsider.headers,
    )
    assert rule.status_code == 201

    after = client.patch(url, json={"name": "Taken", "security_class": "AMBER"}, headers=outsider.headers)
    assert after.status_code == 403
    assert after.json()["error"] == "Only project leads and researchers may edit this project"
    detail = client.get(url, headers=owner.headers).json()
    assert detail["name"] == "Open Door"
    assert detail["security_class"] == project["security_class"]
    assert client.get(url, headers=outsider.headers).json()["can_edit"] is False

    entry = client.post(f"{url}/logbook", json={"entry_text": "slipped in"}, headers=outsider.headers)
    assert entry.status_code == 403
    assert entry.json()["error"] == "You must be assigned to this project"


def test_access_rule_validation_and_permissions(client, agent):
    owner = agent(3)
    project = create_project(client, owner)
    url = f"/api/projects/{project['id']}/access"

    missing = client.post(url, json={"access_type": "clearance"}, headers=owner.headers)
    assert missing.status_code == 400
    assert missing.json()["error"] == "min_clearance is required for clearance rules"

    bad_user = client.post(
        url,
        json={"access_type": "user", "target_id": "00000000-0000-0000-0000-000000000000"},
        headers=owner.headers,
    )
    assert bad_user.status_code == 404

    junior = client.post(url, json={"access_type": "clearance", "min_clearance": 1}, headers=agent(2).headers)
    assert junior.status_code == 403


def test_assignments_and_single_lead(client, agent):
    owner = agent(3)
    member = agent(1)
    project = create_project(client, owner)
    url = f"/api/projects/{project['id']}"

    assigned = client.post(f"{url}/assignments", json={"user_id": member.id, "role": "researcher"}, headers=owner.headers)
    assert assigned.status_code == 200
    assert assigned.json()["role"] == "researcher"

    edit = client.patch(url, json={"progress": 40}, headers=member.headers)
    assert edit.status_code == 200
    assert edit.json()["progress"] == 40

    second_lead = client.post(f"{url}/assignments", json={"user_id": agent(1).id, "role": "lead"}, headers=owner.headers)
    assert second_lead.status_code == 409
    assert second_lead.json()["error"] == "Project already has a lead"

    outsider = client.post(f"{url}/assignments", json={"user_id": agent(1).id}, headers=agent(2).headers)
    assert outsider.status_code == 403

    team = client.get(f"{url}/assignments", headers=owner.headers).json()
    assert {m["user_id"] for m in team} == {owner.id, member.id}

    removed = client.delete(f"{url}/assignments", params={"user_id": member.id}, headers=owner.headers)
    assert removed.status_code == 204
    assert client.patch(url, json={"progress": 50}, headers=member.headers).status_code == 403


def test_assignee_must_meet_class(client, agent):
    owner = agent(4)
    project = create_project(client, owner, security_class="RED")
    resp = client.post(
        f"/api/projects/{project['id']}/assignments",
        json={"user_id": agent(1).id},
        headers=owner.headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "User lacks clearance for this project"


def test_reclassification_is_revalidated(client, agent):
    owner = agent(3)
    project = create_project(client, owner)
    url = f"/api/projects/{project['id']}"

    up = client.patch(url, json={"security_class": "RED"}, headers=owner.headers)
    assert up.status_code == 403
    assert up.json()["error"] == "Insufficient clearance for new security class"
    assert client.get(url, headers=owner.headers).json()["security_class"] == "GREEN"

    expunge = client.patch(url, json={"status": "expunged"}, headers=owner.headers)
    assert expunge.status_code == 403

    admin = client.patch(url, json={"security_class": "BLACK"}, headers=agent(5).headers)
    assert admin.status_code == 200
    assert admin.json()["security_class"] == "BLACK"
    assert client.get(url, headers=owner.headers).status_code == 403


def test_logbook_numbering_and_membership(client, agent):
    owner = agent(3)
    project = create_project(client, owner)
    url = f"/api/projects/{project['id']}/logbook"

    numbers = []
    for text in ("first", "second", "third"):
        resp = client.post(url, json={"entry_text": text}, headers=owner.headers)
        assert resp.status_code == 201
        numbers.append(resp.json()["entry_number"])
    assert numbers == [1, 2, 3]

    outsider = client.post(url, json={"entry_text": "hello"}, headers=agent(2).headers)
    assert outsider.status_code == 403
    assert outsider.json()["error"] == "You must be assigned to this project"

    overseer = client.post(url, json={"entry_text": "oversight", "entry_type": "note"}, headers=agent(4).headers)
    assert overseer.status_code == 201
    assert overseer.json()["entry_number"] == 4

    entries = client.get(url, headers=owner.headers).json()
    assert [e["entry_number"] for e in entries] == [4, 3, 2, 1]
    detail = client.get(f"/api/projects/{project['id']}", headers=owner.headers).json()
    assert detail["logbook_entry_count"] == 4


def test_redacted_entries(client, agent):
    owner = agent(3)
    senior = agent(4)
    project = create_project(client, owner)
    url = f"/api/projects/{project['id']}/logbook"

    hidden = client.post(
        url,
        json={"entry_text": "the real account", "is_redacted": True, "min_clearance_to_view": 4, "attachments": ["scan.png"]},
        headers=owner.headers,
    ).json()
    summarised = client.post(
        url,
        json={
            "entry_text": "full interview",
            "is_redacted": True,
            "min_clearance_to_view": 4,
            "redacted_version": "Interview conducted.",
        },
        headers=owner.headers,
    ).json()

    as_owner = {e["id"]: e for e in client.get(url, headers=owner.headers).json()}
    assert as_owner[hidden["id"]]["entry_text"] == REDACTED_PLACEHOLDER
    assert as_owner[hidden["id"]]["attachments"] is None
    assert as_owner[hidden["id"]]["redacted"] is True
    assert as_owner[summarised["id"]]["entry_text"] == "Interview conducted."

    as_senior = {e["id"]: e for e in client.get(url, headers=senior.headers).json()}
    assert as_senior[hidden["id"]]["entry_text"] == "the real account"
    assert as_senior[hidden["id"]]["attachments"] == ["scan.png"]


def test_expunge(client, agent):
    owner = agent(3)
    admin = agent(5)
    project = create_project(client, owner)
    url = f"/api/projects/{project['id']}"

    denied = client.delete(url, headers=agent(4).headers)
    assert denied.status_code == 403

    resp = client.delete(url, headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    gone = client.get(url, headers=owner.headers)
    assert gone.status_code == 404
    assert gone.json() == {"error": "Project not found"}
    assert project["id"] not in [p["id"] for p in client.get("/api/projects", headers=owner.headers).json()]
    assert client.get(url, headers=admin.headers).json()["status"] == "expunged"

    late = client.post(f"{url}/logbook", json={"entry_text": "after"}, headers=admin.headers)
    assert late.status_code == 409
