import re


def file_report(client, author, **fields):
    payload = {"title": "Perimeter breach", "content": "Ward three failed at dusk.", **fields}
    resp = client.post("/api/reports", json=payload, headers=author.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_filing_requires_clearance(client, agent):
    resp = client.post("/api/reports", json={"title": "x", "content": "y"}, headers=agent(0).headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Insufficient clearance"


def test_codes_and_visibility_cap(client, agent):
    author = agent(2)
    report = file_report(client, author, report_type="incident", min_clearance_to_view=5)
    assert re.fullmatch(r"IR-\d{4}-\d{4}", report["report_code"])
    assert report["min_clearance_to_view"] == 2
    assert report["content"] == "Ward three failed at dusk."

    url = f"/api/reports/{report['id']}"
    assert client.get(url, headers=agent(1).headers).status_code == 403
    assert client.get(url, headers=author.headers).status_code == 200

    junior_list = client.get("/api/reports", headers=agent(1).headers).json()
    assert report["id"] not in [r["id"] for r in junior_list]
    peer_list = client.get("/api/reports", params={"type": "incident"}, headers=agent(2).headers).json()
    listed = next(r for r in peer_list if r["id"] == report["id"])
    assert listed["content"] is None
    assert listed["is_read"] is None


def test_read_receipts_for_reviewers(client, agent):
    report = file_report(client, agent(1))
    reviewer = agent(4)

    before = next(r for r in client.get("/api/reports", headers=reviewer.headers).json() if r["id"] == report["id"])
    assert before["is_read"] is False

    opened = client.get(f"/api/reports/{report['id']}", headers=reviewer.headers)
    assert opened.json()["is_read"] is True
    client.get(f"/api/reports/{report['id']}", headers=reviewer.headers)

    after = next(r for r in client.get("/api/reports", headers=reviewer.headers).json() if r["id"] == report["id"])
    assert after["is_read"] is True


def test_status_changes_stamp_once(client, agent):
    author = agent(2)
    first = agent(3)
    second = agent(3)
    report = file_report(client, author, priority="high")
    url = f"/api/reports/{report['id']}"

    denied = client.patch(url, json={"status": "acknowledged"}, headers=author.headers)
    assert denied.status_code == 403
    assert denied.json()["error"] == "Clearance level 3 required to change report status"

    ack = client.patch(url, json={"status": "acknowledged"}, headers=first.headers).json()
    assert ack["acknowledged_by"] == first.id
    assert ack["acknowledged_at"] is not None

    client.patch(url, json={"status": "investigating"}, headers=second.headers)
    again = client.patch(url, json={"status": "acknowledged"}, headers=second.headers).json()
    assert again["acknowledged_by"] == first.id

    resolved = client.patch(url, json={"status": "resolved"}, headers=second.headers).json()
    assert resolved["status"] == "resolved"
    assert resolved["resolved_by"] == second.id


def test_only_author_or_magos_edits_summary(client, agent):
    author = agent(2)
    report = file_report(client, author)
    url = f"/api/reports/{report['id']}"

    assert client.patch(url, json={"summary": "Tampered"}, headers=agent(3).headers).status_code == 403
    own = client.patch(url, json={"summary": "Contained", "priority": "critical"}, headers=author.headers)
    assert own.status_code == 200
    assert own.json()["summary"] == "Contained"
    assert own.json()["priority"] == "critical"


def test_report_on_unreadable_project_is_refused(client, agent):
    project = client.post("/api/projects", json={"name": "Sealed", "security_class": "RED"}, headers=agent(4).headers).json()
    resp = client.post(
        "/api/reports",
        json={"title": "Leak", "content": "Seen.", "project_id": project["id"]},
        headers=agent(2).headers,
    )
    assert resp.status_code == 403
