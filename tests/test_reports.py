"""Report lifecycle tests: creation, updates, status machine, assignment, resolution."""

import pytest


def _notifications(client, headers, **params):
    r = client.get("/notifications", headers=headers, params={"limit": 100, **params})
    assert r.status_code == 200
    return r.json()["data"]


def _about(notifications, report_id):
    return [n for n in notifications if n["related_to"] == {"model": "Report", "id": report_id}]


def test_create_report_notifies_moderators(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")

    report = create_report(resident["headers"])

    assert report["status"] == "pending"
    assert report["reporter"]["id"] == resident["id"]
    assert report["location"]["coordinates"] == [-122.4, 37.8]
    assert report["location"]["address"] == "1 Main St"
    assert report["upvote_count"] == 0

    mine = _about(_notifications(client, moderator["headers"]), report["id"])
    assert len(mine) == 1
    assert mine[0]["type"] == "report_status"
    assert mine[0]["title"] == "New Report Submitted"
    assert mine[0]["priority"] == "normal"
    assert mine[0]["read"] is False


def test_critical_report_is_high_priority(client, make_user, create_report):
    resident = make_user("resident")
    admin = make_user("admin")

    report = create_report(resident["headers"], severity="critical")

    mine = _about(_notifications(client, admin["headers"]), report["id"])
    assert [n["priority"] for n in mine] == ["high"]


def test_moderator_without_app_notifications_is_skipped(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    client.put("/auth/me/preferences", headers=moderator["headers"], json={"app": False})

    report = create_report(resident["headers"])

    assert _about(_notifications(client, moderator["headers"]), report["id"]) == []


def test_create_report_requires_auth(client):
    r = client.post("/reports", json={"title": "x"})
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["error"]["message"] == "No token provided"


def test_create_report_missing_address_is_400(client, make_user):
    resident = make_user("resident")
    r = client.post(
        "/reports",
        headers=resident["headers"],
        json={
            "title": "Leak",
            "description": "Leaking",
            "category": "water",
            "severity": "low",
            "location": {"coordinates": [-122.4, 37.8]},
        },
    )
    assert r.status_code == 400
    assert r.json()["success"] is False


def test_subcategory_must_match_category(client, make_user):
    resident = make_user("resident")
    r = client.post(
        "/reports",
        headers=resident["headers"],
        json={
            "title": "Hole",
            "description": "Big hole",
            "category": "pothole",
            "subcategory": "leak",
            "severity": "low",
            "location": {"coordinates": [0, 0], "address": "Somewhere"},
        },
    )
    assert r.status_code == 400


def test_get_report_and_missing_report(client, make_user, create_report):
    resident = make_user("resident")
    report = create_report(resident["headers"])

    r = client.get(f"/reports/{report['id']}", headers=resident["headers"])
    assert r.status_code == 200
    assert r.json()["data"]["title"] == "Leak"

    missing = client.get("/reports/999999", headers=resident["headers"])
    assert missing.status_code == 404
    error = missing.json()["error"]
    assert error["message"] == "Report not found"
    assert "stack" in error


def test_owner_can_edit_content_fields(client, make_user, create_report):
    resident = make_user("resident")
    report = create_report(resident["headers"])

    r = client.put(
        f"/reports/{report['id']}",
        headers=resident["headers"],
        json={"title": "Bigger leak", "severity": "critical"},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["title"] == "Bigger leak"
    assert data["severity"] == "critical"


def test_other_resident_cannot_edit(client, make_user, create_report):
    owner = make_user("resident")
    other = make_user("resident")
    report = create_report(owner["headers"])

    r = client.put(f"/reports/{report['id']}", headers=other["headers"], json={"title": "Mine now"})
    assert r.status_code == 403


@pytest.mark.parametrize("patch", [{"status": "in-progress"}, {"assigned_to": 1}])
def test_resident_cannot_change_status_or_assignee(client, make_user, create_report, patch):
    resident = make_user("resident")
    report = create_report(resident["headers"])

    r = client.put(f"/reports/{report['id']}", headers=resident["headers"], json=patch)
    assert r.status_code == 403

    unchanged = client.get(f"/reports/{report['id']}", headers=resident["headers"]).json()["data"]
    assert unchanged["status"] == "pending"
    assert unchanged["assigned_to"] is None


def test_status_machine(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    report = create_report(resident["headers"])
    url = f"/reports/{report['id']}"

    r = client.put(url, headers=moderator["headers"], json={"status": "in-progress"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "in-progress"

    # No way back to pending
    r = client.put(url, headers=moderator["headers"], json={"status": "pending"})
    assert r.status_code == 400

    r = client.put(url, headers=moderator["headers"], json={"status": "resolved"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "resolved"
    assert data["resolution_details"]["resolved_by"] == moderator["id"]
    assert data["resolution_details"]["resolution_date"] is not None

    # Terminal
    for target in ("rejected", "in-progress", "pending"):
        r = client.put(url, headers=moderator["headers"], json={"status": target})
        assert r.status_code == 400, target


def test_pending_can_be_rejected_directly(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    report = create_report(resident["headers"])

    r = client.put(f"/reports/{report['id']}", headers=moderator["headers"], json={"status": "rejected"})
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "rejected"
    assert r.json()["data"]["resolution_details"] is None


def test_status_update_to_resolved_notifies_reporter(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    report = create_report(resident["headers"])

    client.put(f"/reports/{report['id']}", headers=moderator["headers"], json={"status": "resolved"})

    mine = _about(_notifications(client, resident["headers"], type="resolution"), report["id"])
    assert len(mine) == 1


def test_resolve_scenario(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    report = create_report(resident["headers"])

    r = client.post(
        f"/reports/{report['id']}/resolve",
        headers=moderator["headers"],
        json={"resolution_notes": "Pipe replaced"},
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "resolved"
    assert data["resolution_details"]["resolved_by"] == moderator["id"]
    assert data["resolution_details"]["resolution_notes"] == "Pipe replaced"

    resolution = _about(_notifications(client, resident["headers"], type="resolution"), report["id"])
    assert len(resolution) == 1
    assert resolution[0]["title"] == "Your Report Has Been Resolved"

    again = client.post(f"/reports/{report['id']}/resolve", headers=moderator["headers"])
    assert again.status_code == 400


def test_resolution_ignores_app_preference(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    client.put("/auth/me/preferences", headers=resident["headers"], json={"app": False})
    report = create_report(resident["headers"])

    client.post(f"/reports/{report['id']}/resolve", headers=moderator["headers"])

    assert len(_about(_notifications(client, resident["headers"], type="resolution"), report["id"])) == 1


def test_resident_cannot_resolve(client, make_user, create_report):
    resident = make_user("resident")
    report = create_report(resident["headers"])

    r = client.post(f"/reports/{report['id']}/resolve", headers=resident["headers"])
    assert r.status_code == 403


def test_resident_cannot_assign_someone_elses_report(client, make_user, create_report):
    owner = make_user("resident")
    other = make_user("resident")
    report = create_report(owner["headers"])

    r = client.post(f"/reports/{report['id']}/assign", headers=other["headers"], json={"user_id": other["id"]})
    assert r.status_code == 403
    assert r.json()["success"] is False

    unchanged = client.get(f"/reports/{report['id']}", headers=owner["headers"]).json()["data"]
    assert unchanged["status"] == "pending"
    assert unchanged["assigned_to"] is None


def test_assign_moves_to_in_progress_and_notifies_assignee(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    worker = make_user("moderator", name="Worker")
    report = create_report(resident["headers"], severity="critical")

    r = client.post(f"/reports/{report['id']}/assign", headers=moderator["headers"], json={"user_id": worker["id"]})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "in-progress"
    assert data["assigned_to"]["id"] == worker["id"]
    assert data["assigned_to"]["name"] == "Worker"

    assignment = _about(_notifications(client, worker["headers"], type="assignment"), report["id"])
    assert len(assignment) == 1
    assert assignment[0]["priority"] == "high"
    assert assignment[0]["title"] == "Report Assigned to You"


def test_assign_unknown_user_is_404(client, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    report = create_report(resident["headers"])

    r = client.post(f"/reports/{report['id']}/assign", headers=moderator["headers"], json={"user_id": 999999})
    assert r.status_code == 404


@pytest.mark.parametrize("closing", ["resolve", "reject"])
def test_closed_report_cannot_be_reassigned_by_either_path(client, make_user, create_report, closing):
    resident = make_user("resident")
    moderator = make_user("moderator")
    worker = make_user("moderator", name="Worker")
    report = create_report(resident["headers"])
    url = f"/reports/{report['id']}"

    if closing == "resolve":
        assert client.post(f"{url}/resolve", headers=moderator["headers"]).status_code == 200
    else:
        assert client.put(url, headers=moderator["headers"], json={"status": "rejected"}).status_code == 200

    via_update = client.put(url, headers=moderator["headers"], json={"assigned_to": worker["id"], "title": "Renamed"})
    assert via_update.status_code == 400
    via_assign = client.post(f"{url}/assign", headers=moderator["headers"], json={"user_id": worker["id"]})
    assert via_assign.status_code == 400

    unchanged = client.get(url, headers=moderator["headers"]).json()["data"]
    assert unchanged["assigned_to"] is None
    assert unchanged["title"] == report["title"]
    assert _about(_notifications(client, worker["headers"], type="assignment"), report["id"]) == []


def test_comment_by_other_user_notifies_reporter(client, make_user, create_report):
    resident = make_user("resident")
    neighbour = make_user("resident", name="Neighbour")
    report = create_report(resident["headers"])

    r = client.post(f"/reports/{report['id']}/comments", headers=neighbour["headers"], json={"text": "Same here"})
    assert r.status_code == 201
    comment = r.json()["data"]
    assert comment["text"] == "Same here"
    assert comment["user"]["name"] == "Neighbour"

    client.post(f"/reports/{report['id']}/comments", headers=resident["headers"], json={"text": "Thanks"})

    comments = _about(_notifications(client, resident["headers"], type="comment"), report["id"])
    assert len(comments) == 1

    full = client.get(f"/reports/{report['id']}", headers=resident["headers"]).json()["data"]
    assert [c["text"] for c in full["comments"]] == ["Same here", "Thanks"]


def test_comment_on_missing_report_is_404(client, make_user):
    resident = make_user("resident")
    r = client.post("/reports/999999/comments", headers=resident["headers"], json={"text": "Hello"})
    assert r.status_code == 404


def test_delete_permissions(client, make_user, create_report):
    owner = make_user("resident")
    other = make_user("resident")
    admin = make_user("admin")
    first = create_report(owner["headers"])
    second = create_report(owner["headers"])

    assert client.delete(f"/reports/{first['id']}", headers=other["headers"]).status_code == 403

    r = client.delete(f"/reports/{first['id']}", headers=owner["headers"])
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Report deleted successfully"}
    assert client.get(f"/reports/{first['id']}", headers=owner["headers"]).status_code == 404

    assert client.delete(f"/reports/{second['id']}", headers=admin["headers"]).status_code == 200
