"""Upvote toggle and popular-report threshold tests."""


def _popular_notifications(client, headers, report_id):
    r = client.get("/notifications", headers=headers, params={"type": "upvote", "limit": 100})
    return [n for n in r.json()["data"] if n["related_to"]["id"] == report_id]


def test_upvote_toggle_is_an_involution(client, make_user, create_report):
    owner = make_user("resident")
    voter = make_user("resident")
    report = create_report(owner["headers"])
    url = f"/reports/{report['id']}/upvote"

    first = client.post(url, headers=voter["headers"])
    assert first.status_code == 200
    assert first.json()["data"] == {"upvoted": True, "upvotes": [voter["id"]], "count": 1}

    second = client.post(url, headers=voter["headers"])
    assert second.json()["data"] == {"upvoted": False, "upvotes": [], "count": 0}

    reloaded = client.get(f"/reports/{report['id']}", headers=owner["headers"]).json()["data"]
    assert reloaded["upvotes"] == []
    assert reloaded["upvote_count"] == 0


def test_upvote_missing_report_is_404(client, make_user):
    voter = make_user("resident")
    assert client.post("/reports/999999/upvote", headers=voter["headers"]).status_code == 404


def test_popular_notification_fires_once_at_five(client, make_user, create_report):
    owner = make_user("resident")
    moderator = make_user("moderator")
    admin = make_user("admin")
    voters = [make_user("resident") for _ in range(6)]
    report = create_report(owner["headers"])
    url = f"/reports/{report['id']}/upvote"

    for voter in voters[:4]:
        client.post(url, headers=voter["headers"])
    assert _popular_notifications(client, moderator["headers"], report["id"]) == []

    fifth = client.post(url, headers=voters[4]["headers"])
    assert fifth.json()["data"]["count"] == 5
    for staff in (moderator, admin):
        popular = _popular_notifications(client, staff["headers"], report["id"])
        assert len(popular) == 1
        assert popular[0]["title"] == "Popular Report"

    sixth = client.post(url, headers=voters[5]["headers"])
    assert sixth.json()["data"]["count"] == 6
    assert len(_popular_notifications(client, moderator["headers"], report["id"])) == 1


def test_popular_notification_does_not_refire_after_dipping(client, make_user, create_report):
    owner = make_user("resident")
    moderator = make_user("moderator")
    voters = [make_user("resident") for _ in range(5)]
    report = create_report(owner["headers"])
    url = f"/reports/{report['id']}/upvote"

    for voter in voters:
        client.post(url, headers=voter["headers"])
    # Back to 4, then 5 again
    client.post(url, headers=voters[-1]["headers"])
    again = client.post(url, headers=voters[-1]["headers"])
    assert again.json()["data"]["count"] == 5

    assert len(_popular_notifications(client, moderator["headers"], report["id"])) == 1
