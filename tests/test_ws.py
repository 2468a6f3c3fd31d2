"""Real-time gateway tests: socket auth, rooms, emergency broadcast, typing."""

import pytest
from starlette.websockets import WebSocketDisconnect

from nest.db.session import SessionLocal
from nest.models.user import User


def _socket_token(client, user):
    r = client.post("/auth/socket-token", headers=user["headers"])
    assert r.status_code == 200
    return r.json()["data"]["token"]


def _send(ws, event, data):
    ws.send_json({"event": event, "data": data})


def _sync(ws):
    """Round-trip a heartbeat so earlier frames from this socket are processed."""
    ws.send_text("ping")
    assert ws.receive_json() == {"event": "pong"}


def _presence(user_id):
    db = SessionLocal()
    try:
        user = db.get(User, user_id)
        return user.is_online, user.last_seen
    finally:
        db.close()


def test_connect_without_token_is_rejected(client, fake_redis):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws"):
            pass
    assert exc.value.code == 4001


def test_connect_with_unknown_token_is_rejected(client, fake_redis):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=not-issued"):
            pass
    assert exc.value.code == 4003


def test_socket_token_is_stored_with_ttl(client, fake_redis, make_user):
    user = make_user("resident")
    token = _socket_token(client, user)

    assert fake_redis.values[f"socket:auth:{token}"] == str(user["id"])
    assert fake_redis.ttls[f"socket:auth:{token}"] > 0


def test_presence_tracks_connection(client, fake_redis, make_user):
    user = make_user("resident")
    token = _socket_token(client, user)

    with client.websocket_connect(f"/ws?token={token}") as ws:
        _sync(ws)
        assert _presence(user["id"])[0] is True

    online, last_seen = _presence(user["id"])
    assert online is False
    assert last_seen is not None


def test_new_report_is_pushed_to_staff_room(client, fake_redis, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    token = _socket_token(client, moderator)

    with client.websocket_connect(f"/ws?token={token}") as ws:
        _sync(ws)
        report = create_report(resident["headers"], severity="critical")
        message = ws.receive_json()

    assert message["event"] == "new_report"
    assert message["data"] == {
        "reportId": report["id"],
        "title": report["title"],
        "category": "water",
        "severity": "critical",
    }


def test_report_room_receives_status_changes(client, fake_redis, make_user, create_report):
    resident = make_user("resident")
    moderator = make_user("moderator")
    report = create_report(resident["headers"])
    token = _socket_token(client, resident)

    with client.websocket_connect(f"/ws?token={token}") as ws:
        _send(ws, "join_room", f"report:{report['id']}")
        _sync(ws)
        client.put(f"/reports/{report['id']}", headers=moderator["headers"], json={"status": "rejected"})
        message = ws.receive_json()

    assert message == {
        "event": "report_status_changed",
        "data": {"reportId": report["id"], "status": "rejected"},
    }


def test_emergency_alert_is_stored_and_broadcast(client, fake_redis, make_user):
    sender = make_user("resident")
    bystander = make_user("resident")
    sender_token = _socket_token(client, sender)
    bystander_token = _socket_token(client, bystander)
    location = {"type": "Point", "coordinates": [-122.4, 37.8]}

    with client.websocket_connect(f"/ws?token={sender_token}") as ws_a, client.websocket_connect(
        f"/ws?token={bystander_token}"
    ) as ws_b:
        _sync(ws_b)
        _send(ws_a, "emergency_alert", {"type": "fire", "description": "Smoke on 3rd St", "location": location})
        received_a = ws_a.receive_json()
        received_b = ws_b.receive_json()

    for message in (received_a, received_b):
        assert message["event"] == "emergency_notification"
        assert message["data"]["type"] == "fire"
        assert message["data"]["location"] == location

    alert_id = received_b["data"]["id"]
    assert alert_id.startswith("emergency:")
    assert fake_redis.hashes[alert_id]["description"] == "Smoke on 3rd St"
    assert fake_redis.ttls[alert_id] == 24 * 60 * 60

    alerts = client.get("/emergency/alerts", headers=bystander["headers"]).json()["data"]
    assert any(a["id"] == alert_id and a["userId"] == sender["id"] for a in alerts)


def test_typing_reaches_other_room_members_only(client, fake_redis, make_user):
    alice = make_user("resident")
    bob = make_user("resident")
    alice_token = _socket_token(client, alice)
    bob_token = _socket_token(client, bob)

    with client.websocket_connect(f"/ws?token={alice_token}") as ws_a, client.websocket_connect(
        f"/ws?token={bob_token}"
    ) as ws_b:
        _send(ws_a, "join_room", "chat-42")
        _send(ws_b, "join_room", "chat-42")
        _sync(ws_a)
        _sync(ws_b)

        _send(ws_a, "typing", {"chatId": "chat-42", "isTyping": True})
        # Alice's next frame is the pong, so no typing echo was queued for her.
        _sync(ws_a)
        message = ws_b.receive_json()

    assert message == {"event": "user_typing", "data": {"userId": alice["id"], "isTyping": True}}


def test_typing_from_outside_the_room_is_dropped(client, fake_redis, make_user):
    member = make_user("resident")
    outsider = make_user("resident")
    member_token = _socket_token(client, member)
    outsider_token = _socket_token(client, outsider)

    with client.websocket_connect(f"/ws?token={member_token}") as ws_member, client.websocket_connect(
        f"/ws?token={outsider_token}"
    ) as ws_outsider:
        _send(ws_member, "join_room", "chat-7")
        _sync(ws_member)

        _send(ws_outsider, "typing", {"chatId": "chat-7", "isTyping": True})
        _sync(ws_outsider)
        # The member's next frame is the pong, not a user_typing relay.
        _sync(ws_member)


def test_cannot_join_another_users_room(client, fake_redis, make_user, create_report):
    resident = make_user("resident")
    snooper = make_user("resident")
    token = _socket_token(client, snooper)

    with client.websocket_connect(f"/ws?token={token}") as ws:
        _send(ws, "join_room", f"user:{resident['id']}")
        _sync(ws)
        report = create_report(resident["headers"])
        moderator = make_user("moderator")
        client.post(f"/reports/{report['id']}/comments", headers=moderator["headers"], json={"text": "On it"})
        # Only the heartbeat comes back; the resident's new_comment went elsewhere.
        _sync(ws)


def test_bad_frame_does_not_drop_the_socket(client, fake_redis, make_user):
    user = make_user("resident")
    token = _socket_token(client, user)

    with client.websocket_connect(f"/ws?token={token}") as ws:
        ws.send_text("{not json")
        _send(ws, "emergency_alert", "not-a-dict")
        _sync(ws)
