import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import auth
from ttrac.routers import notifications as notifications_router
from ttrac.services.realtime import NotificationHub, fetch_notifications

STUDENT = "ada@ttrac.edu"
FACULTY = "faculty@ttrac.edu"


@pytest.fixture
def inbox(people):
    people.seed(
        "notifications",
        {"id": "n1", "user_id": "stu-1", "title": "Assignment Graded", "message": "You received 9/10 points.",
         "type": "grade", "read": False, "created_at": "2026-01-03T00:00:00+00:00"},
        {"id": "n2", "user_id": "stu-1", "title": "Assignment Graded", "message": "You received 9/10 points.",
         "type": "grade", "read": True, "created_at": "2026-01-02T00:00:00+00:00"},
        {"id": "n3", "user_id": "stu-1", "title": "Test Notification", "message": "hello",
         "type": "announcement", "read": False, "created_at": "2026-01-01T00:00:00+00:00"},
        {"id": "n4", "user_id": "stu-2", "title": "Enrollment Update", "message": "approved",
         "type": "enrollment", "read": False, "created_at": "2026-01-01T00:00:00+00:00"},
    )
    return people


def test_requires_token(client, inbox):
    assert client.get("/api/notifications").status_code in (401, 403)
    assert client.get("/api/notifications", headers=auth("nobody@ttrac.edu")).status_code == 401


def test_list_hides_dummies_and_duplicates(client, inbox):
    res = client.get("/api/notifications", headers=auth(STUDENT))
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert [n["id"] for n in body["data"]["notifications"]] == ["n1"]
    assert body["data"]["unread_count"] == 1


def test_unread_count(client, inbox):
    res = client.get("/api/notifications/unread-count", headers=auth(STUDENT))
    assert res.json()["data"] == {"unread_count": 1}


def test_get_single_notification_is_owner_only(client, inbox):
    res = client.get("/api/notifications/n1", headers=auth(STUDENT))
    assert res.status_code == 200
    assert res.json()["data"]["title"] == "Assignment Graded"
    assert client.get("/api/notifications/n4", headers=auth(STUDENT)).status_code == 404
    assert client.get("/api/notifications/missing", headers=auth(STUDENT)).status_code == 404


def test_create_for_self(client, inbox):
    res = client.post(
        "/api/notifications",
        json={"title": "Reminder", "message": "Office hours at 3", "type": "announcement"},
        headers=auth(STUDENT),
    )
    assert res.status_code == 200
    row = res.json()["data"]
    assert row["user_id"] == "stu-1"
    assert row["read"] is False
    assert row["origin"] == "system"


def test_student_cannot_notify_others(client, inbox):
    res = client.post(
        "/api/notifications",
        json={"user_id": "stu-2", "title": "Hi", "message": "there"},
        headers=auth(STUDENT),
    )
    assert res.status_code == 403


def test_faculty_can_notify_student_with_test_origin(client, inbox):
    res = client.post(
        "/api/notifications",
        json={"user_id": "stu-2", "title": "Bell check", "message": "ignore me", "origin": "test"},
        headers=auth(FACULTY),
    )
    assert res.status_code == 200
    # test-origin rows never show up in the list
    listed = client.get("/api/notifications", headers=auth("alan@ttrac.edu")).json()["data"]["notifications"]
    assert [n["id"] for n in listed] == ["n4"]


def test_invalid_type_rejected(client, inbox):
    res = client.post(
        "/api/notifications",
        json={"title": "x", "message": "y", "type": "late"},
        headers=auth(STUDENT),
    )
    assert res.status_code == 422


def test_mark_read_and_read_all(client, inbox):
    res = client.patch("/api/notifications/n1/read", headers=auth(STUDENT))
    assert res.status_code == 200
    assert inbox.rows("notifications", id="n1")[0]["read"] is True

    # someone else's notification
    assert client.patch("/api/notifications/n4/read", headers=auth(STUDENT)).status_code == 404

    res = client.patch("/api/notifications/read-all", headers=auth(STUDENT))
    assert res.json()["data"]["count"] == 1
    assert all(n["read"] for n in inbox.rows("notifications", user_id="stu-1"))
    assert inbox.rows("notifications", id="n4")[0]["read"] is False


def test_delete(client, inbox):
    assert client.delete("/api/notifications/n1", headers=auth(STUDENT)).status_code == 200
    assert inbox.rows("notifications", id="n1") == []
    assert client.delete("/api/notifications/n4", headers=auth(STUDENT)).status_code == 404


def test_cleanup(client, inbox):
    res = client.post("/api/notifications/cleanup", json={"dry_run": False}, headers=auth(STUDENT))
    data = res.json()["data"]
    assert data["dummy"] == 1
    assert data["duplicates"] == 1
    assert data["deleted"] == 2
    # the newest copy, the one the list shows, is kept
    assert [n["id"] for n in inbox.rows("notifications", user_id="stu-1")] == ["n1"]


def test_announce(client, inbox):
    res = client.post(
        "/api/notifications/announce",
        json={"course_id": "course-1", "title": "Room change", "message": "Lab 2 today"},
        headers=auth(FACULTY),
    )
    assert res.json()["data"] == {"count": 1}
    assert inbox.rows("notifications", title="Room change")[0]["user_id"] == "stu-1"
    assert client.post(
        "/api/notifications/announce",
        json={"course_id": "course-1", "title": "x", "message": "y"},
        headers=auth(STUDENT),
    ).status_code == 403


def test_generate_is_faculty_only(client, inbox):
    assert client.post("/api/notifications/generate", headers=auth(STUDENT)).status_code == 403
    res = client.post("/api/notifications/generate", headers=auth(FACULTY))
    assert res.status_code == 200
    assert res.json()["data"]["enrollments"] == 1


def test_platform_error_is_reported(client, inbox):
    inbox.fail_tables["notifications"] = True
    res = client.get("/api/notifications", headers=auth(STUDENT))
    assert res.status_code == 502
    assert res.json()["success"] is False


class _Channel:
    async def unsubscribe(self):
        pass


@pytest.fixture
def live_hub(monkeypatch):
    async def open_channel(user_id, on_change):
        return _Channel()

    hub = NotificationHub(fetcher=fetch_notifications, channel_factory=open_channel)
    monkeypatch.setattr(notifications_router, "hub", hub)
    return hub


def test_websocket_pushes_snapshots(client, inbox, live_hub):
    with client.websocket_connect("/api/notifications/ws?token=mock-ada@ttrac.edu") as ws:
        first = ws.receive_json()
        assert first["unread_count"] == 1
        assert [n["id"] for n in first["notifications"]] == ["n1"]
        assert live_hub.active_users() == ["stu-1"]

        ws.send_json({"action": "mark_all_read"})
        second = ws.receive_json()
        assert second["unread_count"] == 0
    assert inbox.rows("notifications", id="n1")[0]["read"] is True
    assert live_hub.active_users() == []


def test_websocket_rejects_bad_token(client, inbox, live_hub):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/notifications/ws?token=garbage") as ws:
            ws.receive_json()


def test_stream_queue_keeps_only_latest_snapshot():
    async def scenario():
        queue = asyncio.Queue(maxsize=1)
        push = notifications_router._latest_only(queue)
        for count in range(5):
            push({"unread_count": count, "notifications": []})
        assert queue.qsize() == 1
        assert (await queue.get())["unread_count"] == 4

    asyncio.run(scenario())
