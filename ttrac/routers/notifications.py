"""
Notifications router — notification center, unread count, cleanup, faculty
activity generation and the live notification stream.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from ttrac.core.access import ensure_instructor, get_course
from ttrac.core.config import settings
from ttrac.core.security import authenticate_token, get_current_user, require_role
from ttrac.schemas.notifications import CleanupRequest, CourseAnnouncement, NotificationCreate
from ttrac.services import notifications as store
from ttrac.services.classifier import without_dummies
from ttrac.services.cleanup import cleanup_notifications
from ttrac.services.dedup import deduplicate
from ttrac.services.generators import generate_faculty_notifications
from ttrac.services.realtime import hub
from ttrac.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
async def list_notifications(
    limit: int | None = None,
    user: dict = Depends(get_current_user),
):
    """Notification center list: dummy rows hidden, duplicates collapsed."""
    rows = store.get_user_notifications(user["user_id"], limit=limit or settings.NOTIFICATION_FETCH_LIMIT)
    visible = deduplicate(without_dummies(rows))
    return success_response(data={
        "notifications": visible,
        "unread_count": sum(1 for n in visible if not n.get("read")),
    })


@router.get("/unread-count")
async def unread_count(user: dict = Depends(get_current_user)):
    feed = hub.feed(user["user_id"])
    if feed is not None and not feed.refreshing:
        count = feed.unread_count
    else:
        rows = store.get_user_notifications(user["user_id"], limit=settings.NOTIFICATION_FETCH_LIMIT)
        count = sum(1 for n in deduplicate(without_dummies(rows)) if not n.get("read"))
    return success_response(data={"unread_count": count})


@router.get("/{notification_id}")
async def get_notification(
    notification_id: str,
    user: dict = Depends(get_current_user),
):
    row = store.get_notification(notification_id)
    if not row or row.get("user_id") != user["user_id"]:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return success_response(data=row)


@router.post("")
async def create_notification(
    body: NotificationCreate,
    user: dict = Depends(get_current_user),
):
    target = body.user_id or user["user_id"]
    if target != user["user_id"] and user["role"] not in ("faculty", "admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot notify other users")

    row = store.create_notification(
        target, body.title, body.message, body.type,
        origin=body.origin, course_id=body.course_id,
    )
    return success_response(data=row, message="Notification created")


@router.post("/announce")
async def announce_to_course(
    body: CourseAnnouncement,
    user: dict = Depends(require_role(["faculty", "admin"])),
):
    """Send an announcement to every approved student of a course."""
    course = get_course(body.course_id)
    ensure_instructor(course, user)
    student_ids = store.get_enrolled_students(course["id"])
    count = store.create_bulk_notifications(
        student_ids, body.title, body.message, "announcement", course_id=course["id"],
    )
    return success_response(data={"count": count}, message=f"Announcement sent to {count} students")


@router.patch("/read-all")
async def mark_all_read(user: dict = Depends(get_current_user)):
    count = store.mark_all_as_read(user["user_id"])
    feed = hub.feed(user["user_id"])
    if feed is not None:
        feed.mark_all_read()
    return success_response(data={"count": count}, message="All notifications marked as read")


@router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: dict = Depends(get_current_user),
):
    row = store.mark_as_read(notification_id, user["user_id"])
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    feed = hub.feed(user["user_id"])
    if feed is not None:
        feed.mark_read(notification_id)
    return success_response(data=row, message="Notification marked as read")


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: dict = Depends(get_current_user),
):
    if not store.delete_notification(notification_id, user["user_id"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    feed = hub.feed(user["user_id"])
    if feed is not None:
        feed.remove(notification_id)
    return success_response(message="Notification deleted")


@router.post("/cleanup")
async def cleanup(
    body: CleanupRequest,
    user: dict = Depends(get_current_user),
):
    """Delete the caller's dummy and duplicate notifications."""
    report = cleanup_notifications(user["user_id"], dry_run=body.dry_run)
    if not body.dry_run:
        await hub.refresh(user["user_id"])
    return success_response(data=report.as_dict(), message="Cleanup complete")


@router.post("/generate")
async def generate(
    dry_run: bool = False,
    user: dict = Depends(require_role(["faculty"])),
):
    """Create notifications from recent student activity in the caller's courses."""
    counts = generate_faculty_notifications(user["user_id"], dry_run=dry_run)
    return success_response(data=counts, message=f"Generated {sum(counts.values())} notifications")


# ===== LIVE STREAM =====

async def _handle_client_message(message: dict, user_id: str) -> None:
    action = message.get("action")
    feed = hub.feed(user_id)
    if action == "refresh":
        await hub.refresh(user_id)
    elif action == "mark_read" and message.get("id"):
        if store.mark_as_read(message["id"], user_id) and feed is not None:
            feed.mark_read(message["id"])
    elif action == "mark_all_read":
        store.mark_all_as_read(user_id)
        if feed is not None:
            feed.mark_all_read()
    else:
        logger.debug("Ignoring client message %r", message)


def _latest_only(queue: asyncio.Queue):
    """Listener that keeps only the newest snapshot in a maxsize=1 queue."""

    def push(snapshot: dict) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)

    return push


@router.websocket("/ws")
async def notification_stream(websocket: WebSocket, token: str = ""):
    """Push {unread_count, notifications} snapshots whenever the user's feed changes."""
    try:
        user = await authenticate_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    user_id = user["user_id"]
    feed = await hub.attach(user_id)
    snapshots: asyncio.Queue = asyncio.Queue(maxsize=1)
    push = _latest_only(snapshots)
    feed.add_listener(push)

    async def sender():
        await websocket.send_json(feed.snapshot())
        while True:
            await websocket.send_json(await snapshots.get())

    async def receiver():
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict):
                await _handle_client_message(message, user_id)

    tasks = [asyncio.create_task(sender()), asyncio.create_task(receiver())]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error("Notification stream for user %s failed: %s", user_id, exc)
    finally:
        feed.remove_listener(push)
        await hub.detach(user_id)
