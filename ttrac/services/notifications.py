"""
Notification store accessor — CRUD for the `notifications` table.

Platform errors (postgrest APIError) propagate to the caller; routers let
them reach the global handler, background sync logs them.
"""

import logging

from ttrac.core.database import get_supabase, result_one, result_rows

logger = logging.getLogger(__name__)

TABLE = "notifications"

NOTIFICATION_TYPES = ("assignment", "grade", "announcement", "quiz", "enrollment")


def build_notification(user_id: str, title: str, message: str, type: str, **extra) -> dict:
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    row = {
        "user_id": user_id,
        "title": title,
        "message": message,
        "type": type,
        "read": False,
        "origin": "system",
    }
    row.update({k: v for k, v in extra.items() if v is not None})
    return row


def create_notification(user_id: str, title: str, message: str, type: str, **extra) -> dict | None:
    db = get_supabase()
    row = build_notification(user_id, title, message, type, **extra)
    result = db.table(TABLE).insert(row).execute()
    return result_one(result)


def create_bulk_notifications(user_ids: list[str], title: str, message: str, type: str, **extra) -> int:
    if not user_ids:
        return 0
    db = get_supabase()
    rows = [build_notification(uid, title, message, type, **extra) for uid in user_ids]
    result = db.table(TABLE).insert(rows).execute()
    return len(result_rows(result))


def get_user_notifications(user_id: str, limit: int | None = None) -> list[dict]:
    db = get_supabase()
    query = (
        db.table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .order("created_at", desc=True)
    )
    if limit:
        query = query.limit(limit)
    return result_rows(query.execute())


def get_notification(notification_id: str) -> dict | None:
    db = get_supabase()
    result = db.table(TABLE).select("*").eq("id", notification_id).maybe_single().execute()
    return result_one(result)


def get_unread_count(user_id: str) -> int:
    db = get_supabase()
    result = (
        db.table(TABLE)
        .select("id", count="exact")
        .eq("user_id", user_id)
        .eq("read", False)
        .execute()
    )
    if getattr(result, "count", None) is not None:
        return result.count
    return len(result_rows(result))


def mark_as_read(notification_id: str, user_id: str) -> dict | None:
    db = get_supabase()
    result = (
        db.table(TABLE)
        .update({"read": True})
        .eq("id", notification_id)
        .eq("user_id", user_id)
        .execute()
    )
    return result_one(result)


def mark_all_as_read(user_id: str) -> int:
    db = get_supabase()
    result = (
        db.table(TABLE)
        .update({"read": True})
        .eq("user_id", user_id)
        .eq("read", False)
        .execute()
    )
    return len(result_rows(result))


def delete_notification(notification_id: str, user_id: str) -> bool:
    db = get_supabase()
    result = (
        db.table(TABLE)
        .delete()
        .eq("id", notification_id)
        .eq("user_id", user_id)
        .execute()
    )
    return bool(result_rows(result))


def delete_notifications(notification_ids: list[str], chunk_size: int = 100) -> int:
    """Delete by id in chunks; returns the number of rows removed."""
    db = get_supabase()
    deleted = 0
    for i in range(0, len(notification_ids), chunk_size):
        chunk = notification_ids[i:i + chunk_size]
        result = db.table(TABLE).delete().in_("id", chunk).execute()
        deleted += len(result_rows(result))
        logger.debug("Deleted %d notifications", len(chunk))
    return deleted


def get_enrolled_students(course_id: str) -> list[str]:
    db = get_supabase()
    result = (
        db.table("enrollments")
        .select("student_id")
        .eq("course_id", course_id)
        .eq("status", "approved")
        .execute()
    )
    return [e["student_id"] for e in result_rows(result)]
