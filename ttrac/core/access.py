"""
Course ownership guards.

Usage:
    from ttrac.core.access import get_course, ensure_instructor

    course = get_course(course_id)
    ensure_instructor(course, user)
"""

from fastapi import HTTPException, status
from ttrac.core.database import get_supabase, result_one, result_rows


def get_course(course_id: str) -> dict:
    db = get_supabase()
    course = result_one(
        db.table("courses")
        .select("id, title, instructor_id")
        .eq("id", course_id)
        .maybe_single()
        .execute()
    )
    if not course:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    return course


def ensure_instructor(course: dict, user: dict) -> None:
    """Only the course's instructor (or an admin) may act on it."""
    if user.get("role") == "admin":
        return
    if course.get("instructor_id") != user.get("user_id"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not the instructor of this course",
        )


def instructor_course_ids(instructor_id: str) -> list[str]:
    db = get_supabase()
    rows = result_rows(db.table("courses").select("id").eq("instructor_id", instructor_id).execute())
    return [c["id"] for c in rows]


def is_enrolled(student_id: str, course_id: str) -> bool:
    db = get_supabase()
    rows = result_rows(
        db.table("enrollments")
        .select("id")
        .eq("student_id", student_id)
        .eq("course_id", course_id)
        .eq("status", "approved")
        .execute()
    )
    return bool(rows)
