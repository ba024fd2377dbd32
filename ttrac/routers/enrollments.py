"""
Enrollments router — students request to join a course, the course's
instructor approves or declines.

pending -> approved | declined. A declined student may request again, which
puts the same row back to pending.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from ttrac.core.access import ensure_instructor, get_course, instructor_course_ids
from ttrac.core.database import get_supabase, result_one, result_rows
from ttrac.core.security import require_role
from ttrac.schemas.enrollments import EnrollmentAction, EnrollmentRequest
from ttrac.services import events
from ttrac.services.generators import enrollment_notification, write_notifications
from ttrac.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/enrollments", tags=["Enrollments"])

ACTION_STATUS = {"approve": "approved", "decline": "declined"}


# Student endpoints
@router.post("")
async def request_enrollment(
    body: EnrollmentRequest,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    user_id = user["user_id"]
    course = get_course(body.course_id)
    now = datetime.now(timezone.utc).isoformat()

    existing = result_one(
        db.table("enrollments")
        .select("id, status")
        .eq("student_id", user_id)
        .eq("course_id", course["id"])
        .maybe_single()
        .execute()
    )

    if existing and existing["status"] == "pending":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Enrollment request already pending")
    if existing and existing["status"] == "approved":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already enrolled in this course")

    if existing:
        result = (
            db.table("enrollments")
            .update({"status": "pending", "updated_at": now})
            .eq("id", existing["id"])
            .eq("status", "declined")
            .execute()
        )
    else:
        result = (
            db.table("enrollments")
            .insert({
                "student_id": user_id,
                "course_id": course["id"],
                "status": "pending",
                "created_at": now,
                "updated_at": now,
            })
            .execute()
        )

    enrollment = result_one(result)
    if enrollment and course.get("instructor_id"):
        write_notifications([
            enrollment_notification(course["instructor_id"], enrollment, course, user.get("name") or "A student")
        ])
    return success_response(data=enrollment, message="Enrollment requested")


@router.get("/mine")
async def get_my_enrollments(
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    result = (
        db.table("enrollments")
        .select("*, courses(id, title)")
        .eq("student_id", user["user_id"])
        .order("created_at", desc=True)
        .execute()
    )
    return success_response(data=result_rows(result))


# Faculty endpoints
@router.get("/pending")
async def get_pending_enrollments(
    user: dict = Depends(require_role(["faculty"])),
):
    course_ids = instructor_course_ids(user["user_id"])
    if not course_ids:
        return success_response(data=[])

    db = get_supabase()
    result = (
        db.table("enrollments")
        .select("*, profiles(full_name, email), courses(title)")
        .in_("course_id", course_ids)
        .eq("status", "pending")
        .order("created_at", desc=True)
        .execute()
    )
    return success_response(data=result_rows(result))


@router.get("/course/{course_id}")
async def get_course_enrollments(
    course_id: str,
    user: dict = Depends(require_role(["faculty", "admin"])),
):
    course = get_course(course_id)
    ensure_instructor(course, user)

    db = get_supabase()
    result = (
        db.table("enrollments")
        .select("*, profiles(full_name, email)")
        .eq("course_id", course_id)
        .order("created_at", desc=True)
        .execute()
    )
    return success_response(data=result_rows(result))


@router.patch("/{enrollment_id}")
async def enrollment_action(
    enrollment_id: str,
    body: EnrollmentAction,
    user: dict = Depends(require_role(["faculty", "admin"])),
):
    db = get_supabase()
    enrollment = result_one(
        db.table("enrollments")
        .select("id, student_id, course_id, status")
        .eq("id", enrollment_id)
        .maybe_single()
        .execute()
    )
    if not enrollment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Enrollment not found")

    course = get_course(enrollment["course_id"])
    ensure_instructor(course, user)

    if enrollment["status"] != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Enrollment is already {enrollment['status']}",
        )

    new_status = ACTION_STATUS[body.action]
    result = (
        db.table("enrollments")
        .update({"status": new_status, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", enrollment_id)
        .eq("status", "pending")
        .execute()
    )
    updated = result_one(result)
    if not updated:
        # someone else acted between our read and the conditional update
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Enrollment is no longer pending")

    events.notify_enrollment_status_change(
        enrollment["student_id"], course["title"], new_status,
        course_id=course["id"], enrollment_id=enrollment_id,
    )
    logger.info("Enrollment %s %s by %s", enrollment_id, new_status, user["user_id"])
    return success_response(data=updated, message=f"Enrollment {new_status}")
