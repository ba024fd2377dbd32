"""
Activity-to-notification generators for faculty.

Each generator scans recent student activity in the faculty member's courses
and writes one notification per activity row. Every row carries a
`source_event_id` ("submission:<id>", "attempt:<id>", "enrollment:<id>") and
is written with an upsert on (user_id, source_event_id) that ignores rows
already present, so repeated or concurrent runs never duplicate.
"""

import logging
import math

from dateutil import parser
from ttrac.core.config import settings
from ttrac.core.database import get_supabase, result_rows
from ttrac.services.notifications import TABLE, build_notification

logger = logging.getLogger(__name__)


def _parse(ts):
    if not ts:
        return None
    try:
        return parser.isoparse(str(ts))
    except (ValueError, OverflowError):
        return None


def _faculty_courses(faculty_id: str) -> dict[str, dict]:
    db = get_supabase()
    rows = result_rows(
        db.table("courses").select("id, title").eq("instructor_id", faculty_id).execute()
    )
    return {c["id"]: c for c in rows}


def _student_names(student_ids) -> dict[str, str]:
    ids = sorted(set(student_ids))
    if not ids:
        return {}
    db = get_supabase()
    rows = result_rows(db.table("profiles").select("id, full_name").in_("id", ids).execute())
    return {p["id"]: p.get("full_name") or "A student" for p in rows}


def write_notifications(rows: list[dict]) -> int:
    if not rows:
        return 0
    db = get_supabase()
    result = (
        db.table(TABLE)
        .upsert(rows, on_conflict="user_id,source_event_id", ignore_duplicates=True)
        .execute()
    )
    return len(result_rows(result))


def submission_notification(faculty_id: str, submission: dict, assignment: dict, course: dict, student_name: str) -> dict:
    submitted_at = _parse(submission.get("submitted_at"))
    due_date = _parse(assignment.get("due_date"))
    late = bool(submitted_at and due_date and submitted_at > due_date)
    if late:
        days = max(1, math.ceil((submitted_at - due_date).total_seconds() / 86400))
        title = "Late Assignment Submission"
        message = (
            f'{student_name} submitted "{assignment["title"]}" in {course["title"]} '
            f'{days} day{"s" if days != 1 else ""} late'
        )
    else:
        title = "Assignment Submitted"
        message = f'{student_name} submitted "{assignment["title"]}" in {course["title"]}'
    return build_notification(
        faculty_id, title, message, "assignment",
        course_id=course["id"],
        assignment_id=assignment["id"],
        submission_id=submission["id"],
        source_event_id=f"submission:{submission['id']}",
        created_at=submission.get("submitted_at"),
    )


def generate_submission_notifications(faculty_id: str, courses: dict | None = None, dry_run: bool = False) -> int:
    courses = _faculty_courses(faculty_id) if courses is None else courses
    if not courses:
        return 0
    db = get_supabase()
    assignments = {
        a["id"]: a
        for a in result_rows(
            db.table("assignments")
            .select("id, title, due_date, course_id")
            .in_("course_id", list(courses))
            .execute()
        )
    }
    if not assignments:
        return 0
    submissions = result_rows(
        db.table("assignment_submissions")
        .select("id, assignment_id, student_id, submitted_at, status")
        .in_("assignment_id", list(assignments))
        .neq("status", "draft")
        .order("submitted_at", desc=True)
        .limit(settings.GENERATOR_SCAN_LIMIT)
        .execute()
    )
    names = _student_names(s["student_id"] for s in submissions)
    rows = []
    for sub in submissions:
        assignment = assignments[sub["assignment_id"]]
        rows.append(submission_notification(
            faculty_id, sub, assignment, courses[assignment["course_id"]],
            names.get(sub["student_id"], "A student"),
        ))
    return len(rows) if dry_run else write_notifications(rows)


def generate_quiz_attempt_notifications(faculty_id: str, courses: dict | None = None, dry_run: bool = False) -> int:
    courses = _faculty_courses(faculty_id) if courses is None else courses
    if not courses:
        return 0
    db = get_supabase()
    quizzes = {
        q["id"]: q
        for q in result_rows(
            db.table("quizzes").select("id, title, course_id").in_("course_id", list(courses)).execute()
        )
    }
    if not quizzes:
        return 0
    attempts = result_rows(
        db.table("quiz_attempts")
        .select("id, quiz_id, student_id, score, status, completed_at")
        .in_("quiz_id", list(quizzes))
        .in_("status", ["completed", "graded"])
        .order("completed_at", desc=True)
        .limit(settings.GENERATOR_SCAN_LIMIT)
        .execute()
    )
    names = _student_names(a["student_id"] for a in attempts)
    rows = []
    for attempt in attempts:
        quiz = quizzes[attempt["quiz_id"]]
        course = courses[quiz["course_id"]]
        message = f'{names.get(attempt["student_id"], "A student")} completed "{quiz["title"]}" in {course["title"]}'
        if attempt.get("score") is not None:
            message += f' (Score: {attempt["score"]})'
        rows.append(build_notification(
            faculty_id, "Quiz Completed", message, "quiz",
            course_id=course["id"],
            quiz_id=quiz["id"],
            attempt_id=attempt["id"],
            source_event_id=f"attempt:{attempt['id']}",
            created_at=attempt.get("completed_at"),
        ))
    return len(rows) if dry_run else write_notifications(rows)


def enrollment_notification(faculty_id: str, enrollment: dict, course: dict, student_name: str) -> dict:
    # a re-request after a decline reuses the row, so the request time is part of the key
    requested_at = enrollment.get("updated_at") or enrollment.get("created_at")
    return build_notification(
        faculty_id,
        "New Enrollment Request",
        f'{student_name} requested to enroll in {course["title"]}',
        "enrollment",
        course_id=course["id"],
        enrollment_id=enrollment["id"],
        source_event_id=f"enrollment:{enrollment['id']}:{requested_at}",
        created_at=requested_at,
    )


def generate_enrollment_notifications(faculty_id: str, courses: dict | None = None, dry_run: bool = False) -> int:
    courses = _faculty_courses(faculty_id) if courses is None else courses
    if not courses:
        return 0
    db = get_supabase()
    enrollments = result_rows(
        db.table("enrollments")
        .select("id, student_id, course_id, status, created_at, updated_at")
        .in_("course_id", list(courses))
        .eq("status", "pending")
        .order("created_at", desc=True)
        .limit(settings.GENERATOR_SCAN_LIMIT)
        .execute()
    )
    names = _student_names(e["student_id"] for e in enrollments)
    rows = [
        enrollment_notification(
            faculty_id, enrollment, courses[enrollment["course_id"]],
            names.get(enrollment["student_id"], "A student"),
        )
        for enrollment in enrollments
    ]
    return len(rows) if dry_run else write_notifications(rows)


def generate_faculty_notifications(faculty_id: str, dry_run: bool = False) -> dict[str, int]:
    courses = _faculty_courses(faculty_id)
    if not courses:
        logger.info("No courses found for faculty %s", faculty_id)
        return {"submissions": 0, "quiz_attempts": 0, "enrollments": 0}
    counts = {
        "submissions": generate_submission_notifications(faculty_id, courses, dry_run),
        "quiz_attempts": generate_quiz_attempt_notifications(faculty_id, courses, dry_run),
        "enrollments": generate_enrollment_notifications(faculty_id, courses, dry_run),
    }
    logger.info("Generated notifications for faculty %s: %s", faculty_id, counts)
    return counts
