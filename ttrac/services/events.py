"""
Notifications emitted directly by user actions (grading, enrolment decisions,
new assignments). All rows are written with origin "system".
"""

import logging

from dateutil import parser
from ttrac.services import notifications as store

logger = logging.getLogger(__name__)


def _format_due(due_date) -> str:
    try:
        return parser.isoparse(str(due_date)).strftime("%b %d, %Y")
    except (ValueError, OverflowError):
        return str(due_date)


def _points(value) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def notify_new_assignment(course_id: str, assignment_title: str, due_date=None, assignment_id: str | None = None) -> int:
    student_ids = store.get_enrolled_students(course_id)
    if not student_ids:
        return 0
    message = f'A new assignment "{assignment_title}" has been posted'
    if due_date:
        message += f" and is due on {_format_due(due_date)}"
    message += "."
    count = store.create_bulk_notifications(
        student_ids, "New Assignment", message, "assignment",
        course_id=course_id, assignment_id=assignment_id,
    )
    logger.info("Notified %d students of new assignment %r", count, assignment_title)
    return count


def notify_assignment_graded(student_id: str, assignment_title: str, grade, max_points, **refs):
    return store.create_notification(
        student_id,
        "Assignment Graded",
        f'Your assignment "{assignment_title}" has been graded. You received {_points(grade)}/{_points(max_points)} points.',
        "grade",
        **refs,
    )


def notify_enrollment_status_change(student_id: str, course_title: str, status: str, **refs):
    return store.create_notification(
        student_id,
        "Enrollment Update",
        f'Your enrollment request for "{course_title}" has been {status}.',
        "enrollment",
        **refs,
    )


def notify_quiz_graded(student_id: str, quiz_title: str, score, max_score, **refs):
    return store.create_notification(
        student_id,
        "Quiz Graded",
        f'Your attempt on "{quiz_title}" has been graded. You scored {_points(score)}/{_points(max_score)}.',
        "grade",
        **refs,
    )
