"""
Quizzes router — attempt submission, manual grading and score breakdown.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from ttrac.core.access import ensure_instructor, get_course, instructor_course_ids
from ttrac.core.database import get_supabase, result_one, result_rows
from ttrac.core.security import require_role
from ttrac.schemas.quizzes import AttemptSubmit, QuestionGrade
from ttrac.services import scoring
from ttrac.utils.response import success_response

router = APIRouter(prefix="/api/quizzes", tags=["Quizzes"])


def _attempt_course(attempt_id: str) -> tuple[dict, dict]:
    db = get_supabase()
    attempt = result_one(
        db.table("quiz_attempts")
        .select("id, quiz_id, student_id, answers, score, status")
        .eq("id", attempt_id)
        .maybe_single()
        .execute()
    )
    if not attempt:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz attempt not found")
    quiz = result_one(
        db.table("quizzes").select("id, course_id").eq("id", attempt["quiz_id"]).maybe_single().execute()
    )
    if not quiz:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    return attempt, get_course(quiz["course_id"])


# Student endpoints
@router.post("/attempts/{attempt_id}/submit")
async def submit_attempt(
    attempt_id: str,
    body: AttemptSubmit,
    user: dict = Depends(require_role(["student"])),
):
    attempt = scoring.submit_attempt(attempt_id, user["user_id"], body.answers)
    return success_response(data=attempt, message="Quiz submitted")


@router.get("/attempts/{attempt_id}/score")
async def get_attempt_score(
    attempt_id: str,
    user: dict = Depends(require_role(["student", "faculty", "admin"])),
):
    attempt, course = _attempt_course(attempt_id)
    if user["role"] == "student":
        if attempt["student_id"] != user["user_id"]:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your attempt")
    else:
        ensure_instructor(course, user)

    db = get_supabase()
    questions = result_rows(
        db.table("quiz_questions")
        .select("id, type, points, correct_answer")
        .eq("quiz_id", attempt["quiz_id"])
        .execute()
    )
    grades = result_rows(
        db.table("quiz_question_grades")
        .select("question_id, points_awarded")
        .eq("attempt_id", attempt_id)
        .execute()
    )
    computed = scoring.compute_attempt_score(questions, attempt.get("answers"), grades)
    return success_response(data={
        "attempt_id": attempt_id,
        "score": computed.score,
        "auto_score": computed.auto_score,
        "manual_score": computed.manual_score,
        "max_score": computed.max_score,
        "status": computed.status,
        "manual_pending": computed.manual_total - computed.manual_graded,
        "stored_score": attempt.get("score"),
        "stored_status": attempt.get("status"),
    })


# Faculty endpoints
@router.get("/pending-grading")
async def get_pending_grading(
    user: dict = Depends(require_role(["faculty"])),
):
    """Submitted attempts that still wait for manual grades."""
    course_ids = instructor_course_ids(user["user_id"])
    if not course_ids:
        return success_response(data=[])

    db = get_supabase()
    quizzes = result_rows(db.table("quizzes").select("id").in_("course_id", course_ids).execute())
    if not quizzes:
        return success_response(data=[])

    result = (
        db.table("quiz_attempts")
        .select("*, quizzes(title), profiles(full_name)")
        .in_("quiz_id", [q["id"] for q in quizzes])
        .eq("status", "completed")
        .order("completed_at", desc=True)
        .execute()
    )
    return success_response(data=result_rows(result))


@router.post("/attempts/{attempt_id}/grades")
async def grade_question(
    attempt_id: str,
    body: QuestionGrade,
    user: dict = Depends(require_role(["faculty", "admin"])),
):
    _, course = _attempt_course(attempt_id)
    ensure_instructor(course, user)

    result = scoring.record_question_grade(
        attempt_id,
        body.question_id,
        body.points_awarded,
        graded_by=user["user_id"],
        feedback=body.feedback,
    )
    return success_response(data=result, message="Grade saved")
