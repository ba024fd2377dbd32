"""
Quiz attempt scoring.

attempt.score = points for correct auto-graded answers + recorded manual grades.
attempt.status = "graded" once every manual question has a grade, else "completed".

Every grade write goes through `record_question_grade`, which recomputes the
attempt in the same request, so score and status cannot drift from the grades.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import HTTPException, status
from ttrac.core.database import get_supabase, result_one, result_rows
from ttrac.services import events

logger = logging.getLogger(__name__)

AUTO_GRADED_TYPES = ("multiple_choice", "true_false")
MANUAL_GRADED_TYPES = ("short_answer", "essay")


@dataclass
class AttemptScore:
    score: float
    auto_score: float
    manual_score: float
    max_score: float
    manual_total: int
    manual_graded: int

    @property
    def status(self) -> str:
        return "graded" if self.manual_graded == self.manual_total else "completed"


def _normalize(answer) -> str:
    return str(answer).strip().lower() if answer is not None else ""


def _number(value):
    # keep integral points as int so 18.0 prints as 18
    value = value or 0
    return int(value) if float(value).is_integer() else float(value)


def compute_attempt_score(questions: list[dict], answers: dict | None, grades: list[dict]) -> AttemptScore:
    answers = answers or {}
    awarded = {g["question_id"]: g.get("points_awarded") or 0 for g in grades}

    auto_score = 0
    manual_score = 0
    max_score = 0
    manual_total = 0
    manual_graded = 0

    for q in questions:
        points = q.get("points") or 0
        max_score += points
        qtype = q.get("type")
        if qtype in AUTO_GRADED_TYPES:
            answer = _normalize(answers.get(q["id"]))
            if answer and answer == _normalize(q.get("correct_answer")):
                auto_score += points
        elif qtype in MANUAL_GRADED_TYPES:
            manual_total += 1
            if q["id"] in awarded:
                manual_graded += 1
                manual_score += awarded[q["id"]]
        else:
            logger.warning("Question %s has unknown type %r", q.get("id"), qtype)

    return AttemptScore(
        score=_number(auto_score + manual_score),
        auto_score=_number(auto_score),
        manual_score=_number(manual_score),
        max_score=_number(max_score),
        manual_total=manual_total,
        manual_graded=manual_graded,
    )


# ---------------------------------------------------------------------------
# Storage-backed operations
# ---------------------------------------------------------------------------

def _get_attempt(attempt_id: str) -> dict:
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
    return attempt


def _get_questions(quiz_id: str) -> list[dict]:
    db = get_supabase()
    return result_rows(
        db.table("quiz_questions")
        .select("id, type, points, correct_answer")
        .eq("quiz_id", quiz_id)
        .execute()
    )


def _get_grades(attempt_id: str) -> list[dict]:
    db = get_supabase()
    return result_rows(
        db.table("quiz_question_grades")
        .select("question_id, points_awarded")
        .eq("attempt_id", attempt_id)
        .execute()
    )


def _write_attempt(attempt: dict, computed: AttemptScore) -> dict:
    db = get_supabase()
    result = (
        db.table("quiz_attempts")
        .update({"score": computed.score, "status": computed.status})
        .eq("id", attempt["id"])
        .execute()
    )
    updated = result_one(result) or {**attempt, "score": computed.score, "status": computed.status}
    if attempt.get("status") != "graded" and computed.status == "graded":
        _notify_graded(attempt, computed)
    return updated


def _notify_graded(attempt: dict, computed: AttemptScore) -> None:
    db = get_supabase()
    quiz = result_one(
        db.table("quizzes").select("id, title").eq("id", attempt["quiz_id"]).maybe_single().execute()
    )
    events.notify_quiz_graded(
        student_id=attempt["student_id"],
        quiz_title=(quiz or {}).get("title", "Quiz"),
        score=computed.score,
        max_score=computed.max_score,
        quiz_id=attempt["quiz_id"],
        attempt_id=attempt["id"],
    )


def submit_attempt(attempt_id: str, student_id: str, answers: dict) -> dict:
    """Store the student's answers and the auto-graded score."""
    attempt = _get_attempt(attempt_id)
    if attempt.get("student_id") != student_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your attempt")
    if attempt.get("status") in ("completed", "graded"):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt already submitted")

    questions = _get_questions(attempt["quiz_id"])
    computed = compute_attempt_score(questions, answers, _get_grades(attempt_id))

    db = get_supabase()
    result = (
        db.table("quiz_attempts")
        .update({
            "answers": answers,
            "score": computed.score,
            "status": computed.status,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        })
        .eq("id", attempt_id)
        .execute()
    )
    logger.info(
        "Attempt %s submitted: auto=%s, manual questions pending=%d",
        attempt_id, computed.auto_score, computed.manual_total - computed.manual_graded,
    )
    updated = result_one(result) or {**attempt, "answers": answers, "score": computed.score, "status": computed.status}
    if computed.status == "graded":
        _notify_graded(attempt, computed)
    return updated


def record_question_grade(
    attempt_id: str,
    question_id: str,
    points_awarded: float,
    graded_by: str,
    feedback: str | None = None,
) -> dict:
    """Save a manual grade and recompute the attempt's score and status."""
    attempt = _get_attempt(attempt_id)
    if attempt.get("status") not in ("completed", "graded"):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Attempt has not been submitted yet")
    questions = _get_questions(attempt["quiz_id"])
    question = next((q for q in questions if q["id"] == question_id), None)
    if question is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found in this quiz")
    if question.get("type") not in MANUAL_GRADED_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Question type '{question.get('type')}' is graded automatically",
        )
    max_points = question.get("points") or 0
    if points_awarded < 0 or points_awarded > max_points:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Points awarded ({points_awarded}) must be between 0 and {max_points}",
        )

    db = get_supabase()
    db.table("quiz_question_grades").upsert(
        {
            "attempt_id": attempt_id,
            "question_id": question_id,
            "points_awarded": points_awarded,
            "feedback": feedback,
            "graded_by": graded_by,
            "graded_at": datetime.now(timezone.utc).isoformat(),
        },
        on_conflict="attempt_id,question_id",
    ).execute()

    computed = compute_attempt_score(questions, attempt.get("answers"), _get_grades(attempt_id))
    updated = _write_attempt(attempt, computed)
    return {"attempt": updated, "score": computed.score, "max_score": computed.max_score, "status": computed.status}


def recalculate_attempt(attempt: dict, dry_run: bool = False) -> tuple[AttemptScore, bool]:
    """Recompute one attempt; returns (score, changed). Used by the repair script."""
    computed = compute_attempt_score(
        _get_questions(attempt["quiz_id"]), attempt.get("answers"), _get_grades(attempt["id"])
    )
    changed = computed.score != attempt.get("score") or (
        attempt.get("status") in ("completed", "graded") and computed.status != attempt.get("status")
    )
    if changed and not dry_run:
        _write_attempt(attempt, computed)
    return computed, changed
