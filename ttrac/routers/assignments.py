from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from ttrac.core.access import ensure_instructor, get_course, is_enrolled
from ttrac.core.database import get_supabase, result_one, result_rows
from ttrac.core.security import require_role
from ttrac.schemas.assignments import AssignmentCreate, AssignmentSubmit, SubmissionGrade
from ttrac.services import events
from ttrac.services.generators import submission_notification, write_notifications
from ttrac.utils.response import success_response

router = APIRouter(prefix="/api/assignments", tags=["Assignments"])


# Faculty endpoints
@router.post("")
async def create_assignment(
    body: AssignmentCreate,
    user: dict = Depends(require_role(["faculty"])),
):
    db = get_supabase()
    course = get_course(body.course_id)
    ensure_instructor(course, user)

    result = db.table("assignments").insert(body.model_dump()).execute()
    assignment = result_one(result)
    if assignment:
        events.notify_new_assignment(
            course["id"], assignment["title"], assignment.get("due_date"), assignment_id=assignment["id"],
        )
    return success_response(data=assignment, message="Assignment created")


@router.get("/{assignment_id}/submissions")
async def get_submissions(
    assignment_id: str,
    user: dict = Depends(require_role(["faculty", "student"])),  # students see their own submission
):
    db = get_supabase()
    assignment = _get_assignment(assignment_id)

    query = (
        db.table("assignment_submissions")
        .select("*, profiles(full_name)")
        .eq("assignment_id", assignment_id)
    )

    if user["role"] == "student":
        query = query.eq("student_id", user["user_id"])
    else:
        ensure_instructor(get_course(assignment["course_id"]), user)

    result = query.execute()
    return success_response(data=result_rows(result))


@router.patch("/submissions/{submission_id}/grade")
async def grade_submission(
    submission_id: str,
    body: SubmissionGrade,
    user: dict = Depends(require_role(["faculty"])),
):
    db = get_supabase()
    submission = result_one(
        db.table("assignment_submissions")
        .select("id, assignment_id, student_id, status")
        .eq("id", submission_id)
        .maybe_single()
        .execute()
    )
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    if submission["status"] == "draft":
        raise HTTPException(status_code=400, detail="Cannot grade a draft submission")

    assignment = _get_assignment(submission["assignment_id"])
    ensure_instructor(get_course(assignment["course_id"]), user)

    max_points = assignment.get("max_points") or 100
    if body.grade < 0 or body.grade > max_points:
        raise HTTPException(status_code=400, detail=f"Grade must be between 0 and {max_points}")

    result = (
        db.table("assignment_submissions")
        .update({
            "grade": body.grade,
            "feedback": body.feedback,
            "status": "graded",
        })
        .eq("id", submission_id)
        .execute()
    )
    events.notify_assignment_graded(
        submission["student_id"], assignment["title"], body.grade, max_points,
        course_id=assignment["course_id"], assignment_id=assignment["id"], submission_id=submission_id,
    )
    return success_response(data=result_one(result), message="Submission graded")


# Student endpoints
@router.get("/student")
async def get_student_assignments(
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    user_id = user["user_id"]

    enrollments = result_rows(
        db.table("enrollments")
        .select("course_id")
        .eq("student_id", user_id)
        .eq("status", "approved")
        .execute()
    )
    if not enrollments:
        return success_response(data=[])

    assignments = result_rows(
        db.table("assignments")
        .select("*")
        .in_("course_id", [e["course_id"] for e in enrollments])
        .order("due_date", desc=False)
        .execute()
    )

    submissions = result_rows(
        db.table("assignment_submissions")
        .select("*")
        .eq("student_id", user_id)
        .execute()
    )
    sub_map = {s["assignment_id"]: s for s in submissions}

    result = []
    for a in assignments:
        a["submission"] = sub_map.get(a["id"])
        result.append(a)

    return success_response(data=result)


@router.post("/{assignment_id}/submit")
async def submit_assignment(
    assignment_id: str,
    body: AssignmentSubmit,
    user: dict = Depends(require_role(["student"])),
):
    db = get_supabase()
    user_id = user["user_id"]
    assignment = _get_assignment(assignment_id)
    course = get_course(assignment["course_id"])
    if not is_enrolled(user_id, course["id"]):
        raise HTTPException(status_code=403, detail="Not enrolled in this course")

    data = {
        "assignment_id": assignment_id,
        "student_id": user_id,
        "content": body.content,
        "file_url": body.file_url,
        "status": body.status,
    }
    if body.status == "submitted":
        data["submitted_at"] = datetime.now(timezone.utc).isoformat()

    # Check if a submission already exists to decide between insert/update
    existing = result_one(
        db.table("assignment_submissions")
        .select("id, status")
        .eq("assignment_id", assignment_id)
        .eq("student_id", user_id)
        .maybe_single()
        .execute()
    )
    if existing and existing["status"] == "graded":
        raise HTTPException(status_code=409, detail="Submission has already been graded")

    if existing:
        result = db.table("assignment_submissions").update(data).eq("id", existing["id"]).execute()
    else:
        result = db.table("assignment_submissions").insert(data).execute()

    submission = result_one(result)
    if submission and body.status == "submitted" and course.get("instructor_id"):
        write_notifications([
            submission_notification(
                course["instructor_id"], submission, assignment, course, user.get("name") or "A student",
            )
        ])
    return success_response(data=submission, message="Assignment submitted")


def _get_assignment(assignment_id: str) -> dict:
    db = get_supabase()
    assignment = result_one(
        db.table("assignments")
        .select("id, title, due_date, course_id, max_points")
        .eq("id", assignment_id)
        .maybe_single()
        .execute()
    )
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return assignment
