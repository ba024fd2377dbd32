from ttrac.services import generators


def _seed_activity(db):
    db.seed("assignments",
            {"id": "as-1", "title": "Programming Assignment 1", "course_id": "course-1",
             "due_date": "2026-02-01T23:59:00+00:00", "max_points": 100},
            {"id": "as-2", "title": "Lab Report 3", "course_id": "course-1",
             "due_date": "2026-02-01T06:00:00+00:00", "max_points": 50})
    db.seed("assignment_submissions",
            {"id": "sub-1", "assignment_id": "as-1", "student_id": "stu-1", "status": "submitted",
             "submitted_at": "2026-01-30T12:00:00+00:00"},
            {"id": "sub-2", "assignment_id": "as-2", "student_id": "stu-1", "status": "submitted",
             "submitted_at": "2026-02-03T06:00:00+00:00"},
            {"id": "sub-3", "assignment_id": "as-1", "student_id": "stu-2", "status": "draft",
             "submitted_at": None})
    db.seed("quizzes", {"id": "quiz-1", "title": "Quiz 2", "course_id": "course-1"})
    db.seed("quiz_attempts",
            {"id": "att-1", "quiz_id": "quiz-1", "student_id": "stu-1", "status": "graded", "score": 85,
             "completed_at": "2026-01-20T10:00:00+00:00"},
            {"id": "att-2", "quiz_id": "quiz-1", "student_id": "stu-2", "status": "in_progress", "score": None,
             "completed_at": None})


def test_generates_one_notification_per_activity(people):
    _seed_activity(people)
    counts = generators.generate_faculty_notifications("fac-1")
    assert counts == {"submissions": 2, "quiz_attempts": 1, "enrollments": 1}

    notes = people.rows("notifications", user_id="fac-1")
    titles = sorted(n["title"] for n in notes)
    assert titles == ["Assignment Submitted", "Late Assignment Submission", "New Enrollment Request", "Quiz Completed"]
    late = next(n for n in notes if n["title"] == "Late Assignment Submission")
    assert late["message"] == 'Ada Lovelace submitted "Lab Report 3" in Computer Science 101 2 days late'
    assert late["source_event_id"] == "submission:sub-2"
    assert all(n["origin"] == "system" for n in notes)
    quiz = next(n for n in notes if n["type"] == "quiz")
    assert "(Score: 85)" in quiz["message"]


def test_rerun_does_not_duplicate(people):
    _seed_activity(people)
    generators.generate_faculty_notifications("fac-1")
    again = generators.generate_faculty_notifications("fac-1")
    assert again == {"submissions": 0, "quiz_attempts": 0, "enrollments": 0}
    assert len(people.rows("notifications", user_id="fac-1")) == 4


def test_dry_run_writes_nothing(people):
    _seed_activity(people)
    counts = generators.generate_faculty_notifications("fac-1", dry_run=True)
    assert sum(counts.values()) == 4
    assert people.rows("notifications") == []


def test_faculty_without_courses(db):
    assert generators.generate_faculty_notifications("nobody") == {
        "submissions": 0, "quiz_attempts": 0, "enrollments": 0,
    }
    assert ("notifications", "upsert") not in db.calls


def test_enrollment_rerequest_gets_a_new_key(people):
    course = {"id": "course-1", "title": "Computer Science 101"}
    first = generators.enrollment_notification("fac-1", {"id": "enr-2", "created_at": "t0", "updated_at": "t0"}, course, "Alan")
    again = generators.enrollment_notification("fac-1", {"id": "enr-2", "created_at": "t0", "updated_at": "t5"}, course, "Alan")
    assert first["source_event_id"] != again["source_event_id"]
    assert generators.write_notifications([first]) == 1
    assert generators.write_notifications([first]) == 0
    assert generators.write_notifications([again]) == 1
