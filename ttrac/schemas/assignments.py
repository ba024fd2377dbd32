from pydantic import BaseModel
from typing import Literal, Optional


class AssignmentCreate(BaseModel):
    course_id: str
    title: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    max_points: int = 100


class AssignmentSubmit(BaseModel):
    content: Optional[str] = None
    file_url: Optional[str] = None
    status: Literal["draft", "submitted"] = "submitted"


class SubmissionGrade(BaseModel):
    grade: float
    feedback: Optional[str] = None
