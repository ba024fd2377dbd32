from pydantic import BaseModel
from typing import Literal


class EnrollmentRequest(BaseModel):
    course_id: str


class EnrollmentAction(BaseModel):
    action: Literal["approve", "decline"]
