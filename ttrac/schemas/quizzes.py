from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


class AttemptSubmit(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class QuestionGrade(BaseModel):
    question_id: str
    points_awarded: float
    feedback: Optional[str] = None
