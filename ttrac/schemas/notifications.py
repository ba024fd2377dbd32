"""
Pydantic schemas for the notification center.
"""

from pydantic import BaseModel
from typing import Literal, Optional

NotificationType = Literal["assignment", "grade", "announcement", "quiz", "enrollment"]


class NotificationCreate(BaseModel):
    user_id: Optional[str] = None  # defaults to the caller
    title: str
    message: str
    type: NotificationType = "announcement"
    origin: Literal["system", "seed", "test"] = "system"
    course_id: Optional[str] = None


class CourseAnnouncement(BaseModel):
    course_id: str
    title: str
    message: str


class CleanupRequest(BaseModel):
    dry_run: bool = False
