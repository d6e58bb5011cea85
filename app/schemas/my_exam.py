"""
Pydantic schemas for the user's exam list views
"""
from pydantic import BaseModel
from typing import Optional


class ExamNavItem(BaseModel):
    """Exam entry for navigation menus"""
    exam_id: int
    title: str
    status: str  # not_started, in_progress, completed
    attempt_id: Optional[int] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None


class ExamListItem(ExamNavItem):
    """Exam entry with duration and size"""
    duration_minutes: int
    question_count: int
