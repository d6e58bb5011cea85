"""
Pydantic schemas for admin attempt control
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class AttemptListItem(BaseModel):
    """Submitted attempt row"""
    id: int
    exam_id: int
    exam_title: str
    user: str
    started_at: datetime
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    auto_submitted: Optional[bool] = None
    note: Optional[str] = None


class ReviewChoice(BaseModel):
    id: int
    text: Optional[str] = None
    image_url: Optional[str] = None
    is_correct: bool


class ReviewQuestion(BaseModel):
    """Question with the user's pick and its correctness"""
    question_id: int
    order: int
    text: str
    choices: List[ReviewChoice]
    selected_choice_id: Optional[int] = None
    is_correct: bool


class AttemptReview(BaseModel):
    attempt_id: int
    exam_title: str
    user: str
    started_at: datetime
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    note: Optional[str] = None
    questions: List[ReviewQuestion]


class OverrideRequest(BaseModel):
    """Manual score override; is_passed defaults to score >= pass threshold"""
    score: float = Field(..., ge=0.0, le=100.0, description="New score (0-100)")
    is_passed: Optional[bool] = None
    note: Optional[str] = Field(None, max_length=600)


class OverrideResponse(BaseModel):
    attempt_id: int
    score: float
    is_passed: bool
    note: Optional[str] = None
