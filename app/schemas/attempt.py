"""
Pydantic schemas for exam attempt requests and responses
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class StartAttemptResponse(BaseModel):
    """Response after starting (or resuming) an exam"""
    attempt_id: int
    exam_id: int
    title: str
    duration_minutes: int
    started_at: datetime
    ends_at: datetime
    server_now: datetime
    submitted_at: Optional[datetime] = None
    auto_submitted: bool = False
    message: Optional[str] = None


class AttemptChoice(BaseModel):
    """Choice as shown to the user (no correctness flag)"""
    id: int
    text: Optional[str] = None
    image_url: Optional[str] = None


class AttemptQuestion(BaseModel):
    """Question in the attempt's shuffled order"""
    id: int
    order: int
    text: str
    choices: List[AttemptChoice]


class RecordedAnswer(BaseModel):
    question_id: int
    choice_id: Optional[int] = None


class AttemptDetail(BaseModel):
    """Full attempt view"""
    attempt_id: int
    exam_id: int
    title: str
    duration_minutes: int
    started_at: datetime
    ends_at: datetime
    server_now: datetime
    remaining_seconds: int
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    auto_submitted: bool = False
    message: Optional[str] = None
    questions: List[AttemptQuestion]
    answers: List[RecordedAnswer]


class SaveAnswerRequest(BaseModel):
    """Schema for saving one answer; choice_id null clears it"""
    question_id: int = Field(..., description="Question of the attempt's exam")
    choice_id: Optional[int] = Field(None, description="Choice of that question")


class SaveAnswerResponse(BaseModel):
    attempt_id: int
    question_id: int
    choice_id: Optional[int] = None
    saved_at: datetime


class SubmitAttemptResponse(BaseModel):
    """Final result of an attempt"""
    attempt_id: int
    submitted_at: datetime
    duration_used_sec: Optional[int] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    auto_submitted: bool = False
    message: Optional[str] = None
