"""
User-facing exam attempt API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app.database import get_db
from app.schemas.my_exam import ExamNavItem, ExamListItem
from app.schemas.attempt import (
    StartAttemptResponse,
    AttemptDetail,
    SaveAnswerRequest,
    SaveAnswerResponse,
    SubmitAttemptResponse,
)
from app.services.attempt_service import attempt_service
from app.services.my_exams_service import my_exams_service

router = APIRouter(prefix="/api/my-exams", tags=["my-exams"])
logger = logging.getLogger(__name__)


def _storage_failure(db: Session, action: str, exc: Exception) -> HTTPException:
    db.rollback()
    logger.error(f"Failed to {action}: {str(exc)}")
    return HTTPException(status_code=500, detail=f"Failed to {action}")


@router.get("/nav", response_model=List[ExamNavItem])
def get_nav(user_id: int = Query(...), db: Session = Depends(get_db)):
    """
    Assigned exams with their current status

    Expired open attempts are closed before statuses are computed.
    """
    try:
        return my_exams_service.get_nav(db, user_id)
    except SQLAlchemyError as e:
        raise _storage_failure(db, "load exams", e)


@router.get("/list", response_model=List[ExamListItem])
def list_exams(
    user_id: int = Query(...),
    search: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """
    Assigned exams with duration, question count and status

    - Optional case-insensitive title search
    - Expired open attempts are closed first
    """
    try:
        return my_exams_service.get_list(db, user_id, search)
    except SQLAlchemyError as e:
        raise _storage_failure(db, "load exams", e)


@router.get("/exam/{exam_id}", response_model=ExamListItem)
def get_exam(exam_id: int, user_id: int = Query(...), db: Session = Depends(get_db)):
    """Status of one assigned exam"""
    try:
        return my_exams_service.get_exam_status(db, user_id, exam_id)
    except SQLAlchemyError as e:
        raise _storage_failure(db, "load exam", e)


@router.post("/start/{exam_id}", response_model=StartAttemptResponse)
def start_exam(exam_id: int, user_id: int = Query(...), db: Session = Depends(get_db)):
    """
    Start an exam or resume the open attempt

    Refusals:
    - 404 unknown exam, 403 not assigned
    - 412 EXAM_ALREADY_PASSED
    - 412 TRAININGS_NOT_COMPLETED (with incomplete training ids)
    """
    try:
        return attempt_service.start_attempt(db, user_id, exam_id)
    except SQLAlchemyError as e:
        raise _storage_failure(db, "start exam", e)


@router.get("/attempt/{attempt_id}", response_model=AttemptDetail)
def get_attempt(attempt_id: int, user_id: int = Query(...), db: Session = Depends(get_db)):
    """
    Attempt detail with questions and choices in the attempt's order

    Closes the attempt first if its window has elapsed.
    """
    try:
        return attempt_service.get_attempt_detail(db, user_id, attempt_id)
    except SQLAlchemyError as e:
        raise _storage_failure(db, "load attempt", e)


@router.post("/attempt/{attempt_id}/answer", response_model=SaveAnswerResponse)
def save_answer(
    attempt_id: int,
    answer: SaveAnswerRequest,
    user_id: int = Query(...),
    db: Session = Depends(get_db)
):
    """
    Save one answer

    409 when the attempt is expired or already submitted.
    """
    try:
        return attempt_service.save_answer(
            db, user_id, attempt_id, answer.question_id, answer.choice_id
        )
    except SQLAlchemyError as e:
        raise _storage_failure(db, "save answer", e)


@router.post("/attempt/{attempt_id}/submit", response_model=SubmitAttemptResponse)
def submit_attempt(attempt_id: int, user_id: int = Query(...), db: Session = Depends(get_db)):
    """
    Submit and score an attempt

    Idempotent; a late submit is recorded at the window end.
    """
    try:
        return attempt_service.submit_attempt(db, user_id, attempt_id)
    except SQLAlchemyError as e:
        raise _storage_failure(db, "submit attempt", e)
