"""
Admin attempt control API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from app.database import get_db
from app.schemas.admin import AttemptListItem, AttemptReview, OverrideRequest, OverrideResponse
from app.services.admin_service import admin_attempt_service

router = APIRouter(prefix="/api/admin/exams", tags=["admin"])
logger = logging.getLogger(__name__)


@router.get("/attempts", response_model=List[AttemptListItem])
def list_attempts(
    exam_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Submitted attempts, newest first"""
    try:
        return admin_attempt_service.list_attempts(db, exam_id, search)
    except SQLAlchemyError as e:
        logger.error(f"Failed to list attempts: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to list attempts")


@router.get("/attempts/{attempt_id}/review", response_model=AttemptReview)
def review_attempt(attempt_id: int, db: Session = Depends(get_db)):
    """
    Review an attempt

    Returns every question with all choices, the correct flags,
    the user's selection and whether it was correct.
    """
    try:
        return admin_attempt_service.review_attempt(db, attempt_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to review attempt {attempt_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to review attempt")


@router.post("/attempts/{attempt_id}/override", response_model=OverrideResponse)
def override_attempt(attempt_id: int, override: OverrideRequest, db: Session = Depends(get_db)):
    """
    Manually set score, verdict and note of a submitted attempt

    409 while the attempt is still open.
    """
    try:
        return admin_attempt_service.override_attempt(
            db, attempt_id, override.score, override.is_passed, override.note
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to override attempt {attempt_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to override attempt")
