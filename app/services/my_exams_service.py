"""
My-exams read model
Per-user exam status views (not_started / in_progress / completed)
"""
from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.models import Exam, ExamAttempt, ExamQuestion
from app.services.access_service import AccessService, access_service
from app.services.attempt_service import AttemptService, attempt_service

STATUS_NOT_STARTED = "not_started"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


class MyExamsService:
    """
    Builds the user's exam list views

    Every view sweeps the user's expired open attempts first so the
    statuses it reports are current.
    """

    def __init__(self, access: AccessService = None, attempts: AttemptService = None):
        self.access = access or access_service
        self.attempts = attempts or attempt_service

    def _status_by_exam(self, db: Session, user_id: int, exam_ids: List[int]) -> Dict[int, Dict[str, Any]]:
        """
        Current status of each exam for the user

        An open attempt means in_progress; otherwise the most recently
        submitted attempt means completed.
        """
        statuses: Dict[int, Dict[str, Any]] = {
            exam_id: {"status": STATUS_NOT_STARTED, "attempt_id": None, "score": None, "is_passed": None}
            for exam_id in exam_ids
        }
        if not exam_ids:
            return statuses

        submitted = db.query(
            ExamAttempt.exam_id, ExamAttempt.id, ExamAttempt.score, ExamAttempt.is_passed
        ).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.exam_id.in_(exam_ids),
            ExamAttempt.submitted_at.isnot(None)
        ).order_by(ExamAttempt.submitted_at.asc(), ExamAttempt.id.asc()).all()

        # Ascending order: the latest submission overwrites earlier ones
        for exam_id, attempt_id, score, is_passed in submitted:
            statuses[exam_id] = {
                "status": STATUS_COMPLETED,
                "attempt_id": attempt_id,
                "score": score,
                "is_passed": is_passed
            }

        open_attempts = db.query(ExamAttempt.exam_id, ExamAttempt.id).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.exam_id.in_(exam_ids),
            ExamAttempt.submitted_at.is_(None)
        ).all()

        for exam_id, attempt_id in open_attempts:
            statuses[exam_id] = {
                "status": STATUS_IN_PROGRESS,
                "attempt_id": attempt_id,
                "score": None,
                "is_passed": None
            }

        return statuses

    def _question_counts(self, db: Session, exam_ids: List[int]) -> Dict[int, int]:
        if not exam_ids:
            return {}
        rows = db.query(ExamQuestion.exam_id, func.count(ExamQuestion.id)).filter(
            ExamQuestion.exam_id.in_(exam_ids)
        ).group_by(ExamQuestion.exam_id).all()
        return {exam_id: count for exam_id, count in rows}

    def get_nav(self, db: Session, user_id: int) -> List[Dict[str, Any]]:
        """Compact status list for navigation menus"""
        exam_ids = self.access.get_assigned_exam_ids(db, user_id)
        if not exam_ids:
            return []

        self.attempts.sweep_expired(db, user_id, exam_ids)

        exams = db.query(Exam.id, Exam.title).filter(Exam.id.in_(exam_ids)).order_by(Exam.title).all()
        statuses = self._status_by_exam(db, user_id, exam_ids)

        return [
            {"exam_id": exam_id, "title": title, **statuses[exam_id]}
            for exam_id, title in exams
        ]

    def get_list(self, db: Session, user_id: int, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Assigned exams with duration, question count and status

        Args:
            db: Database session
            user_id: User id
            search: Optional case-insensitive title filter
        """
        exam_ids = self.access.get_assigned_exam_ids(db, user_id)
        if not exam_ids:
            return []

        self.attempts.sweep_expired(db, user_id, exam_ids)

        query = db.query(Exam).filter(Exam.id.in_(exam_ids))
        if search and search.strip():
            query = query.filter(func.lower(Exam.title).contains(search.strip().lower()))

        exams = query.order_by(Exam.title).all()
        ids = [exam.id for exam in exams]
        if not ids:
            return []

        counts = self._question_counts(db, ids)
        statuses = self._status_by_exam(db, user_id, ids)

        return [self._row(exam, counts.get(exam.id, 0), statuses[exam.id]) for exam in exams]

    def get_exam_status(self, db: Session, user_id: int, exam_id: int) -> Dict[str, Any]:
        """Status of a single exam (NotFound / Forbidden as for start)"""
        exam = self.access.get_accessible_exam(db, user_id, exam_id)

        self.attempts.sweep_expired(db, user_id, [exam_id])

        counts = self._question_counts(db, [exam_id])
        statuses = self._status_by_exam(db, user_id, [exam_id])

        return self._row(exam, counts.get(exam_id, 0), statuses[exam_id])

    def _row(self, exam: Exam, question_count: int, status: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "exam_id": exam.id,
            "title": exam.title,
            "duration_minutes": exam.duration_minutes,
            "question_count": question_count,
            **status
        }


# Global instance
my_exams_service = MyExamsService()
