"""
Administrative attempt control
Closed-attempt listing, answer review and score override
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from app.exceptions import ConflictError, NotFoundError
from app.models import Exam, ExamAttempt, ExamAttemptAnswer, ExamChoice, ExamQuestion, User
from app.services.scoring_service import ScoringService, scoring_service
from app.utils.clock import as_utc
from app.utils.notifier import ChangeNotifier, change_notifier

logger = logging.getLogger(__name__)


class AdminAttemptService:
    """Admin-side views and overrides layered on top of attempts"""

    def __init__(self, scorer: ScoringService = None, notifier: ChangeNotifier = None):
        self.scorer = scorer or scoring_service
        self.notifier = notifier or change_notifier

    def list_attempts(
        self,
        db: Session,
        exam_id: Optional[int] = None,
        search: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Submitted attempts, newest first

        Args:
            db: Database session
            exam_id: Optional exam filter
            search: Matches exam title, user email or full name (case-insensitive)
        """
        query = db.query(ExamAttempt, Exam.title, User).join(
            Exam, Exam.id == ExamAttempt.exam_id
        ).join(
            User, User.id == ExamAttempt.user_id
        ).filter(ExamAttempt.submitted_at.isnot(None))

        if exam_id is not None:
            query = query.filter(ExamAttempt.exam_id == exam_id)

        if search and search.strip():
            term = search.strip().lower()
            full_name = func.lower(User.name + " " + User.surname)
            query = query.filter(or_(
                func.lower(Exam.title).contains(term),
                func.lower(User.email).contains(term),
                full_name.contains(term)
            ))

        rows = query.order_by(ExamAttempt.submitted_at.desc(), ExamAttempt.id.desc()).all()

        return [
            {
                "id": attempt.id,
                "exam_id": attempt.exam_id,
                "exam_title": title,
                "user": user.display_name,
                "started_at": as_utc(attempt.started_at),
                "submitted_at": as_utc(attempt.submitted_at),
                "score": attempt.score,
                "is_passed": attempt.is_passed,
                "auto_submitted": attempt.auto_submitted,
                "note": attempt.note
            }
            for attempt, title, user in rows
        ]

    def review_attempt(self, db: Session, attempt_id: int) -> Dict[str, Any]:
        """
        Questions in authoring order with the user's picks and correctness
        """
        row = db.query(ExamAttempt, Exam.title, User).join(
            Exam, Exam.id == ExamAttempt.exam_id
        ).join(
            User, User.id == ExamAttempt.user_id
        ).filter(ExamAttempt.id == attempt_id).first()

        if not row:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")

        attempt, title, user = row

        questions = db.query(ExamQuestion).filter(
            ExamQuestion.exam_id == attempt.exam_id
        ).order_by(ExamQuestion.order, ExamQuestion.id).all()

        choices_by_question = {q.id: [] for q in questions}
        if questions:
            for choice in db.query(ExamChoice).filter(
                ExamChoice.question_id.in_(list(choices_by_question))
            ).order_by(ExamChoice.id).all():
                choices_by_question[choice.question_id].append(choice)

        picked = {
            question_id: choice_id
            for question_id, choice_id in db.query(
                ExamAttemptAnswer.question_id, ExamAttemptAnswer.choice_id
            ).filter(ExamAttemptAnswer.attempt_id == attempt.id).all()
        }

        review_rows = []
        for question in questions:
            choices = choices_by_question[question.id]
            correct_ids = {c.id for c in choices if c.is_correct}
            selected = picked.get(question.id)
            review_rows.append({
                "question_id": question.id,
                "order": question.order,
                "text": question.text,
                "choices": [
                    {"id": c.id, "text": c.text, "image_url": c.image_url, "is_correct": c.is_correct}
                    for c in choices
                ],
                "selected_choice_id": selected,
                "is_correct": self.scorer.is_correct(correct_ids, selected)
            })

        return {
            "attempt_id": attempt.id,
            "exam_title": title,
            "user": user.display_name,
            "started_at": as_utc(attempt.started_at),
            "submitted_at": as_utc(attempt.submitted_at),
            "score": attempt.score,
            "is_passed": attempt.is_passed,
            "note": attempt.note,
            "questions": review_rows
        }

    def override_attempt(
        self,
        db: Session,
        attempt_id: int,
        score: float,
        is_passed: Optional[bool] = None,
        note: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Overwrite score, verdict and note of a submitted attempt, bypassing the scorer

        The score is kept to one decimal; the verdict defaults to the rounded
        score measured against the pass threshold.
        """
        attempt = db.query(ExamAttempt).filter(ExamAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        if attempt.submitted_at is None:
            raise ConflictError("Only submitted attempts can be overridden", code="ATTEMPT_OPEN")

        score = round(score, 1)
        attempt.score = score
        attempt.is_passed = self.scorer.is_passing(score) if is_passed is None else is_passed
        attempt.note = note
        db.commit()
        db.refresh(attempt)

        logger.info(
            f"Attempt overridden: id={attempt.id}, score={attempt.score}, passed={attempt.is_passed}"
        )

        self.notifier.publish("attempt_overridden", {
            "attempt_id": attempt.id,
            "exam_id": attempt.exam_id,
            "user_id": attempt.user_id,
            "score": attempt.score,
            "is_passed": attempt.is_passed
        })

        return {
            "attempt_id": attempt.id,
            "score": attempt.score,
            "is_passed": attempt.is_passed,
            "note": attempt.note
        }


# Global instance
admin_attempt_service = AdminAttemptService()
