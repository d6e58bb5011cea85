"""
Exam attempt lifecycle
Start, lazy expiry, answer saving, submission and finalization

An attempt is open while submitted_at is NULL and closed afterwards.
Expiry is enforced lazily: every operation touching an attempt first
closes it if its window has elapsed, stamping the window end (not the
time of the check) as submitted_at.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.exceptions import ConflictError, ForbiddenError, NotFoundError, PreconditionFailedError, ValidationError
from app.models import Exam, ExamAttempt, ExamAttemptAnswer, ExamChoice, ExamQuestion
from app.services.access_service import AccessService, access_service
from app.services.scoring_service import ScoringService, scoring_service
from app.services.shuffle_service import ShuffleService, shuffle_service
from app.services.training_gate import TrainingGate, training_gate
from app.utils.clock import as_utc, utcnow
from app.utils.notifier import ChangeNotifier, change_notifier

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "Exam time is over. Your answers have been saved."


class AttemptService:
    """
    Owns the state transitions of exam attempts

    Collaborators are injected so tests can swap the training gate,
    notifier and clock.
    """

    def __init__(
        self,
        access: AccessService = None,
        gate: TrainingGate = None,
        shuffler: ShuffleService = None,
        scorer: ScoringService = None,
        notifier: ChangeNotifier = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.access = access or access_service
        self.gate = gate or training_gate
        self.shuffler = shuffler or shuffle_service
        self.scorer = scorer or scoring_service
        self.notifier = notifier or change_notifier
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def window_end(attempt: ExamAttempt, exam: Exam) -> datetime:
        return as_utc(attempt.started_at) + timedelta(minutes=exam.duration_minutes)

    def _find_open_attempt(self, db: Session, user_id: int, exam_id: int) -> Optional[ExamAttempt]:
        return db.query(ExamAttempt).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.submitted_at.is_(None)
        ).first()

    def _load_owned_attempt(self, db: Session, user_id: int, attempt_id: int):
        attempt = db.query(ExamAttempt).filter(ExamAttempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")
        if attempt.user_id != user_id:
            raise ForbiddenError("This attempt belongs to another user", code="ATTEMPT_NOT_OWNED")

        exam = db.query(Exam).filter(Exam.id == attempt.exam_id).first()
        if not exam:
            raise NotFoundError("Exam not found", code="EXAM_NOT_FOUND")

        return attempt, exam

    def _lock_attempt(self, db: Session, attempt_id: int) -> Optional[ExamAttempt]:
        # FOR UPDATE is a no-op on SQLite
        return db.query(ExamAttempt).filter(
            ExamAttempt.id == attempt_id
        ).with_for_update().populate_existing().first()

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def finalize_attempt(
        self,
        db: Session,
        attempt_id: int,
        submitted_at: datetime,
        auto: bool
    ) -> ExamAttempt:
        """
        Close an open attempt: score it, stamp it and apply the failure gate

        The close is written with a "still open" condition; if another
        request finalized the attempt first nothing is changed and the
        stored result is returned. On a failing verdict the training reset
        is applied in the same transaction.

        Args:
            db: Database session
            attempt_id: Attempt to close
            submitted_at: Timestamp to record (window end for expiry closes)
            auto: Whether the close comes from window expiry

        Returns:
            The attempt as stored after the operation
        """
        attempt = self._lock_attempt(db, attempt_id)
        if not attempt:
            raise NotFoundError("Attempt not found", code="ATTEMPT_NOT_FOUND")

        if attempt.submitted_at is not None:
            db.rollback()
            return attempt

        answer_key = self.scorer.load_answer_key(db, attempt.exam_id)
        answers = {
            question_id: choice_id
            for question_id, choice_id in db.query(
                ExamAttemptAnswer.question_id, ExamAttemptAnswer.choice_id
            ).filter(ExamAttemptAnswer.attempt_id == attempt_id).all()
        }

        score, is_passed, correct_count = self.scorer.grade(answer_key, answers)
        duration_used = int(max(0, (submitted_at - as_utc(attempt.started_at)).total_seconds()))

        try:
            updated = db.query(ExamAttempt).filter(
                ExamAttempt.id == attempt_id,
                ExamAttempt.submitted_at.is_(None)
            ).update({
                ExamAttempt.submitted_at: submitted_at,
                ExamAttempt.duration_used_sec: duration_used,
                ExamAttempt.score: score,
                ExamAttempt.is_passed: is_passed,
                ExamAttempt.auto_submitted: auto
            }, synchronize_session=False)

            if updated != 1:
                db.rollback()
                logger.warning(f"Attempt {attempt_id} was finalized concurrently; keeping stored result")
                db.refresh(attempt)
                return attempt

            # Close and reset land together or not at all
            if not is_passed:
                self.gate.reset_assigned_trainings(db, attempt.user_id, submitted_at)

            db.commit()
        except Exception:
            db.rollback()
            logger.error(f"Failed to finalize attempt {attempt_id}; left open")
            raise

        db.refresh(attempt)

        logger.info(
            f"Attempt finalized: id={attempt_id}, user={attempt.user_id}, exam={attempt.exam_id}, "
            f"score={score}, passed={is_passed}, auto={auto}, correct={correct_count}"
        )

        self.notifier.publish("attempt_finalized", {
            "attempt_id": attempt.id,
            "exam_id": attempt.exam_id,
            "user_id": attempt.user_id,
            "score": score,
            "is_passed": is_passed,
            "auto_submitted": auto
        })

        return attempt

    def expire_if_due(self, db: Session, attempt: ExamAttempt, exam: Exam, now: datetime) -> bool:
        """
        Lazy expiry check run before any operation on an attempt

        Returns:
            True if the attempt was open and its window has elapsed, in
            which case it is now closed at its window end
        """
        if attempt.submitted_at is not None:
            return False

        ends_at = self.window_end(attempt, exam)
        if now < ends_at:
            return False

        self.finalize_attempt(db, attempt.id, submitted_at=ends_at, auto=True)
        return True

    def sweep_expired(
        self,
        db: Session,
        user_id: int,
        exam_ids: Iterable[int],
        now: Optional[datetime] = None
    ) -> int:
        """
        Close every expired open attempt of a user for the given exams

        Used by list views so expired attempts are closed without the user
        opening them one by one.
        """
        exam_ids = list(exam_ids)
        if not exam_ids:
            return 0

        now = now or self.clock()

        rows = db.query(ExamAttempt.id, ExamAttempt.started_at, Exam.duration_minutes).join(
            Exam, Exam.id == ExamAttempt.exam_id
        ).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.exam_id.in_(exam_ids),
            ExamAttempt.submitted_at.is_(None)
        ).all()

        closed = 0
        for attempt_id, started_at, duration_minutes in rows:
            ends_at = as_utc(started_at) + timedelta(minutes=duration_minutes)
            if now >= ends_at:
                self.finalize_attempt(db, attempt_id, submitted_at=ends_at, auto=True)
                closed += 1

        if closed:
            logger.info(f"Swept {closed} expired attempt(s) for user {user_id}")

        return closed

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def start_attempt(self, db: Session, user_id: int, exam_id: int) -> Dict[str, Any]:
        """
        Start an exam, or return the user's open attempt for it

        Raises:
            NotFoundError: unknown exam
            ForbiddenError: exam not assigned to the user
            PreconditionFailedError: exam already passed, or assigned
                trainings incomplete (ids included in the error)
        """
        now = self.clock()
        exam = self.access.get_accessible_exam(db, user_id, exam_id)

        passed = db.query(ExamAttempt.id).filter(
            ExamAttempt.user_id == user_id,
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.submitted_at.isnot(None),
            ExamAttempt.is_passed.is_(True)
        ).first()
        if passed:
            raise PreconditionFailedError(
                "You have already passed this exam",
                code="EXAM_ALREADY_PASSED",
                extra={"attempt_id": passed[0]}
            )

        incomplete = self.gate.get_incomplete_training_ids(db, user_id, now)
        if incomplete:
            raise PreconditionFailedError(
                "All trainings assigned to you must be completed before taking this exam",
                code="TRAININGS_NOT_COMPLETED",
                extra={
                    "incomplete_training_count": len(incomplete),
                    "incomplete_training_ids": incomplete
                }
            )

        attempt = self._find_open_attempt(db, user_id, exam_id)
        created = False

        if attempt is not None:
            if self.expire_if_due(db, attempt, exam, now):
                db.refresh(attempt)
                return self._start_payload(attempt, exam, now, auto_submitted=True)
        else:
            attempt = ExamAttempt(exam_id=exam_id, user_id=user_id, started_at=now)
            db.add(attempt)
            try:
                db.commit()
                created = True
            except IntegrityError:
                db.rollback()
                attempt = self._find_open_attempt(db, user_id, exam_id)
                if attempt is None:
                    raise
                logger.warning(
                    f"Concurrent start for user={user_id}, exam={exam_id}; returning attempt {attempt.id}"
                )

        # Order is fixed as soon as the attempt exists
        self.shuffler.ensure_shuffle(db, attempt)

        if created:
            logger.info(f"Attempt started: id={attempt.id}, user={user_id}, exam={exam_id}")
            self.notifier.publish("attempt_started", {
                "attempt_id": attempt.id,
                "exam_id": exam_id,
                "user_id": user_id
            })

        return self._start_payload(attempt, exam, now, auto_submitted=False)

    def _start_payload(self, attempt: ExamAttempt, exam: Exam, now: datetime, auto_submitted: bool) -> Dict[str, Any]:
        return {
            "attempt_id": attempt.id,
            "exam_id": exam.id,
            "title": exam.title,
            "duration_minutes": exam.duration_minutes,
            "started_at": as_utc(attempt.started_at),
            "ends_at": self.window_end(attempt, exam),
            "server_now": now,
            "submitted_at": as_utc(attempt.submitted_at),
            "auto_submitted": auto_submitted,
            "message": EXPIRED_MESSAGE if auto_submitted else None
        }

    def get_attempt_detail(self, db: Session, user_id: int, attempt_id: int) -> Dict[str, Any]:
        """
        Attempt with questions and choices in its shuffled order

        Correctness flags are never included. Triggers the expiry check.
        """
        now = self.clock()
        attempt, exam = self._load_owned_attempt(db, user_id, attempt_id)

        auto = self.expire_if_due(db, attempt, exam, now)
        state = self.shuffler.ensure_shuffle(db, attempt)

        questions = db.query(ExamQuestion).filter(
            ExamQuestion.exam_id == exam.id
        ).order_by(ExamQuestion.order, ExamQuestion.id).all()

        choices_by_question = {q.id: [] for q in questions}
        if questions:
            for choice in db.query(ExamChoice).filter(
                ExamChoice.question_id.in_(list(choices_by_question))
            ).order_by(ExamChoice.id).all():
                choices_by_question[choice.question_id].append(choice)

        ordered = self.shuffler.order_questions(state, questions, choices_by_question)

        answers = db.query(ExamAttemptAnswer).filter(
            ExamAttemptAnswer.attempt_id == attempt.id
        ).order_by(ExamAttemptAnswer.question_id).all()

        ends_at = self.window_end(attempt, exam)
        remaining = 0
        if attempt.submitted_at is None:
            remaining = max(0, int((ends_at - now).total_seconds()))

        return {
            "attempt_id": attempt.id,
            "exam_id": exam.id,
            "title": exam.title,
            "duration_minutes": exam.duration_minutes,
            "started_at": as_utc(attempt.started_at),
            "ends_at": ends_at,
            "server_now": now,
            "remaining_seconds": remaining,
            "submitted_at": as_utc(attempt.submitted_at),
            "score": attempt.score,
            "is_passed": attempt.is_passed,
            "auto_submitted": bool(attempt.auto_submitted),
            "message": EXPIRED_MESSAGE if auto else None,
            "questions": [
                {
                    "id": question.id,
                    "order": position,
                    "text": question.text,
                    "choices": [
                        {"id": c.id, "text": c.text, "image_url": c.image_url}
                        for c in choices
                    ]
                }
                for position, (question, choices) in enumerate(ordered, start=1)
            ],
            "answers": [
                {"question_id": a.question_id, "choice_id": a.choice_id}
                for a in answers
            ]
        }

    def save_answer(
        self,
        db: Session,
        user_id: int,
        attempt_id: int,
        question_id: int,
        choice_id: Optional[int]
    ) -> Dict[str, Any]:
        """
        Record (or replace) the answer to one question of an open attempt

        choice_id None clears the selection.

        Raises:
            ConflictError: attempt expired or already submitted
            NotFoundError: unknown question or choice
            ValidationError: question outside the exam, or choice outside the question
        """
        now = self.clock()
        attempt, exam = self._load_owned_attempt(db, user_id, attempt_id)

        if self.expire_if_due(db, attempt, exam, now):
            raise ConflictError(EXPIRED_MESSAGE, code="ATTEMPT_EXPIRED")

        if attempt.submitted_at is not None:
            raise ConflictError("This exam attempt is already finished", code="ATTEMPT_CLOSED")

        question = db.query(ExamQuestion).filter(ExamQuestion.id == question_id).first()
        if not question:
            raise NotFoundError("Question not found", code="QUESTION_NOT_FOUND")
        if question.exam_id != exam.id:
            raise ValidationError("Question does not belong to this exam", code="INVALID_QUESTION")

        if choice_id is not None:
            choice = db.query(ExamChoice).filter(ExamChoice.id == choice_id).first()
            if not choice:
                raise NotFoundError("Choice not found", code="CHOICE_NOT_FOUND")
            if choice.question_id != question_id:
                raise ValidationError("Choice does not belong to this question", code="INVALID_CHOICE")

        try:
            self._write_answer(db, attempt_id, question_id, choice_id, now)
        except IntegrityError:
            # Another request inserted the row first; retry as an update
            db.rollback()
            self._write_answer(db, attempt_id, question_id, choice_id, now)

        return {
            "attempt_id": attempt_id,
            "question_id": question_id,
            "choice_id": choice_id,
            "saved_at": now
        }

    def _write_answer(
        self,
        db: Session,
        attempt_id: int,
        question_id: int,
        choice_id: Optional[int],
        now: datetime
    ) -> None:
        locked = self._lock_attempt(db, attempt_id)
        if locked is None or locked.submitted_at is not None:
            db.rollback()
            raise ConflictError("This exam attempt is already finished", code="ATTEMPT_CLOSED")

        row = db.query(ExamAttemptAnswer).filter(
            ExamAttemptAnswer.attempt_id == attempt_id,
            ExamAttemptAnswer.question_id == question_id
        ).first()

        if row is None:
            db.add(ExamAttemptAnswer(
                attempt_id=attempt_id,
                question_id=question_id,
                choice_id=choice_id,
                created_at=now,
                updated_at=now
            ))
        else:
            row.choice_id = choice_id
            row.updated_at = now

        db.commit()

    def submit_attempt(self, db: Session, user_id: int, attempt_id: int) -> Dict[str, Any]:
        """
        Explicitly submit an attempt

        Idempotent: an already-closed attempt returns its stored result.
        A submit arriving after the window is recorded at the window end.
        """
        now = self.clock()
        attempt, exam = self._load_owned_attempt(db, user_id, attempt_id)

        if attempt.submitted_at is None:
            ends_at = self.window_end(attempt, exam)
            auto = now >= ends_at
            attempt = self.finalize_attempt(
                db, attempt.id, submitted_at=ends_at if auto else now, auto=auto
            )

        auto_submitted = bool(attempt.auto_submitted)
        return {
            "attempt_id": attempt.id,
            "submitted_at": as_utc(attempt.submitted_at),
            "duration_used_sec": attempt.duration_used_sec,
            "score": attempt.score,
            "is_passed": attempt.is_passed,
            "auto_submitted": auto_submitted,
            "message": EXPIRED_MESSAGE if auto_submitted else None
        }


# Global instance
attempt_service = AttemptService()
