"""
ExamAttempt model - one user's run at an exam, plus its recorded answers
"""
from sqlalchemy import (
    Column, Integer, Float, Boolean, String, JSON, TIMESTAMP, ForeignKey, Index,
    UniqueConstraint, text
)
from sqlalchemy.dialects.postgresql import JSONB
from app.database import Base


class ExamAttempt(Base):
    """
    Exam attempts table - open while submitted_at is NULL

    The partial unique index keeps at most one open attempt per (exam, user);
    closed attempts (retakes) are unlimited.
    """
    __tablename__ = "exam_attempts"
    __table_args__ = (
        Index(
            "ux_exam_attempts_open",
            "exam_id", "user_id",
            unique=True,
            postgresql_where=text("submitted_at IS NULL"),
            sqlite_where=text("submitted_at IS NULL")
        ),
    )

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    started_at = Column(TIMESTAMP(timezone=True), nullable=False)
    submitted_at = Column(TIMESTAMP(timezone=True), nullable=True)
    duration_used_sec = Column(Integer, nullable=True)
    score = Column(Float, nullable=True)  # 0.0 - 100.0, one decimal
    is_passed = Column(Boolean, nullable=True)
    auto_submitted = Column(Boolean, nullable=True)
    note = Column(String(600), nullable=True)
    shuffle_state = Column(
        JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql"), nullable=True
    )

    @property
    def is_open(self) -> bool:
        return self.submitted_at is None

    def __repr__(self):
        return (
            f"<ExamAttempt(id={self.id}, user_id={self.user_id}, exam_id={self.exam_id}, "
            f"open={self.is_open}, score={self.score})>"
        )


class ExamAttemptAnswer(Base):
    """
    Attempt answers - upserted per (attempt, question), choice_id NULL = unanswered
    """
    __tablename__ = "exam_attempt_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="ux_exam_attempt_answers_question"),
    )

    id = Column(Integer, primary_key=True)
    attempt_id = Column(
        Integer, ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(Integer, ForeignKey("exam_questions.id", ondelete="CASCADE"), nullable=False)
    choice_id = Column(Integer, ForeignKey("exam_choices.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)

    def __repr__(self):
        return (
            f"<ExamAttemptAnswer(attempt_id={self.attempt_id}, question_id={self.question_id}, "
            f"choice_id={self.choice_id})>"
        )
