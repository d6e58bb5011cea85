"""
Exam models - exams, questions, choices and assignments

Authoring writes these rows; the attempt engine only reads them.
"""
from sqlalchemy import (
    Column, Integer, String, Boolean, TIMESTAMP, ForeignKey, CheckConstraint, Index, text
)
from app.database import Base


class Exam(Base):
    """
    Exams table - a timed multiple-choice exam
    """
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True)
    title = Column(String(300), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    duration_minutes = Column(Integer, nullable=False, default=30)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def __repr__(self):
        return f"<Exam(id={self.id}, title={self.title}, duration={self.duration_minutes}m)>"


class ExamQuestion(Base):
    __tablename__ = "exam_questions"

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(1000), nullable=False)
    order = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ExamQuestion(id={self.id}, exam_id={self.exam_id}, order={self.order})>"


class ExamChoice(Base):
    """
    Choices table - text and/or image, any number may be flagged correct
    """
    __tablename__ = "exam_choices"

    id = Column(Integer, primary_key=True)
    question_id = Column(
        Integer, ForeignKey("exam_questions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    text = Column(String(400), nullable=True)
    image_url = Column(String(600), nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)

    def __repr__(self):
        return f"<ExamChoice(id={self.id}, question_id={self.question_id}, correct={self.is_correct})>"


class ExamAssignment(Base):
    """
    Exam assignments - target is exactly one of user or project
    """
    __tablename__ = "exam_assignments"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NOT NULL AND project_id IS NULL) OR "
            "(user_id IS NULL AND project_id IS NOT NULL)",
            name="ck_exam_assignments_target"
        ),
        Index(
            "ux_exam_assignments_exam_user",
            "exam_id", "user_id",
            unique=True,
            postgresql_where=text("user_id IS NOT NULL"),
            sqlite_where=text("user_id IS NOT NULL")
        ),
    )

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def __repr__(self):
        return (
            f"<ExamAssignment(exam_id={self.exam_id}, user_id={self.user_id}, "
            f"project_id={self.project_id})>"
        )
