"""
Training models - assignments and per-user completion progress

Owned by the training module; the exam engine reads assignments and
progress for the entry gate and resets progress when an attempt fails.
"""
from sqlalchemy import (
    Column, Integer, String, TIMESTAMP, ForeignKey, CheckConstraint, UniqueConstraint, text
)
from app.database import Base


class Training(Base):
    __tablename__ = "trainings"

    id = Column(Integer, primary_key=True)
    title = Column(String(300), nullable=False, default="")
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def __repr__(self):
        return f"<Training(id={self.id}, title={self.title})>"


class TrainingAssignment(Base):
    """
    Training assignments - target is exactly one of user or project;
    an assignment past its unpublish_at no longer counts
    """
    __tablename__ = "training_assignments"
    __table_args__ = (
        CheckConstraint(
            "(user_id IS NOT NULL AND project_id IS NULL) OR "
            "(user_id IS NULL AND project_id IS NOT NULL)",
            name="ck_training_assignments_target"
        ),
    )

    id = Column(Integer, primary_key=True)
    training_id = Column(
        Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True)
    unpublish_at = Column(TIMESTAMP(timezone=True), nullable=True, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def __repr__(self):
        return (
            f"<TrainingAssignment(training_id={self.training_id}, user_id={self.user_id}, "
            f"project_id={self.project_id})>"
        )


class TrainingProgress(Base):
    """
    Training progress table - one row per (user, training), progress 0..100
    """
    __tablename__ = "training_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "training_id", name="ux_training_progress_user_training"),
    )

    id = Column(Integer, primary_key=True)
    training_id = Column(Integer, ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    progress = Column(Integer, nullable=False, default=0)
    last_viewed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    rating = Column(Integer, nullable=True)  # 1..5
    comment = Column(String(1000), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)

    def __repr__(self):
        return (
            f"<TrainingProgress(user_id={self.user_id}, training_id={self.training_id}, "
            f"progress={self.progress})>"
        )
