"""
Training gate
Ties exam eligibility and failure consequences to training completion
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.models import TrainingAssignment, TrainingProgress
from app.services.access_service import AccessService, access_service

logger = logging.getLogger(__name__)

COMPLETE_PROGRESS = 100


class TrainingGate(ABC):
    """
    Port used by the attempt lifecycle

    Implementations must only flush, never commit: the reset runs inside
    the attempt finalization transaction.
    """

    @abstractmethod
    def get_incomplete_training_ids(self, db: Session, user_id: int, now: datetime) -> List[int]:
        """Assigned trainings whose progress is below 100%"""

    @abstractmethod
    def reset_assigned_trainings(self, db: Session, user_id: int, now: datetime) -> int:
        """Force every assigned training back to zero progress, return how many"""


class SqlTrainingGate(TrainingGate):
    """Training gate backed by training_assignments / training_progress"""

    def __init__(self, access: AccessService = None):
        self.access = access or access_service

    def get_assigned_training_ids(self, db: Session, user_id: int, now: datetime) -> List[int]:
        """
        Trainings assigned to the user directly or via any of their projects

        Assignments whose unpublish_at has passed no longer count.
        """
        project_ids = self.access.get_user_project_ids(db, user_id)

        targets = [TrainingAssignment.user_id == user_id]
        if project_ids:
            targets.append(TrainingAssignment.project_id.in_(project_ids))

        rows = db.query(TrainingAssignment.training_id).filter(
            or_(*targets),
            or_(TrainingAssignment.unpublish_at.is_(None), TrainingAssignment.unpublish_at > now)
        ).distinct().all()

        return sorted(training_id for (training_id,) in rows)

    def get_incomplete_training_ids(self, db: Session, user_id: int, now: datetime) -> List[int]:
        assigned = self.get_assigned_training_ids(db, user_id, now)
        if not assigned:
            return []

        completed = {
            training_id for (training_id,) in db.query(TrainingProgress.training_id).filter(
                TrainingProgress.user_id == user_id,
                TrainingProgress.training_id.in_(assigned),
                TrainingProgress.progress >= COMPLETE_PROGRESS
            ).all()
        }

        return [training_id for training_id in assigned if training_id not in completed]

    def reset_assigned_trainings(self, db: Session, user_id: int, now: datetime) -> int:
        """
        Reset progress of every assigned training after a failed attempt

        Existing rows lose progress, viewing, rating, comment and completion
        data; missing rows are created at zero progress.
        """
        training_ids = self.get_assigned_training_ids(db, user_id, now)
        if not training_ids:
            return 0

        progresses = db.query(TrainingProgress).filter(
            TrainingProgress.user_id == user_id,
            TrainingProgress.training_id.in_(training_ids)
        ).all()

        existing_ids = {p.training_id for p in progresses}
        for training_id in training_ids:
            if training_id in existing_ids:
                continue
            progress = TrainingProgress(
                user_id=user_id,
                training_id=training_id,
                created_at=now
            )
            db.add(progress)
            progresses.append(progress)

        for progress in progresses:
            progress.progress = 0
            progress.last_viewed_at = None
            progress.completed_at = None
            progress.rating = None
            progress.comment = None
            progress.updated_at = now

        db.flush()

        logger.info(f"Training progress reset: user={user_id}, trainings={training_ids}")

        return len(training_ids)


# Global instance
training_gate = SqlTrainingGate()
