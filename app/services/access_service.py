"""
Exam access resolution
A user may attempt an exam assigned to them directly or to any of their projects
"""
import logging
from typing import List
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.exceptions import ForbiddenError, NotFoundError
from app.models import Exam, ExamAssignment, User, UserProject

logger = logging.getLogger(__name__)


class AccessService:
    """Read-only checks over users, memberships and exam assignments"""

    def get_user_project_ids(self, db: Session, user_id: int) -> List[int]:
        """
        Effective project set: primary project plus secondary memberships

        Args:
            db: Database session
            user_id: User id

        Returns:
            Distinct project ids (may be empty)
        """
        primary = db.query(User.project_id).filter(User.id == user_id).scalar()

        project_ids = [
            project_id for (project_id,) in db.query(UserProject.project_id).filter(
                UserProject.user_id == user_id
            ).all()
        ]

        if primary is not None:
            project_ids.append(primary)

        return sorted(set(project_ids))

    def _assignment_filter(self, user_id: int, project_ids: List[int]):
        clauses = [ExamAssignment.user_id == user_id]
        if project_ids:
            clauses.append(ExamAssignment.project_id.in_(project_ids))
        return or_(*clauses)

    def has_exam_access(self, db: Session, user_id: int, exam_id: int) -> bool:
        project_ids = self.get_user_project_ids(db, user_id)

        match = db.query(ExamAssignment.id).filter(
            ExamAssignment.exam_id == exam_id,
            self._assignment_filter(user_id, project_ids)
        ).first()

        return match is not None

    def get_assigned_exam_ids(self, db: Session, user_id: int) -> List[int]:
        """Every exam the user can attempt, directly or through a project"""
        project_ids = self.get_user_project_ids(db, user_id)

        rows = db.query(ExamAssignment.exam_id).filter(
            self._assignment_filter(user_id, project_ids)
        ).distinct().all()

        return sorted(exam_id for (exam_id,) in rows)

    def get_accessible_exam(self, db: Session, user_id: int, exam_id: int) -> Exam:
        """
        Load an exam the user is allowed to attempt

        Raises:
            NotFoundError: exam does not exist
            ForbiddenError: exam exists but is not assigned to the user
        """
        exam = db.query(Exam).filter(Exam.id == exam_id).first()
        if not exam:
            raise NotFoundError("Exam not found", code="EXAM_NOT_FOUND")

        if not self.has_exam_access(db, user_id, exam_id):
            logger.info(f"Exam access denied: user={user_id}, exam={exam_id}")
            raise ForbiddenError("This exam is not assigned to you", code="EXAM_NOT_ASSIGNED")

        return exam


# Global instance
access_service = AccessService()
