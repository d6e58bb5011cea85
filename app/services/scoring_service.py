"""
Exam scoring service
Percentage score and pass/fail verdict from recorded answers
"""
import logging
from typing import Dict, Optional, Set, Tuple
from sqlalchemy.orm import Session
from app.config import settings
from app.models import ExamQuestion, ExamChoice

logger = logging.getLogger(__name__)


class ScoringService:
    """
    Service for scoring exam attempts

    Rule:
    - A question is correct iff the recorded choice is one of the
      question's correct choices (unanswered = incorrect)
    - Score = correct * 100 / max(1, total questions), one decimal
    - Pass iff score >= threshold (70.0)
    """

    def __init__(self, pass_threshold: float = None):
        self.pass_threshold = settings.PASS_THRESHOLD if pass_threshold is None else pass_threshold

    def load_answer_key(self, db: Session, exam_id: int) -> Dict[int, Set[int]]:
        """
        Load the correct choice ids of every question of an exam

        Args:
            db: Database session
            exam_id: Exam id

        Returns:
            {question_id: {correct_choice_id, ...}}, questions without a
            correct choice map to an empty set
        """
        question_ids = [
            q_id for (q_id,) in db.query(ExamQuestion.id).filter(ExamQuestion.exam_id == exam_id).all()
        ]
        answer_key: Dict[int, Set[int]] = {q_id: set() for q_id in question_ids}

        if not question_ids:
            return answer_key

        correct_rows = db.query(ExamChoice.question_id, ExamChoice.id).filter(
            ExamChoice.question_id.in_(question_ids),
            ExamChoice.is_correct.is_(True)
        ).all()

        for question_id, choice_id in correct_rows:
            answer_key[question_id].add(choice_id)

        return answer_key

    def is_correct(self, correct_choice_ids: Set[int], picked_choice_id: Optional[int]) -> bool:
        return picked_choice_id is not None and picked_choice_id in correct_choice_ids

    def grade(
        self,
        answer_key: Dict[int, Set[int]],
        answers: Dict[int, Optional[int]]
    ) -> Tuple[float, bool, int]:
        """
        Grade recorded answers against the answer key

        Args:
            answer_key: {question_id: correct choice ids}
            answers: {question_id: picked choice id or None}; answers to
                questions outside the key are ignored

        Returns:
            Tuple of (score, is_passed, correct_count)
        """
        correct_count = sum(
            1 for question_id, correct_ids in answer_key.items()
            if self.is_correct(correct_ids, answers.get(question_id))
        )

        total = max(1, len(answer_key))
        score = round(correct_count * 100.0 / total, 1)
        is_passed = self.is_passing(score)

        logger.info(
            f"Attempt graded: {correct_count}/{len(answer_key)} correct, "
            f"score={score}, passed={is_passed}"
        )

        return score, is_passed, correct_count

    def is_passing(self, score: float) -> bool:
        return score >= self.pass_threshold


# Global instance
scoring_service = ScoringService()
