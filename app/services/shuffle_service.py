"""
Per-attempt question/choice shuffling

Each attempt gets one random presentation order, generated on first need
and persisted on the attempt. Later reads replay it so questions do not
move between page loads.
"""
import logging
import random
import secrets
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session
from app.models import ExamAttempt, ExamQuestion, ExamChoice

logger = logging.getLogger(__name__)

ShuffleState = Dict[str, Any]


def reconcile_order(persisted: Iterable[int], live: Sequence[int]) -> List[int]:
    """
    Replay a persisted order against the live ids

    Persisted ids that no longer exist are dropped; live ids missing from
    the persisted order are appended in their natural order.
    """
    live_set = set(live)
    ordered: List[int] = []
    seen = set()

    for item_id in persisted:
        if item_id in live_set and item_id not in seen:
            ordered.append(item_id)
            seen.add(item_id)

    ordered.extend(item_id for item_id in live if item_id not in seen)
    return ordered


class ShuffleService:
    """Generates, persists and replays attempt shuffle state"""

    def generate(
        self,
        question_choice_ids: List[Tuple[int, List[int]]],
        seed: Optional[int] = None
    ) -> ShuffleState:
        """
        Shuffle question ids and, independently, each question's choice ids

        Args:
            question_choice_ids: [(question_id, [choice_id, ...]), ...] in natural order
            seed: Random seed; a fresh one is drawn when omitted

        Returns:
            JSON-ready state with string keys in choice_ids_by_question
        """
        if seed is None:
            seed = secrets.randbelow(2 ** 31 - 1)
        rng = random.Random(seed)

        question_ids = [question_id for question_id, _ in question_choice_ids]
        rng.shuffle(question_ids)

        choice_ids_by_question = {}
        for question_id, choice_ids in question_choice_ids:
            shuffled = list(choice_ids)
            rng.shuffle(shuffled)
            choice_ids_by_question[str(question_id)] = shuffled

        return {
            "seed": seed,
            "question_ids": question_ids,
            "choice_ids_by_question": choice_ids_by_question
        }

    def parse(self, raw: Any) -> Optional[ShuffleState]:
        """Validate persisted state, None when absent or malformed"""
        if raw is None:
            return None

        try:
            question_ids = [int(q_id) for q_id in raw["question_ids"]]
            choice_ids_by_question = {
                int(q_id): [int(c_id) for c_id in c_ids]
                for q_id, c_ids in raw.get("choice_ids_by_question", {}).items()
            }
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring malformed shuffle state: {str(e)}")
            return None

        return {
            "seed": raw.get("seed"),
            "question_ids": question_ids,
            "choice_ids_by_question": choice_ids_by_question
        }

    def _load_live_ids(self, db: Session, exam_id: int) -> List[Tuple[int, List[int]]]:
        questions = db.query(ExamQuestion.id).filter(
            ExamQuestion.exam_id == exam_id
        ).order_by(ExamQuestion.order, ExamQuestion.id).all()
        question_ids = [q_id for (q_id,) in questions]

        choices_by_question: Dict[int, List[int]] = {q_id: [] for q_id in question_ids}
        if question_ids:
            for question_id, choice_id in db.query(ExamChoice.question_id, ExamChoice.id).filter(
                ExamChoice.question_id.in_(question_ids)
            ).order_by(ExamChoice.id).all():
                choices_by_question[question_id].append(choice_id)

        return [(q_id, choices_by_question[q_id]) for q_id in question_ids]

    def ensure_shuffle(self, db: Session, attempt: ExamAttempt) -> ShuffleState:
        """
        Return the attempt's shuffle state, generating it once if missing

        The write only lands while shuffle_state is still NULL, so when two
        requests race the first persisted order wins and the loser re-reads it.
        """
        existing = self.parse(attempt.shuffle_state)
        if existing is not None:
            return existing

        if attempt.shuffle_state is not None:
            # Malformed but present: never overwrite, fall back to natural order
            live = self._load_live_ids(db, attempt.exam_id)
            return self.parse({
                "question_ids": [q_id for q_id, _ in live],
                "choice_ids_by_question": {str(q_id): c_ids for q_id, c_ids in live}
            })

        state = self.generate(self._load_live_ids(db, attempt.exam_id))

        updated = db.query(ExamAttempt).filter(
            ExamAttempt.id == attempt.id,
            ExamAttempt.shuffle_state.is_(None)
        ).update({ExamAttempt.shuffle_state: state}, synchronize_session=False)
        db.commit()

        db.refresh(attempt)

        if updated == 0:
            logger.info(f"Shuffle state for attempt {attempt.id} already written by another request")
        else:
            logger.info(f"Shuffle state generated for attempt {attempt.id}")

        persisted = self.parse(attempt.shuffle_state)
        return persisted if persisted is not None else self.parse(state)

    def order_questions(
        self,
        state: ShuffleState,
        questions: List[ExamQuestion],
        choices_by_question: Dict[int, List[ExamChoice]]
    ) -> List[Tuple[ExamQuestion, List[ExamChoice]]]:
        """
        Arrange live questions and choices in the attempt's shuffled order

        Args:
            state: Parsed shuffle state
            questions: Live questions in natural order
            choices_by_question: Live choices per question in natural order

        Returns:
            [(question, [choice, ...]), ...] in presentation order
        """
        question_map = {q.id: q for q in questions}
        question_order = reconcile_order(state["question_ids"], [q.id for q in questions])

        ordered = []
        for question_id in question_order:
            choices = choices_by_question.get(question_id, [])
            choice_map = {c.id: c for c in choices}
            choice_order = reconcile_order(
                state["choice_ids_by_question"].get(question_id, []),
                [c.id for c in choices]
            )
            ordered.append((question_map[question_id], [choice_map[c_id] for c_id in choice_order]))

        return ordered


# Global instance
shuffle_service = ShuffleService()
