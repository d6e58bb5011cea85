"""
Shuffle persistence across concurrent sessions
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.models import Exam, ExamAttempt, ExamChoice, ExamQuestion, User
from app.services.shuffle_service import ShuffleService


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'attempts.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def open_attempt_id(file_engine, clock):
    session = sessionmaker(bind=file_engine)()
    try:
        user = User(email="racer@example.com", name="Grace", surname="Hopper")
        exam = Exam(title="Shuffled", duration_minutes=30)
        session.add_all([user, exam])
        session.flush()

        for index in range(15):
            question = ExamQuestion(exam_id=exam.id, text=f"Question {index + 1}", order=index + 1)
            session.add(question)
            session.flush()
            for c_index in range(4):
                session.add(ExamChoice(question_id=question.id, text=f"Choice {c_index + 1}", is_correct=c_index == 0))

        attempt = ExamAttempt(exam_id=exam.id, user_id=user.id, started_at=clock.now)
        session.add(attempt)
        session.commit()
        return attempt.id
    finally:
        session.close()


def test_first_persisted_order_wins(file_engine, open_attempt_id):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    shuffler = ShuffleService()
    first, second = factory(), factory()

    try:
        mine = first.get(ExamAttempt, open_attempt_id)
        theirs = second.get(ExamAttempt, open_attempt_id)
        assert mine.shuffle_state is None
        assert theirs.shuffle_state is None

        winner = shuffler.ensure_shuffle(first, mine)
        loser = shuffler.ensure_shuffle(second, theirs)

        assert loser["seed"] == winner["seed"]
        assert loser["question_ids"] == winner["question_ids"]
        assert loser["choice_ids_by_question"] == winner["choice_ids_by_question"]
        assert theirs.shuffle_state == mine.shuffle_state
    finally:
        first.close()
        second.close()
