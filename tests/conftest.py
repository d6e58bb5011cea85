"""
Pytest Configuration and Fixtures.

Tests run against an in-memory SQLite database; settings are pointed at it
before any application module is imported.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CHANGE_NOTIFICATIONS_ENABLED", "false")

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Exam, ExamAssignment, ExamChoice, ExamQuestion, Project, Training,
    TrainingAssignment, TrainingProgress, User, UserProject,
)
from app.services.access_service import AccessService  # noqa: E402
from app.services.attempt_service import AttemptService, attempt_service  # noqa: E402
from app.services.scoring_service import ScoringService  # noqa: E402
from app.services.shuffle_service import ShuffleService  # noqa: E402
from app.services.training_gate import SqlTrainingGate, TrainingGate  # noqa: E402

START = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable "now" for expiry tests"""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeNotifier:
    """Records published events instead of talking to Redis"""

    def __init__(self):
        self.events = []

    def publish(self, event, payload):
        self.events.append((event, payload))
        return True

    def names(self):
        return [event for event, _ in self.events]


class FakeTrainingGate(TrainingGate):
    """Training gate with scripted incomplete ids and recorded resets"""

    def __init__(self, incomplete=None):
        self.incomplete = list(incomplete or [])
        self.resets = []

    def get_incomplete_training_ids(self, db, user_id, now):
        return list(self.incomplete)

    def reset_assigned_trainings(self, db, user_id, now):
        self.resets.append((user_id, now))
        return 1


class Seed:
    """Helpers for inserting exams, users and trainings"""

    def __init__(self, db):
        self.db = db

    def project(self, name="Project"):
        project = Project(name=name)
        self.db.add(project)
        self.db.commit()
        return project

    def user(self, email="user@example.com", name="Ada", surname="Lovelace", project=None):
        user = User(
            email=email,
            name=name,
            surname=surname,
            project_id=project.id if project else None
        )
        self.db.add(user)
        self.db.commit()
        return user

    def membership(self, user, project):
        self.db.add(UserProject(user_id=user.id, project_id=project.id))
        self.db.commit()

    def exam(self, title="Safety Basics", duration_minutes=30, questions=2, choices=4):
        """
        Exam with `questions` questions of `choices` choices each;
        the first choice of every question is the correct one.
        """
        exam = Exam(title=title, duration_minutes=duration_minutes)
        self.db.add(exam)
        self.db.flush()

        for q_index in range(questions):
            question = ExamQuestion(exam_id=exam.id, text=f"Question {q_index + 1}", order=q_index + 1)
            self.db.add(question)
            self.db.flush()
            for c_index in range(choices):
                self.db.add(ExamChoice(
                    question_id=question.id,
                    text=f"Q{q_index + 1} choice {c_index + 1}",
                    is_correct=(c_index == 0)
                ))

        self.db.commit()
        return exam

    def questions(self, exam):
        return self.db.query(ExamQuestion).filter(
            ExamQuestion.exam_id == exam.id
        ).order_by(ExamQuestion.order).all()

    def choices(self, question):
        return self.db.query(ExamChoice).filter(
            ExamChoice.question_id == question.id
        ).order_by(ExamChoice.id).all()

    def correct_choice(self, question):
        return next(c for c in self.choices(question) if c.is_correct)

    def wrong_choice(self, question):
        return next(c for c in self.choices(question) if not c.is_correct)

    def assign_exam(self, exam, user=None, project=None):
        self.db.add(ExamAssignment(
            exam_id=exam.id,
            user_id=user.id if user else None,
            project_id=project.id if project else None
        ))
        self.db.commit()

    def training(self, title="Induction"):
        training = Training(title=title)
        self.db.add(training)
        self.db.commit()
        return training

    def assign_training(self, training, user=None, project=None, unpublish_at=None):
        self.db.add(TrainingAssignment(
            training_id=training.id,
            user_id=user.id if user else None,
            project_id=project.id if project else None,
            unpublish_at=unpublish_at
        ))
        self.db.commit()

    def progress(self, user, training, progress=100, rating=None, comment=None):
        row = TrainingProgress(
            user_id=user.id,
            training_id=training.id,
            progress=progress,
            rating=rating,
            comment=comment,
            last_viewed_at=START,
            completed_at=START if progress >= 100 else None,
            created_at=START,
            updated_at=START
        )
        self.db.add(row)
        self.db.commit()
        return row


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    return Seed(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def fake_gate():
    return FakeTrainingGate()


@pytest.fixture
def service(clock, notifier, fake_gate):
    """Attempt service wired to the fake training gate"""
    return AttemptService(
        access=AccessService(),
        gate=fake_gate,
        shuffler=ShuffleService(),
        scorer=ScoringService(pass_threshold=70.0),
        notifier=notifier,
        clock=clock
    )


@pytest.fixture
def gated_service(clock, notifier):
    """Attempt service wired to the real SQL training gate"""
    return AttemptService(
        access=AccessService(),
        gate=SqlTrainingGate(AccessService()),
        shuffler=ShuffleService(),
        scorer=ScoringService(pass_threshold=70.0),
        notifier=notifier,
        clock=clock
    )


@pytest.fixture
def client(session_factory, clock, monkeypatch):
    """API client sharing the test database and clock"""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr(attempt_service, "clock", clock)

    yield TestClient(app)

    app.dependency_overrides.clear()
