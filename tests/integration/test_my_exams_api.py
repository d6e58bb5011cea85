"""
HTTP tests for the user-facing exam endpoints
"""
import pytest

from app.models import TrainingProgress


@pytest.fixture
def assigned(seed):
    project = seed.project()
    user = seed.user(project=project)
    exam = seed.exam("Safety Basics", duration_minutes=30, questions=2)
    seed.assign_exam(exam, project=project)
    return user, exam


def start(client, user, exam):
    return client.post(f"/api/my-exams/start/{exam.id}", params={"user_id": user.id})


def answer(client, user, attempt_id, question_id, choice_id):
    return client.post(
        f"/api/my-exams/attempt/{attempt_id}/answer",
        params={"user_id": user.id},
        json={"question_id": question_id, "choice_id": choice_id}
    )


def submit(client, user, attempt_id):
    return client.post(f"/api/my-exams/attempt/{attempt_id}/submit", params={"user_id": user.id})


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_nav_lists_assigned_exams(client, seed, assigned):
    user, exam = assigned
    seed.exam("Unassigned")

    response = client.get("/api/my-exams/nav", params={"user_id": user.id})

    assert response.status_code == 200
    assert response.json() == [{
        "exam_id": exam.id,
        "title": "Safety Basics",
        "status": "not_started",
        "attempt_id": None,
        "score": None,
        "is_passed": None
    }]


def test_list_search_and_counts(client, seed, assigned):
    user, exam = assigned
    other = seed.exam("Fire Drill", questions=5)
    seed.assign_exam(other, user=user)

    response = client.get("/api/my-exams/list", params={"user_id": user.id, "search": "fire"})

    assert response.status_code == 200
    rows = response.json()
    assert [row["exam_id"] for row in rows] == [other.id]
    assert rows[0]["question_count"] == 5
    assert rows[0]["duration_minutes"] == 30


def test_list_requires_user(client):
    response = client.get("/api/my-exams/list")
    assert response.status_code == 422


def test_full_pass_flow(client, seed, assigned, clock):
    user, exam = assigned

    started = start(client, user, exam)
    assert started.status_code == 200
    attempt_id = started.json()["attempt_id"]

    detail = client.get(f"/api/my-exams/attempt/{attempt_id}", params={"user_id": user.id})
    assert detail.status_code == 200
    body = detail.json()
    assert len(body["questions"]) == 2
    assert body["remaining_seconds"] == 30 * 60
    assert all("is_correct" not in c for q in body["questions"] for c in q["choices"])

    for question in seed.questions(exam):
        saved = answer(client, user, attempt_id, question.id, seed.correct_choice(question).id)
        assert saved.status_code == 200

    clock.advance(minutes=10)
    result = submit(client, user, attempt_id)

    assert result.status_code == 200
    assert result.json()["score"] == 100.0
    assert result.json()["is_passed"] is True
    assert result.json()["duration_used_sec"] == 600

    status = client.get(f"/api/my-exams/exam/{exam.id}", params={"user_id": user.id}).json()
    assert status["status"] == "completed"
    assert status["is_passed"] is True


def test_half_right_fails_and_resets_training(client, db, seed, assigned):
    user, exam = assigned
    training = seed.training()
    seed.assign_training(training, user=user)
    seed.progress(user, training, progress=100)

    attempt_id = start(client, user, exam).json()["attempt_id"]
    first, second = seed.questions(exam)
    answer(client, user, attempt_id, first.id, seed.correct_choice(first).id)
    answer(client, user, attempt_id, second.id, seed.wrong_choice(second).id)

    result = submit(client, user, attempt_id).json()
    assert result["score"] == 50.0
    assert result["is_passed"] is False

    db.expire_all()
    row = db.query(TrainingProgress).filter(TrainingProgress.user_id == user.id).one()
    assert row.progress == 0

    blocked = start(client, user, exam)
    assert blocked.status_code == 412
    assert blocked.json()["error"] == "TRAININGS_NOT_COMPLETED"
    assert blocked.json()["incomplete_training_count"] == 1
    assert blocked.json()["incomplete_training_ids"] == [training.id]


def test_start_is_idempotent(client, assigned):
    user, exam = assigned

    first = start(client, user, exam).json()
    second = start(client, user, exam).json()

    assert first["attempt_id"] == second["attempt_id"]

    nav = client.get("/api/my-exams/nav", params={"user_id": user.id}).json()
    assert nav[0]["status"] == "in_progress"
    assert nav[0]["attempt_id"] == first["attempt_id"]


def test_passed_exam_returns_412(client, seed, assigned):
    user, exam = assigned
    attempt_id = start(client, user, exam).json()["attempt_id"]
    for question in seed.questions(exam):
        answer(client, user, attempt_id, question.id, seed.correct_choice(question).id)
    submit(client, user, attempt_id)

    response = start(client, user, exam)

    assert response.status_code == 412
    assert response.json()["error"] == "EXAM_ALREADY_PASSED"
    assert response.json()["attempt_id"] == attempt_id


def test_unassigned_exam_is_forbidden(client, seed):
    user = seed.user()
    exam = seed.exam()

    response = start(client, user, exam)

    assert response.status_code == 403
    assert response.json()["error"] == "EXAM_NOT_ASSIGNED"


def test_unknown_exam_is_not_found(client, seed):
    user = seed.user()

    response = client.post("/api/my-exams/start/999", params={"user_id": user.id})

    assert response.status_code == 404
    assert response.json()["status_code"] == 404


def test_other_users_attempt_is_forbidden(client, seed, assigned):
    user, exam = assigned
    stranger = seed.user(email="stranger@example.com")
    attempt_id = start(client, user, exam).json()["attempt_id"]

    response = client.get(f"/api/my-exams/attempt/{attempt_id}", params={"user_id": stranger.id})

    assert response.status_code == 403


def test_answer_after_expiry_returns_409(client, seed, assigned, clock):
    user, exam = assigned
    started = start(client, user, exam).json()
    question = seed.questions(exam)[0]
    clock.advance(minutes=31)

    response = answer(client, user, started["attempt_id"], question.id, seed.correct_choice(question).id)

    assert response.status_code == 409
    assert response.json()["error"] == "ATTEMPT_EXPIRED"

    detail = client.get(f"/api/my-exams/attempt/{started['attempt_id']}", params={"user_id": user.id}).json()
    assert detail["submitted_at"] == started["ends_at"]
    assert detail["remaining_seconds"] == 0


def test_list_view_sweeps_expired_attempts(client, assigned, clock):
    user, exam = assigned
    start(client, user, exam)
    clock.advance(hours=2)

    rows = client.get("/api/my-exams/list", params={"user_id": user.id}).json()

    assert rows[0]["status"] == "completed"
    assert rows[0]["score"] == 0.0


def test_answer_with_foreign_choice_returns_400(client, seed, assigned):
    user, exam = assigned
    attempt_id = start(client, user, exam).json()["attempt_id"]
    first, second = seed.questions(exam)

    response = answer(client, user, attempt_id, first.id, seed.correct_choice(second).id)

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_CHOICE"


def test_start_after_expiry_reports_auto_submit(client, assigned, clock):
    user, exam = assigned
    first = start(client, user, exam).json()
    clock.advance(minutes=30)

    response = start(client, user, exam)

    assert response.status_code == 200
    body = response.json()
    assert body["attempt_id"] == first["attempt_id"]
    assert body["auto_submitted"] is True
    assert body["message"] == "Exam time is over. Your answers have been saved."
