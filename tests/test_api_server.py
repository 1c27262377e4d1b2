from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import T0, make_quiz
from quiz_live.server.api_server import create_api_app

CORRECT_ANSWERS = {
    "submitted_answers": [
        {"kind": "multiple-choice", "question_id": 1, "selected_option_ids": [2]},
        {"kind": "short-answer", "question_id": 2, "spot_texts": {"1": "Paris"}},
    ]
}


@pytest.fixture
def client(manager):
    return TestClient(create_api_app(manager))


@pytest.fixture
def running(manager):
    manager.load_quiz(make_quiz(release_in=timedelta(minutes=-1)))


def _headers(login: str) -> dict[str, str]:
    return {"X-Login": login}


def test_live_save_then_read_back(client, running):
    response = client.post("/quizzes/1/submissions/live", json=CORRECT_ANSWERS, headers=_headers("alice"))

    assert response.status_code == 200
    assert response.json()["submitted"] is False

    cached = client.get("/quizzes/1/submission", headers=_headers("alice")).json()
    assert cached["submitted_answers"][0]["selected_option_ids"] == [2]
    assert cached["submitted_answers"][1]["spot_texts"] == {"1": "Paris"}


def test_second_live_submit_conflicts(client, running):
    first = client.post(
        "/quizzes/1/submissions/live", params={"submit": "true"}, json=CORRECT_ANSWERS, headers=_headers("alice")
    )
    second = client.post("/quizzes/1/submissions/live", json=CORRECT_ANSWERS, headers=_headers("alice"))

    assert first.json()["type"] == "MANUAL"
    assert second.status_code == 409
    assert second.json()["detail"] == "You have already submitted the quiz"


def test_live_submission_errors(client, manager):
    assert client.post("/quizzes/1/submissions/live", json=CORRECT_ANSWERS, headers=_headers("a")).status_code == 404

    manager.load_quiz(make_quiz())
    response = client.post("/quizzes/1/submissions/live", json=CORRECT_ANSWERS, headers=_headers("a"))
    assert response.status_code == 403
    assert response.json()["detail"] == "The quiz is not active"


def test_login_header_is_required(client, running):
    assert client.post("/quizzes/1/submissions/live", json=CORRECT_ANSWERS).status_code == 422


def test_live_quiz_hides_the_answer_key(client, running):
    body = client.get("/quizzes/1/live").json()

    assert body["id"] == 1
    options = body["questions"][0]["answer_options"]
    assert [option["id"] for option in options] == [1, 2, 3]
    assert all("is_correct" not in option for option in options)
    assert "solutions" not in body["questions"][1]
    assert "<p>" in body["questions"][0]["text_html"]


def test_live_quiz_before_release_is_not_found(client, manager):
    manager.load_quiz(make_quiz())

    assert client.get("/quizzes/1/live").status_code == 404


def test_exam_submission_needs_participation(client, running, manager):
    assert client.post("/quizzes/1/submissions/exam", json=CORRECT_ANSWERS, headers=_headers("alice")).status_code == 404

    quiz = manager.quiz_repository.find_by_id_with_questions(1)
    manager.get_or_create_participation(quiz, "alice")
    response = client.post("/quizzes/1/submissions/exam", json=CORRECT_ANSWERS, headers=_headers("alice"))

    assert response.status_code == 200
    assert response.json()["id"] is not None


def test_practice_only_after_the_quiz_ended(client, running, manager, timer, clock):
    early = client.post("/quizzes/1/submissions/practice", json=CORRECT_ANSWERS, headers=_headers("bob"))
    assert early.status_code == 403

    clock.set(T0 + timedelta(minutes=10))
    during_grace = client.post("/quizzes/1/submissions/practice", json=CORRECT_ANSWERS, headers=_headers("bob"))
    assert during_grace.status_code == 403
    assert manager.participation_repository.find_by_exercise_and_login(1, "bob") is None

    clock.set(T0 + timedelta(minutes=20))
    timer.fire_due()
    response = client.post("/quizzes/1/submissions/practice", json=CORRECT_ANSWERS, headers=_headers("bob"))

    assert response.status_code == 200
    body = response.json()
    assert body["rated"] is False
    assert body["score"] == 100.0
    statistics = client.get("/quizzes/1/statistics").json()
    assert statistics == [{"points": 3.0, "rated": 0, "unrated": 1}]


def test_notifications_after_consolidation(client, running, timer, clock):
    client.post("/quizzes/1/submissions/live", json=CORRECT_ANSWERS, headers=_headers("alice"))

    clock.set(T0 + timedelta(minutes=20))
    timer.fire_due()

    messages = client.get("/notifications", headers=_headers("alice")).json()
    assert [message["topic"] for message in messages] == ["/topic/exercise/1/participation"]
    assert messages[0]["payload"]["results"][0]["score"] == 100.0
    assert client.get("/notifications", headers=_headers("alice")).json() == []


def test_update_dates_and_delete(client, manager, timer):
    manager.load_quiz(make_quiz())
    release = T0 + timedelta(hours=1)

    response = client.put(
        "/quizzes/1/dates",
        json={
            "release_date": release.isoformat(),
            "due_date": (release + timedelta(minutes=10)).isoformat(),
            "is_planned_to_start": True,
        },
    )
    assert response.status_code == 200
    assert response.json()["phase"] == "START_SCHEDULED"
    assert [task.run_at for task in timer.pending()] == [release]

    invalid = client.put(
        "/quizzes/1/dates",
        json={"release_date": release.isoformat(), "due_date": T0.isoformat()},
    )
    assert invalid.status_code == 422

    assert client.delete("/quizzes/1").status_code == 204
    assert timer.scheduled_count() == 0
    assert client.put("/quizzes/1/dates", json={}).status_code == 404


def test_metrics_endpoint(client, running):
    client.post("/quizzes/1/submissions/live", json=CORRECT_ANSWERS, headers=_headers("alice"))

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "quiz_submissions_cached_total 1.0" in response.text
