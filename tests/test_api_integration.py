"""Integration tests for API endpoints."""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from certlab.main import app
from certlab.db.database import Base, get_db
from certlab.db.init_db import BADGE_CATALOG
from certlab.db.models import Badge, MasteryScore, Quiz
from certlab.db.repository import commit
from certlab.rate_limit import limiter

USER_COOKIE = {"cl_uid": "cl_api_user"}


@pytest.fixture(scope="function")
def session_factory():
    """In-memory database shared across TestClient threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    db = TestingSessionLocal()
    for badge_data in BADGE_CATALOG:
        db.add(Badge(**badge_data))
    db.commit()
    db.close()

    return TestingSessionLocal


@pytest.fixture(scope="function")
def test_client(session_factory):
    """Create a test client with in-memory database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()

    client = TestClient(app, cookies=USER_COOKIE)

    yield client

    app.dependency_overrides.clear()


def submission_body(pattern, category_id=1, subcategory_id=10, **extra):
    body = {
        "category_ids": [category_id],
        "outcomes": [
            {
                "question_id": i + 1,
                "category_id": category_id,
                "subcategory_id": subcategory_id,
                "is_correct": ch == "C",
            }
            for i, ch in enumerate(pattern)
        ],
    }
    body.update(extra)
    return body


class TestSession:
    """Tests for cookie-based user identification."""

    def test_missing_cookie_rejected(self, test_client):
        test_client.cookies.clear()

        response = test_client.get("/api/progress/mastery")

        assert response.status_code == 401

    def test_catalog_needs_no_cookie(self, test_client):
        test_client.cookies.clear()

        response = test_client.get("/api/achievements/badges")

        assert response.status_code == 200
        assert len(response.json()["badges"]) == len(BADGE_CATALOG)


class TestSubmissionEndpoint:
    """Tests for POST /api/progress/submissions."""

    def test_submit_quiz(self, test_client):
        response = test_client.post(
            "/api/progress/submissions",
            json=submission_body("CCCCCCCCCC", activity_date="2026-03-02")
        )

        assert response.status_code == 200
        data = response.json()

        assert data["score"] == 100
        assert data["points_earned"] == 135
        assert data["overall_mastery"] == 100
        assert data["mastery"][0]["state"] == "mastered"
        assert data["category_progress"][0]["adaptive_difficulty"] == 2
        assert data["game_stats"]["current_streak"] == 1
        assert "First Steps" in {b["name"] for b in data["new_badges"]}

    def test_completes_started_quiz(self, test_client, session_factory):
        db = session_factory()
        quiz = Quiz(user_id=USER_COOKIE["cl_uid"], category_ids=[1], mode="adaptive")
        db.add(quiz)
        db.commit()
        quiz_id = quiz.id
        db.close()

        body = submission_body("CW", quiz_id=quiz_id, mode="Adaptive")
        first = test_client.post("/api/progress/submissions", json=body)
        second = test_client.post("/api/progress/submissions", json=body)

        assert first.status_code == 200
        assert first.json()["score"] == 50
        assert second.status_code == 422

    def test_unknown_quiz_is_404(self, test_client):
        response = test_client.post(
            "/api/progress/submissions", json=submission_body("C", quiz_id=999)
        )

        assert response.status_code == 404

    def test_outcome_outside_categories_is_422(self, test_client):
        body = submission_body("C")
        body["category_ids"] = [2]

        response = test_client.post("/api/progress/submissions", json=body)

        assert response.status_code == 422

    def test_empty_outcomes_is_422(self, test_client):
        response = test_client.post("/api/progress/submissions", json=submission_body(""))

        assert response.status_code == 422

    def test_storage_failure_is_503(self, test_client, monkeypatch):
        def commit_with_bad_row(db):
            db.add(MasteryScore(
                user_id=USER_COOKIE["cl_uid"], category_id=9, subcategory_id=90,
                correct_answers=5, total_answers=3, rolling_average=0,
            ))
            commit(db)

        monkeypatch.setattr("certlab.services.submission.commit", commit_with_bad_row)

        response = test_client.post("/api/progress/submissions", json=submission_body("CCC"))

        assert response.status_code == 503
        assert response.json() == {"detail": "Storage temporarily unavailable"}

        overview = test_client.get("/api/progress/mastery").json()
        assert overview == {"overall_mastery": 0, "categories": []}


class TestMasteryEndpoints:
    """Tests for mastery read endpoints."""

    def test_cold_start(self, test_client):
        response = test_client.get("/api/progress/mastery")

        assert response.status_code == 200
        assert response.json() == {"overall_mastery": 0, "categories": []}

    def test_category_mastery(self, test_client):
        test_client.post("/api/progress/submissions", json=submission_body("CCCCCCCCWW"))
        test_client.post(
            "/api/progress/submissions", json=submission_body("CW", subcategory_id=11)
        )

        response = test_client.get("/api/progress/mastery/1")

        assert response.status_code == 200
        data = response.json()
        assert data["mastery_score"] == 75
        assert [s["subcategory_id"] for s in data["subcategories"]] == [10, 11]

        overview = test_client.get("/api/progress/mastery").json()
        assert overview["categories"] == [{"category_id": 1, "mastery_score": 75}]


class TestAdaptiveEndpoints:
    """Tests for adaptive sizing and category state."""

    def test_cold_start_count(self, test_client):
        response = test_client.get(
            "/api/progress/adaptive-count", params={"base_count": 10, "category_ids": [1, 2]}
        )

        assert response.status_code == 200
        assert response.json()["question_count"] == 10

    def test_struggling_user_gets_more_questions(self, test_client):
        test_client.post("/api/progress/submissions", json=submission_body("WWW"))

        response = test_client.get(
            "/api/progress/adaptive-count", params={"base_count": 10, "category_ids": [1]}
        )

        assert response.json()["question_count"] == 18

    def test_invalid_base_count(self, test_client):
        response = test_client.get(
            "/api/progress/adaptive-count", params={"base_count": 0, "category_ids": [1]}
        )

        assert response.status_code == 422

    def test_category_state_defaults(self, test_client):
        response = test_client.get("/api/progress/categories/7")

        assert response.status_code == 200
        data = response.json()
        assert data["adaptive_difficulty"] == 1
        assert data["weak_subcategories"] == []

    def test_category_state_after_submission(self, test_client):
        test_client.post("/api/progress/submissions", json=submission_body("WWW"))

        data = test_client.get("/api/progress/categories/1").json()

        assert data["consecutive_wrong"] == 3
        assert data["questions_completed"] == 3
        assert data["weak_subcategories"] == [10]


class TestAchievementEndpoints:
    """Tests for badge and stats endpoints."""

    def test_progress_preview(self, test_client):
        response = test_client.get("/api/achievements/progress")

        assert response.status_code == 200
        badges = response.json()["badges"]
        assert len(badges) == len(BADGE_CATALOG)
        assert all(b["earned"] is False for b in badges)

    def test_evaluate_after_submission_is_empty(self, test_client):
        test_client.post("/api/progress/submissions", json=submission_body("C"))

        response = test_client.post("/api/achievements/evaluate")

        assert response.status_code == 200
        assert response.json()["new_badges"] == []

    def test_mark_notified(self, test_client):
        submitted = test_client.post("/api/progress/submissions", json=submission_body("C"))
        earned = len(submitted.json()["new_badges"])

        response = test_client.post("/api/achievements/notified", json={})

        assert response.status_code == 200
        assert response.json()["updated"] == earned

        again = test_client.post("/api/achievements/notified", json={"badge_ids": None})
        assert again.json()["updated"] == 0

    def test_stats(self, test_client):
        test_client.post("/api/progress/submissions", json=submission_body("CCCCCCCCCC"))

        response = test_client.get("/api/achievements/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total_points"] > 0
        assert data["current_streak"] == 1
        assert data["study_streak"] == 1
        assert data["streak_milestones"]["next"] == 3
        assert data["level_progress"]["level"] >= 2

    def test_stats_streaks_agree_for_backdated_submission(self, test_client):
        today = datetime.utcnow().date()
        for day in (today - timedelta(days=1), today):
            test_client.post(
                "/api/progress/submissions",
                json=submission_body("C", activity_date=day.isoformat())
            )

        data = test_client.get("/api/achievements/stats").json()

        assert data["current_streak"] == 2
        assert data["study_streak"] == 2

    def test_stats_cold_start(self, test_client):
        data = test_client.get("/api/achievements/stats").json()

        assert data["total_points"] == 0
        assert data["level_progress"]["level"] == 1
        assert data["study_streak"] == 0


class TestHealthEndpoints:
    """Tests for health checks."""

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness(self, test_client):
        response = test_client.get("/readiness")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"
