"""Tests for badge requirement parsing and checks."""
import pytest

from certlab.constants import BADGE_CATEGORIES, BADGE_RARITIES
from certlab.db.init_db import BADGE_CATALOG, seed_badges
from certlab.db.models import Badge
from certlab.services.requirements import (
    AchievementSnapshot,
    AvgScoreRequirement,
    HighScoreRequirement,
    parse_requirement,
)


class TestParseRequirement:
    """Test requirement parsing."""

    def test_every_catalog_requirement_parses(self):
        for badge in BADGE_CATALOG:
            assert parse_requirement(badge["requirement"]) is not None, badge["name"]

    def test_high_score_count_defaults_to_one(self):
        requirement = parse_requirement({"type": "high_score", "threshold": 90})

        assert isinstance(requirement, HighScoreRequirement)
        assert requirement.count == 1

    @pytest.mark.parametrize("raw", [
        {"type": "unicorn", "count": 1},
        {"type": "quiz_completed"},
        {"type": "quiz_completed", "count": 0},
        {"type": "mastery_score", "threshold": 150},
        {"count": 3},
        "quiz_completed",
        None,
    ])
    def test_unusable_requirements_return_none(self, raw):
        assert parse_requirement(raw) is None

    def test_unknown_type_logs_warning(self, caplog):
        with caplog.at_level("WARNING"):
            parse_requirement({"type": "unicorn"}, badge_id=7)

        assert any("unusable requirement" in r.message for r in caplog.records)


class TestRequirementChecks:
    """Test each requirement type against snapshots."""

    def test_quiz_completed(self):
        requirement = parse_requirement({"type": "quiz_completed", "count": 2})

        assert not requirement.is_satisfied(AchievementSnapshot(quiz_scores=(50,)))
        assert requirement.is_satisfied(AchievementSnapshot(quiz_scores=(50, 60)))

    def test_perfect_score(self):
        requirement = parse_requirement({"type": "perfect_score", "count": 1})

        assert not requirement.is_satisfied(AchievementSnapshot(quiz_scores=(99,)))
        assert requirement.is_satisfied(AchievementSnapshot(quiz_scores=(99, 100)))

    def test_high_score(self):
        requirement = parse_requirement({"type": "high_score", "threshold": 90, "count": 2})

        assert not requirement.is_satisfied(AchievementSnapshot(quiz_scores=(95, 89)))
        assert requirement.is_satisfied(AchievementSnapshot(quiz_scores=(95, 90)))

    def test_avg_score_needs_count_and_average(self):
        requirement = parse_requirement({"type": "avg_score", "threshold": 80, "count": 3})

        assert isinstance(requirement, AvgScoreRequirement)
        assert not requirement.is_satisfied(AchievementSnapshot(quiz_scores=(100, 100)))
        assert not requirement.is_satisfied(AchievementSnapshot(quiz_scores=(100, 70, 60)))
        assert requirement.is_satisfied(AchievementSnapshot(quiz_scores=(100, 80, 60)))

    def test_daily_streak(self):
        requirement = parse_requirement({"type": "daily_streak", "count": 7})

        assert not requirement.is_satisfied(AchievementSnapshot(current_streak=6))
        assert requirement.is_satisfied(AchievementSnapshot(current_streak=7))

    def test_mastery_score(self):
        requirement = parse_requirement({"type": "mastery_score", "threshold": 90})

        assert not requirement.is_satisfied(AchievementSnapshot(mastery_averages=(89, 50)))
        assert requirement.is_satisfied(AchievementSnapshot(mastery_averages=(89, 90)))

    def test_multi_mastery(self):
        requirement = parse_requirement({"type": "multi_mastery", "threshold": 80, "areas": 2})

        assert not requirement.is_satisfied(AchievementSnapshot(mastery_averages=(80, 79)))
        assert requirement.is_satisfied(AchievementSnapshot(mastery_averages=(80, 95, 10)))

    def test_study_guide(self):
        requirement = parse_requirement({"type": "study_guide", "count": 1})

        assert not requirement.is_satisfied(AchievementSnapshot())
        assert requirement.is_satisfied(AchievementSnapshot(study_guide_count=1))

    def test_review_sessions(self):
        requirement = parse_requirement({"type": "review_sessions", "count": 2})

        assert not requirement.is_satisfied(AchievementSnapshot(review_quiz_count=1))
        assert requirement.is_satisfied(AchievementSnapshot(review_quiz_count=2))

    def test_questions_answered(self):
        requirement = parse_requirement({"type": "questions_answered", "count": 100})

        assert not requirement.is_satisfied(AchievementSnapshot(total_correct_answers=99))
        assert requirement.is_satisfied(AchievementSnapshot(total_correct_answers=100))

    def test_total_points(self):
        requirement = parse_requirement({"type": "total_points", "count": 500})

        assert not requirement.is_satisfied(AchievementSnapshot(total_points=499))
        assert requirement.is_satisfied(AchievementSnapshot(total_points=500))


class TestRequirementProgress:
    """Test progress previews."""

    def test_count_progress_text(self):
        requirement = parse_requirement({"type": "quiz_completed", "count": 10})

        assert requirement.progress(AchievementSnapshot(quiz_scores=(1, 2, 3))) == (
            30, "3/10 quizzes completed"
        )

    def test_progress_capped_at_100(self):
        requirement = parse_requirement({"type": "daily_streak", "count": 3})

        percent, _ = requirement.progress(AchievementSnapshot(current_streak=30))
        assert percent == 100

    def test_mastery_progress_uses_best_topic(self):
        requirement = parse_requirement({"type": "mastery_score", "threshold": 80})

        percent, text = requirement.progress(AchievementSnapshot(mastery_averages=(20, 40)))
        assert percent == 50
        assert "40%" in text


class TestBadgeCatalog:
    """Test the seeded badge catalog."""

    def test_categories_and_rarities_are_recognized(self):
        for badge in BADGE_CATALOG:
            assert badge["category"] in BADGE_CATEGORIES, badge["name"]
            assert badge["rarity"] in BADGE_RARITIES, badge["name"]

    def test_names_are_unique(self):
        names = [badge["name"] for badge in BADGE_CATALOG]
        assert len(names) == len(set(names))

    def test_every_requirement_type_is_covered(self):
        types = {badge["requirement"]["type"] for badge in BADGE_CATALOG}
        assert types == {
            "quiz_completed", "perfect_score", "high_score", "avg_score",
            "daily_streak", "mastery_score", "multi_mastery", "study_guide",
            "review_sessions", "questions_answered", "total_points",
        }

    def test_seeding_is_idempotent(self, test_db):
        assert seed_badges(test_db) == len(BADGE_CATALOG)
        assert seed_badges(test_db) == 0
        assert test_db.query(Badge).count() == len(BADGE_CATALOG)
