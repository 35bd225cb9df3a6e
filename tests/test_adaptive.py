"""Tests for adaptive difficulty and question-count sizing."""
import pytest

from certlab.db.models import CategoryProgress
from certlab.exceptions import InvalidInputError
from certlab.services.adaptive import (
    AdaptivePolicy,
    adaptive_question_count,
    detect_weak_subcategories,
    next_difficulty,
    trailing_run,
    update_progress,
)

POLICY = AdaptivePolicy()


def set_progress(db, user_id, category_id, difficulty, consecutive_wrong=0):
    db.add(CategoryProgress(
        user_id=user_id,
        category_id=category_id,
        questions_completed=10,
        adaptive_difficulty=difficulty,
        consecutive_correct=0,
        consecutive_wrong=consecutive_wrong,
        weak_subcategories=[],
    ))
    db.commit()


class TestTrailingRun:
    """Test trailing run detection."""

    def test_all_correct(self, make_outcomes):
        assert trailing_run(make_outcomes("CCCC")) == (True, 4)

    def test_run_stops_at_first_change(self, make_outcomes):
        assert trailing_run(make_outcomes("CCWWW")) == (False, 3)
        assert trailing_run(make_outcomes("WWC")) == (True, 1)


class TestNextDifficulty:
    """Test single-step difficulty moves."""

    def test_raise(self):
        assert next_difficulty(2, 5, 0, POLICY) == 3

    def test_raise_capped(self):
        assert next_difficulty(5, 10, 0, POLICY) == 5

    def test_lower(self):
        assert next_difficulty(3, 0, 3, POLICY) == 2

    def test_lower_floored(self):
        assert next_difficulty(1, 0, 7, POLICY) == 1

    def test_hold(self):
        assert next_difficulty(3, 4, 0, POLICY) == 3
        assert next_difficulty(3, 0, 2, POLICY) == 3


class TestDetectWeakSubcategories:
    """Test batch-local weak subcategory detection."""

    def test_needs_minimum_answers(self, make_outcomes):
        assert detect_weak_subcategories(make_outcomes("WW")) == []

    def test_below_threshold_is_weak(self, make_outcomes):
        outcomes = (
            make_outcomes("CWW", subcategory_id=12)
            + make_outcomes("CCW", subcategory_id=11)
            + make_outcomes("WWWW", subcategory_id=10)
        )
        assert detect_weak_subcategories(outcomes) == [10, 12]


class TestUpdateProgress:
    """Test per-category progress updates."""

    def test_creates_progress_at_lowest_difficulty(self, test_db, test_user, make_outcomes):
        progress = update_progress(test_db, test_user, 1, make_outcomes("CWC"), POLICY)

        assert progress.adaptive_difficulty == 1
        assert progress.consecutive_correct == 1
        assert progress.consecutive_wrong == 0
        assert progress.questions_completed == 3
        assert progress.last_quiz_date is not None

    def test_five_trailing_correct_raises_by_one(self, test_db, test_user, make_outcomes):
        set_progress(test_db, test_user, 1, difficulty=2)

        progress = update_progress(test_db, test_user, 1, make_outcomes("WCCCCC"), POLICY)

        assert progress.consecutive_correct == 5
        assert progress.adaptive_difficulty == 3

    def test_interleaved_wrong_prevents_raise(self, test_db, test_user, make_outcomes):
        set_progress(test_db, test_user, 1, difficulty=2)

        progress = update_progress(test_db, test_user, 1, make_outcomes("CCCWCC"), POLICY)

        assert progress.consecutive_correct == 2
        assert progress.adaptive_difficulty == 2

    def test_raise_capped_at_five(self, test_db, test_user, make_outcomes):
        set_progress(test_db, test_user, 1, difficulty=5)

        progress = update_progress(test_db, test_user, 1, make_outcomes("CCCCCCCC"), POLICY)

        assert progress.adaptive_difficulty == 5

    def test_three_trailing_wrong_lowers(self, test_db, test_user, make_outcomes):
        set_progress(test_db, test_user, 1, difficulty=4)

        progress = update_progress(test_db, test_user, 1, make_outcomes("CWWW"), POLICY)

        assert progress.consecutive_wrong == 3
        assert progress.consecutive_correct == 0
        assert progress.adaptive_difficulty == 3

    def test_only_recent_window_inspected(self, test_db, test_user, make_outcomes):
        policy = AdaptivePolicy(recent_window=3)
        outcomes = make_outcomes("WWWWWCCC")

        progress = update_progress(test_db, test_user, 1, outcomes, policy)

        assert progress.consecutive_correct == 3
        assert progress.consecutive_wrong == 0
        assert progress.questions_completed == 8

    def test_weak_subcategories_replaced_each_batch(self, test_db, test_user, make_outcomes):
        update_progress(test_db, test_user, 1, make_outcomes("WWW", subcategory_id=10), POLICY)
        progress = update_progress(
            test_db, test_user, 1, make_outcomes("CCC", subcategory_id=10), POLICY
        )

        assert progress.weak_subcategories == []

    def test_rejects_other_category(self, test_db, test_user, make_outcomes):
        with pytest.raises(InvalidInputError):
            update_progress(test_db, test_user, 1, make_outcomes("CC", category_id=2), POLICY)

    def test_rejects_empty(self, test_db, test_user):
        with pytest.raises(InvalidInputError):
            update_progress(test_db, test_user, 1, [], POLICY)


class TestAdaptiveQuestionCount:
    """Test question-count sizing."""

    def test_cold_start_returns_base(self, test_db, test_user):
        assert adaptive_question_count(test_db, test_user, 10, [1, 2], POLICY) == 10

    def test_struggling_at_low_difficulty(self, test_db, test_user):
        """1.0 + 0.5 + 0.3 = 1.8, so 10 questions become 18."""
        set_progress(test_db, test_user, 1, difficulty=2, consecutive_wrong=3)

        assert adaptive_question_count(test_db, test_user, 10, [1], POLICY) == 18

    def test_low_difficulty_only(self, test_db, test_user):
        set_progress(test_db, test_user, 1, difficulty=1)

        assert adaptive_question_count(test_db, test_user, 10, [1], POLICY) == 13

    def test_no_adjustment(self, test_db, test_user):
        set_progress(test_db, test_user, 1, difficulty=4)

        assert adaptive_question_count(test_db, test_user, 10, [1], POLICY) == 10

    def test_averages_difficulty_across_categories(self, test_db, test_user):
        set_progress(test_db, test_user, 1, difficulty=1)
        set_progress(test_db, test_user, 2, difficulty=5)

        assert adaptive_question_count(test_db, test_user, 10, [1, 2], POLICY) == 10

    def test_never_exceeds_twice_base(self, test_db, test_user):
        set_progress(test_db, test_user, 1, difficulty=1, consecutive_wrong=5)
        policy = AdaptivePolicy(struggle_bonus=2.0)

        for base in (1, 3, 7, 10, 25):
            assert adaptive_question_count(test_db, test_user, base, [1], policy) <= 2 * base

    def test_rejects_invalid_base(self, test_db, test_user):
        with pytest.raises(InvalidInputError):
            adaptive_question_count(test_db, test_user, 0, [1], POLICY)
