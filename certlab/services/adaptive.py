"""Adaptive difficulty and question-count adjustment per category."""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from certlab.config import settings
from certlab.constants import (
    MIN_DIFFICULTY,
    MAX_DIFFICULTY,
    WEAK_SUBCATEGORY_MIN_ANSWERS,
    WEAK_SUBCATEGORY_ACCURACY,
    LOW_DIFFICULTY_CEILING,
    RECENT_OUTCOME_WINDOW,
    RAISE_DIFFICULTY_AFTER_CORRECT,
    LOWER_DIFFICULTY_AFTER_WRONG,
    STRUGGLE_BONUS,
    LOW_DIFFICULTY_BONUS,
    MAX_QUESTION_MULTIPLIER,
)
from certlab.db.models import CategoryProgress
from certlab.db.repository import (
    ProgressKey, flush, get_category_progress, list_category_progress,
)
from certlab.exceptions import InvalidInputError
from certlab.services.outcomes import AnswerOutcome, validate_outcomes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdaptivePolicy:
    """Thresholds and multipliers used by the difficulty controller."""
    recent_window: int = RECENT_OUTCOME_WINDOW
    raise_after_correct: int = RAISE_DIFFICULTY_AFTER_CORRECT
    lower_after_wrong: int = LOWER_DIFFICULTY_AFTER_WRONG
    weak_min_answers: int = WEAK_SUBCATEGORY_MIN_ANSWERS
    weak_accuracy: float = WEAK_SUBCATEGORY_ACCURACY
    struggle_bonus: float = STRUGGLE_BONUS
    low_difficulty_bonus: float = LOW_DIFFICULTY_BONUS
    low_difficulty_ceiling: float = LOW_DIFFICULTY_CEILING
    max_multiplier: float = MAX_QUESTION_MULTIPLIER

    @classmethod
    def from_settings(cls) -> "AdaptivePolicy":
        """Build a policy from environment-backed settings."""
        return cls(
            recent_window=settings.ADAPTIVE_RECENT_WINDOW,
            raise_after_correct=settings.ADAPTIVE_RAISE_AFTER_CORRECT,
            lower_after_wrong=settings.ADAPTIVE_LOWER_AFTER_WRONG,
            struggle_bonus=settings.ADAPTIVE_STRUGGLE_BONUS,
            low_difficulty_bonus=settings.ADAPTIVE_LOW_DIFFICULTY_BONUS,
            max_multiplier=settings.ADAPTIVE_MAX_MULTIPLIER,
        )


def trailing_run(outcomes: Sequence[AnswerOutcome]) -> Tuple[bool, int]:
    """
    Measure the run of identical results at the end of an outcome list.

    Args:
        outcomes: Outcomes ordered oldest first (non-empty)

    Returns:
        (is_correct, length) of the trailing run
    """
    last = outcomes[-1].is_correct
    length = 0
    for outcome in reversed(outcomes):
        if outcome.is_correct != last:
            break
        length += 1
    return last, length


def detect_weak_subcategories(
    outcomes: Sequence[AnswerOutcome],
    min_answers: int = WEAK_SUBCATEGORY_MIN_ANSWERS,
    accuracy_threshold: float = WEAK_SUBCATEGORY_ACCURACY
) -> List[int]:
    """
    Find subcategories answered poorly within this batch.

    A subcategory is weak when it has at least min_answers outcomes in the
    batch and fewer than accuracy_threshold of them are correct.

    Returns:
        Sorted list of weak subcategory ids
    """
    tallies: Dict[int, List[int]] = {}
    for outcome in outcomes:
        tally = tallies.setdefault(outcome.subcategory_id, [0, 0])
        tally[0] += 1 if outcome.is_correct else 0
        tally[1] += 1

    return sorted(
        subcategory_id
        for subcategory_id, (correct, total) in tallies.items()
        if total >= min_answers and correct / total < accuracy_threshold
    )


def next_difficulty(
    current: int,
    consecutive_correct: int,
    consecutive_wrong: int,
    policy: AdaptivePolicy
) -> int:
    """Raise on a long correct run, lower on a wrong run, otherwise keep."""
    if consecutive_correct >= policy.raise_after_correct:
        return min(MAX_DIFFICULTY, current + 1)
    if consecutive_wrong >= policy.lower_after_wrong:
        return max(MIN_DIFFICULTY, current - 1)
    return current


def update_progress(
    db: Session,
    user_id: str,
    category_id: int,
    recent_outcomes: Sequence[AnswerOutcome],
    policy: Optional[AdaptivePolicy] = None
) -> CategoryProgress:
    """
    Recompute a category's adaptive state from a submission's outcomes.

    Only the last policy.recent_window outcomes are inspected. The trailing
    run sets consecutive_correct or consecutive_wrong (the other resets to 0),
    which may move difficulty one step. Weak subcategories are replaced, not
    merged, with those detected in the inspected outcomes.

    Args:
        db: Database session
        user_id: User id
        category_id: Category the outcomes belong to
        recent_outcomes: Outcomes ordered oldest first
        policy: Thresholds; defaults to AdaptivePolicy.from_settings()

    Returns:
        The updated CategoryProgress

    Raises:
        InvalidInputError: on an empty list or outcomes from another category
    """
    policy = policy or AdaptivePolicy.from_settings()
    validate_outcomes(recent_outcomes)
    for outcome in recent_outcomes:
        if outcome.category_id != category_id:
            raise InvalidInputError(
                f"Outcome for question {outcome.question_id} belongs to category "
                f"{outcome.category_id}, not {category_id}"
            )

    window = list(recent_outcomes)[-policy.recent_window:]
    run_correct, run_length = trailing_run(window)

    key = ProgressKey(user_id, category_id)
    progress = get_category_progress(db, key)
    if progress is None:
        progress = CategoryProgress(
            user_id=user_id,
            category_id=category_id,
            questions_completed=0,
            adaptive_difficulty=MIN_DIFFICULTY,
            consecutive_correct=0,
            consecutive_wrong=0,
            weak_subcategories=[],
        )
        db.add(progress)

    progress.consecutive_correct = run_length if run_correct else 0
    progress.consecutive_wrong = 0 if run_correct else run_length

    previous = progress.adaptive_difficulty
    progress.adaptive_difficulty = next_difficulty(
        previous,
        progress.consecutive_correct,
        progress.consecutive_wrong,
        policy
    )
    progress.weak_subcategories = detect_weak_subcategories(
        window,
        policy.weak_min_answers,
        policy.weak_accuracy
    )
    progress.questions_completed += len(recent_outcomes)
    progress.last_quiz_date = datetime.utcnow()

    flush(db)

    if progress.adaptive_difficulty != previous:
        logger.info(
            f"Difficulty for category {category_id} moved {previous} -> "
            f"{progress.adaptive_difficulty}",
            extra={"user_id": user_id, "category_id": category_id}
        )

    return progress


def adaptive_question_count(
    db: Session,
    user_id: str,
    base_count: int,
    category_ids: Iterable[int],
    policy: Optional[AdaptivePolicy] = None
) -> int:
    """
    Scale a quiz's question count to the user's recent performance.

    Cold start (no progress for any requested category) returns base_count.
    Otherwise the multiplier starts at 1.0, gains struggle_bonus when any
    category is on a wrong streak and low_difficulty_bonus when the average
    difficulty is low. The result is ceil(base_count * multiplier), capped at
    max_multiplier * base_count.

    Args:
        db: Database session
        user_id: User id
        base_count: Requested number of questions (>= 1)
        category_ids: Categories the quiz draws from
        policy: Thresholds; defaults to AdaptivePolicy.from_settings()

    Returns:
        Adjusted question count
    """
    policy = policy or AdaptivePolicy.from_settings()
    if isinstance(base_count, bool) or not isinstance(base_count, int) or base_count < 1:
        raise InvalidInputError(f"base_count must be a positive integer, got {base_count!r}")

    progress_rows = list_category_progress(db, user_id, category_ids)
    if not progress_rows:
        return base_count

    avg_difficulty = sum(p.adaptive_difficulty for p in progress_rows) / len(progress_rows)
    max_consecutive_wrong = max(p.consecutive_wrong for p in progress_rows)

    multiplier = 1.0
    if max_consecutive_wrong >= policy.lower_after_wrong:
        multiplier += policy.struggle_bonus
    if avg_difficulty <= policy.low_difficulty_ceiling:
        multiplier += policy.low_difficulty_bonus

    # Round away float noise so 10 * 1.8 gives 18, not 19
    adjusted = math.ceil(round(base_count * multiplier, 9))
    cap = math.floor(base_count * policy.max_multiplier)
    return min(adjusted, cap)
