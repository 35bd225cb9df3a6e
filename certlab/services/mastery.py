"""Mastery score accumulation and state determination."""
import logging
import math
from collections import OrderedDict
from datetime import datetime
from enum import Enum
from typing import List, Sequence, Tuple

from sqlalchemy.orm import Session

from certlab.constants import (
    MASTERY_MAX_PERCENT,
    PROFICIENT_MIN_AVERAGE,
    MASTERED_MIN_AVERAGE,
    MASTERED_MIN_ANSWERS,
)
from certlab.db.models import MasteryScore
from certlab.db.repository import MasteryKey, flush, get_mastery_record
from certlab.exceptions import InvalidInputError
from certlab.services.outcomes import AnswerOutcome, validate_outcomes

logger = logging.getLogger(__name__)


class MasteryState(str, Enum):
    """Mastery state for a topic."""
    UNSEEN = "unseen"
    LEARNING = "learning"
    PROFICIENT = "proficient"
    MASTERED = "mastered"


def round_percent(value: float) -> int:
    """Round half up, so 62.5 becomes 63 rather than Python's banker's 62."""
    return int(math.floor(value + 0.5))


def calculate_rolling_average(correct_answers: int, total_answers: int) -> int:
    """
    Calculate the rolling average for a topic from its counters.

    Formula:
    - round(100 * correct_answers / total_answers)
    - 0 when total_answers == 0

    Args:
        correct_answers: Correct answers recorded for the topic
        total_answers: All answers recorded for the topic

    Returns:
        Integer percentage between 0 and 100
    """
    if total_answers <= 0:
        return 0
    return round_percent(MASTERY_MAX_PERCENT * correct_answers / total_answers)


def get_mastery_state(total_answers: int, rolling_average: int) -> MasteryState:
    """
    Determine mastery state for display.

    States:
    - UNSEEN: no answers recorded
    - MASTERED: at least 10 answers AND rolling average >= 90
    - PROFICIENT: rolling average >= 70
    - LEARNING: anything else

    Args:
        total_answers: Answers backing the topic
        rolling_average: Topic rolling average (0-100)

    Returns:
        MasteryState enum value
    """
    if total_answers == 0:
        return MasteryState.UNSEEN

    if total_answers >= MASTERED_MIN_ANSWERS and rolling_average >= MASTERED_MIN_AVERAGE:
        return MasteryState.MASTERED

    if rolling_average >= PROFICIENT_MIN_AVERAGE:
        return MasteryState.PROFICIENT

    return MasteryState.LEARNING


def _validate_counts(correct_count: int, total_count: int) -> None:
    for name, value in (("correct_count", correct_count), ("total_count", total_count)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if total_count < 1:
        raise InvalidInputError(f"total_count must be at least 1, got {total_count}")
    if correct_count < 0 or correct_count > total_count:
        raise InvalidInputError(
            f"correct_count must be between 0 and {total_count}, got {correct_count}"
        )


def apply_bulk(
    db: Session,
    user_id: str,
    category_id: int,
    subcategory_id: int,
    correct_count: int,
    total_count: int
) -> MasteryScore:
    """
    Add a batch of answers to a topic's mastery counters.

    Creates the record on first use. The rolling average is always
    recomputed from the counters after they change.

    Args:
        db: Database session
        user_id: User id
        category_id: Certification category
        subcategory_id: Topic within the category
        correct_count: Correct answers in the batch
        total_count: Answers in the batch (>= 1)

    Returns:
        The updated MasteryScore

    Raises:
        InvalidInputError: on invalid counts, before any mutation
    """
    _validate_counts(correct_count, total_count)

    key = MasteryKey(user_id, category_id, subcategory_id)
    record = get_mastery_record(db, key)

    if record is None:
        record = MasteryScore(
            user_id=user_id,
            category_id=category_id,
            subcategory_id=subcategory_id,
            correct_answers=correct_count,
            total_answers=total_count,
        )
        db.add(record)
    else:
        record.total_answers += total_count
        record.correct_answers += correct_count

    record.rolling_average = calculate_rolling_average(
        record.correct_answers,
        record.total_answers
    )
    record.last_updated = datetime.utcnow()

    flush(db)

    logger.debug(
        f"Mastery updated for {key}: {record.correct_answers}/{record.total_answers} "
        f"({record.rolling_average}%)",
        extra={"user_id": user_id, "category_id": category_id}
    )
    return record


def apply_single(
    db: Session,
    user_id: str,
    category_id: int,
    subcategory_id: int,
    is_correct: bool
) -> MasteryScore:
    """Record one answer; same as apply_bulk with a batch of one."""
    return apply_bulk(db, user_id, category_id, subcategory_id, 1 if is_correct else 0, 1)


def group_outcomes_by_topic(
    outcomes: Sequence[AnswerOutcome]
) -> "OrderedDict[Tuple[int, int], Tuple[int, int]]":
    """Collapse outcomes into (correct, total) per (category, subcategory), first-seen order."""
    grouped: "OrderedDict[Tuple[int, int], Tuple[int, int]]" = OrderedDict()
    for outcome in outcomes:
        topic = (outcome.category_id, outcome.subcategory_id)
        correct, total = grouped.get(topic, (0, 0))
        grouped[topic] = (correct + (1 if outcome.is_correct else 0), total + 1)
    return grouped


def apply_outcomes(
    db: Session,
    user_id: str,
    outcomes: Sequence[AnswerOutcome]
) -> List[MasteryScore]:
    """
    Apply every outcome of a submission, one bulk update per topic.

    The whole list is validated before the first counter changes.

    Returns:
        Updated MasteryScore records in first-seen topic order
    """
    validate_outcomes(outcomes)

    return [
        apply_bulk(db, user_id, category_id, subcategory_id, correct, total)
        for (category_id, subcategory_id), (correct, total)
        in group_outcomes_by_topic(outcomes).items()
    ]
