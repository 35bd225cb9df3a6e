"""Answer-weighted roll-up of topic mastery into category and overall scores.

Each topic contributes rolling_average * total_answers to the numerator and
total_answers to the denominator, so a topic answered 200 times outweighs one
answered twice.
"""
from itertools import groupby
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from certlab.db.models import MasteryScore
from certlab.db.repository import list_mastery_records
from certlab.services.mastery import round_percent


def weighted_mastery(records: Iterable[MasteryScore]) -> int:
    """
    Weighted average of rolling averages, weighted by answer count.

    Args:
        records: MasteryScore rows (any iterable of objects with
                 rolling_average and total_answers)

    Returns:
        Integer percentage 0-100; 0 when no answers back the records
    """
    numerator = 0
    denominator = 0
    for record in records:
        numerator += record.rolling_average * record.total_answers
        denominator += record.total_answers

    if denominator == 0:
        return 0
    return round_percent(numerator / denominator)


def category_mastery(db: Session, user_id: str, category_id: int) -> int:
    """Mastery (0-100) for one category; 0 for a user with no history there."""
    return weighted_mastery(list_mastery_records(db, user_id, category_id))


def overall_mastery(db: Session, user_id: str) -> int:
    """Mastery (0-100) across every topic the user has answered."""
    return weighted_mastery(list_mastery_records(db, user_id))


def certification_mastery_scores(db: Session, user_id: str) -> List[Dict[str, int]]:
    """
    Get mastery per certification category.

    Returns:
        List sorted by category id:
        [
            {"category_id": 1, "mastery_score": 75},
            {"category_id": 4, "mastery_score": 92}
        ]
    """
    records = list_mastery_records(db, user_id)
    return [
        {"category_id": category_id, "mastery_score": weighted_mastery(group)}
        for category_id, group in groupby(records, key=lambda r: r.category_id)
    ]
