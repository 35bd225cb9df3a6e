"""Daily study streak tracking.

A streak is the number of consecutive calendar days with at least one
qualifying activity (a completed quiz). Missing a full calendar day resets it.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Optional, Union

from sqlalchemy.orm import Session

from certlab.constants import STREAK_MILESTONES
from certlab.db.models import UserGameStats
from certlab.db.repository import flush, get_or_create_game_stats
from certlab.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


def to_date(value: DateLike) -> date:
    """Truncate a datetime to its calendar date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidInputError(f"Expected a date or datetime, got {value!r}")


def record_activity(
    db: Session,
    user_id: str,
    activity_date: Optional[DateLike] = None
) -> UserGameStats:
    """
    Update a user's streak for an activity on the given day.

    - First activity ever: streak starts at 1
    - Same day as the last activity: no change
    - Day after the last activity: streak + 1
    - Any larger gap: streak restarts at 1

    An activity dated before the last recorded one counts as same-day.

    Args:
        db: Database session
        user_id: User id
        activity_date: Day of the activity; defaults to today (UTC)

    Returns:
        The updated UserGameStats
    """
    day = to_date(activity_date if activity_date is not None else datetime.utcnow())
    stats = get_or_create_game_stats(db, user_id)
    streak_increased = False

    if stats.last_activity_date is None:
        stats.current_streak = 1
        stats.last_activity_date = day
    else:
        gap = (day - stats.last_activity_date).days
        if gap == 1:
            stats.current_streak += 1
            stats.last_activity_date = day
            streak_increased = True
        elif gap > 1:
            if stats.current_streak > 0:
                logger.info(
                    f"Streak of {stats.current_streak} days broken after {gap} day gap",
                    extra={"user_id": user_id}
                )
            stats.current_streak = 1
            stats.last_activity_date = day
        # gap <= 0: already counted today

    stats.longest_streak = max(stats.longest_streak or 0, stats.current_streak)
    flush(db)

    if streak_increased and stats.current_streak in STREAK_MILESTONES:
        logger.info(
            f"Streak milestone reached: {stats.current_streak} days",
            extra={"user_id": user_id}
        )

    return stats


def calculate_study_streak(
    completion_dates: Iterable[DateLike],
    today: Optional[date] = None
) -> int:
    """
    Derive the current streak purely from completion timestamps.

    The most recent completion must be today or yesterday, otherwise the
    streak has lapsed and 0 is returned. From there, days are counted
    backward while each previous unique date is exactly one day earlier.

    Args:
        completion_dates: Completion dates or timestamps, any order
        today: Reference day; defaults to date.today()

    Returns:
        Streak length in days
    """
    today = today or date.today()
    unique_dates = sorted({to_date(d) for d in completion_dates if d is not None})
    if not unique_dates:
        return 0

    most_recent = unique_dates[-1]
    if most_recent not in (today, today - timedelta(days=1)):
        return 0

    streak = 1
    for i in range(len(unique_dates) - 1, 0, -1):
        if (unique_dates[i] - unique_dates[i - 1]).days == 1:
            streak += 1
        else:
            break
    return streak


def get_streak_milestones(current_streak: int) -> Dict[str, Optional[int]]:
    """
    Get streak milestone information.

    Returns:
        {"current": 7, "next": 14, "days_to_next": 5}
    """
    current_milestone = None
    next_milestone = None

    for milestone in STREAK_MILESTONES:
        if current_streak >= milestone:
            current_milestone = milestone
        elif next_milestone is None:
            next_milestone = milestone

    return {
        "current": current_milestone,
        "next": next_milestone,
        "days_to_next": next_milestone - current_streak if next_milestone else None
    }
