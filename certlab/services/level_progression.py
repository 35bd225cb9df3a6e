"""Points-based level progression and quiz point awards."""
import logging
from typing import Dict

from sqlalchemy.orm import Session

from certlab.constants import (
    POINTS_PER_LEVEL_STEP,
    QUIZ_COMPLETION_POINTS,
    CORRECT_ANSWER_POINTS,
    PASSING_SCORE,
    PASSING_BONUS_POINTS,
    PERFECT_SCORE_BONUS_POINTS,
)
from certlab.db.models import Quiz, UserGameStats
from certlab.db.repository import flush, get_or_create_game_stats
from certlab.exceptions import InvalidInputError

logger = logging.getLogger(__name__)


def points_for_level(level: int) -> int:
    """
    Cumulative points required to reach a level.

    Level L needs sum(i * 100 for i in 1..L-1): level 2 at 100, level 3 at
    300, level 4 at 600.
    """
    if level <= 1:
        return 0
    return POINTS_PER_LEVEL_STEP * level * (level - 1) // 2


def calculate_level(points: int) -> int:
    """
    Greatest level whose cumulative threshold does not exceed points.

    Args:
        points: Total points earned (>= 0)

    Returns:
        Level, starting at 1
    """
    if points < 0:
        raise InvalidInputError(f"points must be non-negative, got {points}")

    level = 1
    while points_for_level(level + 1) <= points:
        level += 1
    return level


def next_level_points(level: int) -> int:
    """Cumulative points at which the level after `level` starts."""
    return points_for_level(level + 1)


def get_level_progress(points: int) -> Dict:
    """
    Get progress toward the next level.

    Args:
        points: Total points earned

    Returns:
        Dictionary with level progress:
        {
            "level": 2,
            "total_points": 150,
            "current_level_points": 100,
            "next_level_points": 300,
            "points_to_next_level": 150,
            "progress_percentage": 25.0
        }
    """
    level = calculate_level(points)
    floor_points = points_for_level(level)
    ceiling_points = next_level_points(level)
    span = ceiling_points - floor_points

    return {
        "level": level,
        "total_points": points,
        "current_level_points": floor_points,
        "next_level_points": ceiling_points,
        "points_to_next_level": ceiling_points - points,
        "progress_percentage": round((points - floor_points) / span * 100, 1)
    }


def apply_level(stats: UserGameStats) -> bool:
    """
    Recompute level fields from total points.

    Returns:
        True if the level went up
    """
    old_level = stats.level or 1
    stats.level = calculate_level(stats.total_points)
    stats.next_level_points = next_level_points(stats.level)
    return stats.level > old_level


def calculate_quiz_points(quiz: Quiz) -> int:
    """
    Points earned by a completed quiz.

    - 10 for completing the quiz
    - 5 per correct answer
    - 25 bonus for a passing score (>= 85)
    - 50 bonus for a perfect score

    Incomplete quizzes earn nothing.
    """
    if quiz.completed_at is None or quiz.score is None:
        return 0

    points = QUIZ_COMPLETION_POINTS
    points += (quiz.correct_answers or 0) * CORRECT_ANSWER_POINTS

    if quiz.score >= PASSING_SCORE:
        points += PASSING_BONUS_POINTS

    if quiz.score == 100:
        points += PERFECT_SCORE_BONUS_POINTS

    return points


def award_points(db: Session, user_id: str, points: int) -> Dict:
    """
    Add points to a user's game stats and recompute their level.

    Args:
        db: Database session
        user_id: User id
        points: Points to add (>= 0)

    Returns:
        Dictionary with award info:
        {
            "points_earned": 85,
            "total_points": 385,
            "leveled_up": True,
            "level": 3
        }
    """
    if points < 0:
        raise InvalidInputError(f"points must be non-negative, got {points}")

    stats = get_or_create_game_stats(db, user_id)
    stats.total_points += points
    leveled_up = apply_level(stats)
    flush(db)

    if leveled_up:
        logger.info(
            f"User reached level {stats.level} with {stats.total_points} points",
            extra={"user_id": user_id}
        )

    return {
        "points_earned": points,
        "total_points": stats.total_points,
        "leveled_up": leveled_up,
        "level": stats.level
    }
