"""Record access helpers keyed by typed composite keys.

Services never build string keys; every lookup goes through a NamedTuple key
so that (user, category, subcategory) triples cannot be formatted
inconsistently. Write failures surface as StorageError.
"""
import logging
from typing import Iterable, List, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from certlab.db.models import (
    Badge, CategoryProgress, MasteryScore, Quiz, StudyGuide, UserBadge, UserGameStats,
)
from certlab.exceptions import StorageError

logger = logging.getLogger(__name__)


class MasteryKey(NamedTuple):
    """Identifies one MasteryScore row."""
    user_id: str
    category_id: int
    subcategory_id: int


class ProgressKey(NamedTuple):
    """Identifies one CategoryProgress row."""
    user_id: str
    category_id: int


def flush(db: Session) -> None:
    """Flush pending changes, translating driver errors into StorageError."""
    try:
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Flush failed: {e}")
        raise StorageError(str(e)) from e


def commit(db: Session) -> None:
    """Commit the current transaction, translating driver errors into StorageError."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Commit failed: {e}")
        raise StorageError(str(e)) from e


# Mastery scores

def get_mastery_record(db: Session, key: MasteryKey) -> Optional[MasteryScore]:
    return db.query(MasteryScore).filter(
        MasteryScore.user_id == key.user_id,
        MasteryScore.category_id == key.category_id,
        MasteryScore.subcategory_id == key.subcategory_id,
    ).first()


def list_mastery_records(
    db: Session,
    user_id: str,
    category_id: Optional[int] = None
) -> List[MasteryScore]:
    """All mastery records for a user, optionally limited to one category."""
    query = db.query(MasteryScore).filter(MasteryScore.user_id == user_id)
    if category_id is not None:
        query = query.filter(MasteryScore.category_id == category_id)
    return query.order_by(MasteryScore.category_id, MasteryScore.subcategory_id).all()


# Category progress

def get_category_progress(db: Session, key: ProgressKey) -> Optional[CategoryProgress]:
    return db.query(CategoryProgress).filter(
        CategoryProgress.user_id == key.user_id,
        CategoryProgress.category_id == key.category_id,
    ).first()


def list_category_progress(
    db: Session,
    user_id: str,
    category_ids: Iterable[int]
) -> List[CategoryProgress]:
    ids = list(category_ids)
    if not ids:
        return []
    return db.query(CategoryProgress).filter(
        CategoryProgress.user_id == user_id,
        CategoryProgress.category_id.in_(ids),
    ).order_by(CategoryProgress.category_id).all()


# Game stats

def get_game_stats(db: Session, user_id: str) -> Optional[UserGameStats]:
    return db.query(UserGameStats).filter(UserGameStats.user_id == user_id).first()


def get_or_create_game_stats(db: Session, user_id: str) -> UserGameStats:
    """Get or lazily create the user's game stats row (level 1, no points)."""
    stats = get_game_stats(db, user_id)
    if stats is None:
        stats = UserGameStats(
            user_id=user_id,
            total_points=0,
            current_streak=0,
            longest_streak=0,
            last_activity_date=None,
            total_badges_earned=0,
            level=1,
            next_level_points=100,
        )
        db.add(stats)
        flush(db)
    return stats


# Badges

def list_badges(db: Session) -> List[Badge]:
    return db.query(Badge).order_by(Badge.id).all()


def list_user_badges(db: Session, user_id: str) -> List[UserBadge]:
    return db.query(UserBadge).filter(
        UserBadge.user_id == user_id
    ).order_by(UserBadge.badge_id).all()


def get_user_badge(db: Session, user_id: str, badge_id: int) -> Optional[UserBadge]:
    return db.query(UserBadge).filter(
        UserBadge.user_id == user_id,
        UserBadge.badge_id == badge_id,
    ).first()


# Quiz history

def get_quiz(db: Session, user_id: str, quiz_id: int) -> Optional[Quiz]:
    return db.query(Quiz).filter(Quiz.id == quiz_id, Quiz.user_id == user_id).first()


def list_completed_quizzes(db: Session, user_id: str) -> List[Quiz]:
    return db.query(Quiz).filter(
        Quiz.user_id == user_id,
        Quiz.completed_at.isnot(None),
    ).order_by(Quiz.completed_at, Quiz.id).all()


def count_study_guides(db: Session, user_id: str) -> int:
    return db.query(StudyGuide).filter(StudyGuide.user_id == user_id).count()
