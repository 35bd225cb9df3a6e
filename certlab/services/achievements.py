"""
Achievement badge evaluation.

Checks every catalog badge the user has not yet earned against a snapshot of
their history, awards the ones now satisfied, and credits badge points to the
user's game stats.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from certlab.constants import REVIEW_QUIZ_MODES
from certlab.db.models import Badge, UserBadge
from certlab.db.repository import (
    count_study_guides,
    flush,
    get_game_stats,
    get_or_create_game_stats,
    get_user_badge,
    list_badges,
    list_completed_quizzes,
    list_mastery_records,
    list_user_badges,
)
from certlab.services.level_progression import apply_level
from certlab.services.requirements import AchievementSnapshot, parse_requirement

logger = logging.getLogger(__name__)


@dataclass
class BadgeProgress:
    """Read-only view of a user's progress toward one badge."""
    badge: Badge
    earned: bool
    progress: int
    progress_text: str


def build_snapshot(db: Session, user_id: str) -> AchievementSnapshot:
    """Gather the history badge checks read: quizzes, stats, mastery, guides."""
    quizzes = list_completed_quizzes(db, user_id)
    stats = get_game_stats(db, user_id)
    records = list_mastery_records(db, user_id)

    return AchievementSnapshot(
        quiz_scores=tuple(q.score or 0 for q in quizzes),
        review_quiz_count=sum(1 for q in quizzes if q.mode in REVIEW_QUIZ_MODES),
        total_correct_answers=sum(q.correct_answers or 0 for q in quizzes),
        current_streak=stats.current_streak if stats else 0,
        total_points=stats.total_points if stats else 0,
        mastery_averages=tuple(r.rolling_average for r in records if r.total_answers > 0),
        study_guide_count=count_study_guides(db, user_id),
    )


def award_badge(
    db: Session,
    user_id: str,
    badge: Badge,
    progress: int = 100
) -> Optional[UserBadge]:
    """
    Award a badge once per user.

    A repeated award only refreshes the stored progress and returns None.
    A first award creates the UserBadge and credits badge points, the badge
    count and the level to the user's game stats.

    Returns:
        The new UserBadge, or None if the user already had it
    """
    existing = get_user_badge(db, user_id, badge.id)
    if existing is not None:
        existing.progress = progress
        return None

    user_badge = UserBadge(
        user_id=user_id,
        badge_id=badge.id,
        progress=progress,
        earned_at=datetime.utcnow(),
        is_notified=False,
    )
    db.add(user_badge)

    stats = get_or_create_game_stats(db, user_id)
    stats.total_badges_earned += 1
    stats.total_points += badge.points or 0
    leveled_up = apply_level(stats)
    flush(db)

    logger.info(
        f"Awarded badge '{badge.name}' (+{badge.points} points)",
        extra={"user_id": user_id, "badge_id": badge.id}
    )
    if leveled_up:
        logger.info(f"User reached level {stats.level}", extra={"user_id": user_id})

    return user_badge


def evaluate(db: Session, user_id: str) -> List[UserBadge]:
    """
    Check all badge conditions and award any newly earned badges.

    Badges are checked in id order. Awards add points, so the check repeats
    until a pass awards nothing; a points-based badge unlocked by another
    badge's points is therefore awarded in the same call, and an immediate
    second call returns an empty list.

    Args:
        db: Database session
        user_id: User to check

    Returns:
        Newly awarded UserBadge records
    """
    catalog = list_badges(db)
    requirements = {badge.id: parse_requirement(badge.requirement, badge.id) for badge in catalog}
    earned_ids = {ub.badge_id for ub in list_user_badges(db, user_id)}

    newly_awarded: List[UserBadge] = []
    while True:
        snapshot = build_snapshot(db, user_id)
        awarded_this_pass = []

        for badge in catalog:
            if badge.id in earned_ids:
                continue
            requirement = requirements[badge.id]
            if requirement is None:
                continue
            if requirement.is_satisfied(snapshot):
                user_badge = award_badge(db, user_id, badge)
                if user_badge is not None:
                    awarded_this_pass.append(user_badge)
                earned_ids.add(badge.id)

        if not awarded_this_pass:
            break
        newly_awarded.extend(awarded_this_pass)

    return newly_awarded


def badge_progress(db: Session, user_id: str) -> List[BadgeProgress]:
    """
    Get the user's progress toward every badge, without awarding anything.

    Earned badges report 100 and "Completed!"; badges with an unusable
    requirement report 0 and "Unknown requirement".
    """
    snapshot = build_snapshot(db, user_id)
    earned_ids = {ub.badge_id for ub in list_user_badges(db, user_id)}

    results = []
    for badge in list_badges(db):
        if badge.id in earned_ids:
            results.append(BadgeProgress(badge, True, 100, "Completed!"))
            continue

        requirement = parse_requirement(badge.requirement, badge.id)
        if requirement is None:
            results.append(BadgeProgress(badge, False, 0, "Unknown requirement"))
            continue

        percent, text = requirement.progress(snapshot)
        results.append(BadgeProgress(badge, False, percent, text))

    return results


def mark_badges_notified(
    db: Session,
    user_id: str,
    badge_ids: Optional[Iterable[int]] = None
) -> int:
    """
    Mark earned badges as seen by the user.

    Args:
        db: Database session
        user_id: User id
        badge_ids: Limit to these badges; None marks all unnotified badges

    Returns:
        Number of badges updated
    """
    wanted = set(badge_ids) if badge_ids is not None else None
    updated = 0
    for user_badge in list_user_badges(db, user_id):
        if user_badge.is_notified:
            continue
        if wanted is not None and user_badge.badge_id not in wanted:
            continue
        user_badge.is_notified = True
        updated += 1

    if updated:
        flush(db)
    return updated
