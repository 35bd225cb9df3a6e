"""Badge catalog, badge progress and game stats endpoints."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from certlab.db.database import get_db
from certlab.db.models import Badge
from certlab.db.repository import commit, get_game_stats, list_badges, list_completed_quizzes
from certlab.routers.session import get_user_id_from_cookie
from certlab.services.achievements import badge_progress, evaluate, mark_badges_notified
from certlab.services.level_progression import get_level_progress
from certlab.services.streaks import calculate_study_streak, get_streak_milestones

router = APIRouter(prefix="/api/achievements", tags=["achievements"])


class NotifiedRequest(BaseModel):
    """Request body for acknowledging badges. Omit badge_ids to acknowledge all."""
    badge_ids: Optional[List[int]] = None


def badge_to_dict(badge: Badge) -> dict:
    return {
        "id": badge.id,
        "name": badge.name,
        "description": badge.description,
        "icon": badge.icon,
        "category": badge.category,
        "rarity": badge.rarity,
        "points": badge.points,
        "requirement": badge.requirement,
    }


@router.get("/badges")
async def get_badge_catalog(db: Session = Depends(get_db)):
    """List every badge in the catalog."""
    return {"badges": [badge_to_dict(b) for b in list_badges(db)]}


@router.get("/progress")
async def get_badge_progress(request: Request, db: Session = Depends(get_db)):
    """
    Preview the user's progress toward every badge.

    Nothing is awarded here; use POST /evaluate for that.
    """
    user_id = get_user_id_from_cookie(request)

    return {
        "badges": [
            {
                **badge_to_dict(item.badge),
                "earned": item.earned,
                "progress": item.progress,
                "progress_text": item.progress_text,
            }
            for item in badge_progress(db, user_id)
        ]
    }


@router.post("/evaluate")
async def evaluate_badges(request: Request, db: Session = Depends(get_db)):
    """Award any badges the user now qualifies for."""
    user_id = get_user_id_from_cookie(request)

    new_badges = evaluate(db, user_id)
    commit(db)

    badges = {badge.id: badge for badge in list_badges(db)}
    return {
        "new_badges": [
            {**badge_to_dict(badges[ub.badge_id]), "earned_at": ub.earned_at.isoformat()}
            for ub in new_badges
        ]
    }


@router.post("/notified")
async def acknowledge_badges(
    body: NotifiedRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Mark earned badges as shown to the user."""
    user_id = get_user_id_from_cookie(request)

    updated = mark_badges_notified(db, user_id, body.badge_ids)
    commit(db)

    return {"updated": updated}


@router.get("/stats")
async def get_game_summary(request: Request, db: Session = Depends(get_db)):
    """
    Get points, level, and streak information.

    The study streak is recomputed from quiz completion dates, so it drops to
    0 once the user has missed a full day even if no new activity was recorded.
    """
    user_id = get_user_id_from_cookie(request)

    stats = get_game_stats(db, user_id)
    total_points = stats.total_points if stats else 0
    current_streak = stats.current_streak if stats else 0

    completion_dates = [q.completed_at for q in list_completed_quizzes(db, user_id)]
    study_streak = calculate_study_streak(completion_dates, today=datetime.utcnow().date())

    return {
        "total_points": total_points,
        "total_badges_earned": stats.total_badges_earned if stats else 0,
        "current_streak": current_streak,
        "longest_streak": stats.longest_streak if stats else 0,
        "last_activity_date": (
            stats.last_activity_date.isoformat() if stats and stats.last_activity_date else None
        ),
        "study_streak": study_streak,
        "streak_milestones": get_streak_milestones(current_streak),
        "level_progress": get_level_progress(total_points),
    }
