"""Quiz submission, mastery and adaptive progress endpoints."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from certlab.constants import MIN_DIFFICULTY, SUBMISSION_RATE_LIMIT
from certlab.db.database import get_db
from certlab.db.models import CategoryProgress, MasteryScore
from certlab.db.repository import ProgressKey, get_category_progress, list_badges, list_mastery_records
from certlab.rate_limit import limiter
from certlab.routers.session import get_user_id_from_cookie
from certlab.services.adaptive import adaptive_question_count
from certlab.services.aggregation import (
    category_mastery,
    certification_mastery_scores,
    overall_mastery,
)
from certlab.services.mastery import get_mastery_state
from certlab.services.outcomes import AnswerOutcome, QuizSubmissionResult
from certlab.services.submission import process_quiz_submission

router = APIRouter(prefix="/api/progress", tags=["progress"])


class OutcomeIn(BaseModel):
    """One graded answer."""
    question_id: int = Field(..., gt=0)
    category_id: int = Field(..., gt=0)
    subcategory_id: int = Field(..., gt=0)
    is_correct: bool


class SubmissionRequest(BaseModel):
    """Request body for a graded quiz submission."""
    quiz_id: Optional[int] = Field(None, gt=0, description="Existing quiz to complete, if any")
    category_ids: List[int] = Field(..., min_length=1)
    subcategory_ids: List[int] = Field(default_factory=list)
    mode: str = "standard"
    adaptive: bool = Field(True, description="Update per-category difficulty")
    activity_date: Optional[date] = None
    outcomes: List[OutcomeIn] = Field(..., min_length=1)

    @field_validator("mode")
    @classmethod
    def normalize_mode(cls, v):
        """Accept modes case-insensitively."""
        return v.strip().lower()


def mastery_record_to_dict(record: MasteryScore) -> dict:
    return {
        "category_id": record.category_id,
        "subcategory_id": record.subcategory_id,
        "correct_answers": record.correct_answers,
        "total_answers": record.total_answers,
        "rolling_average": record.rolling_average,
        "state": get_mastery_state(record.total_answers, record.rolling_average).value,
        "last_updated": record.last_updated.isoformat() if record.last_updated else None,
    }


def progress_to_dict(progress: CategoryProgress) -> dict:
    return {
        "category_id": progress.category_id,
        "questions_completed": progress.questions_completed,
        "adaptive_difficulty": progress.adaptive_difficulty,
        "consecutive_correct": progress.consecutive_correct,
        "consecutive_wrong": progress.consecutive_wrong,
        "weak_subcategories": list(progress.weak_subcategories or []),
        "last_quiz_date": progress.last_quiz_date.isoformat() if progress.last_quiz_date else None,
    }


@router.post("/submissions")
@limiter.limit(SUBMISSION_RATE_LIMIT)
async def submit_quiz(
    request: Request,
    submission: SubmissionRequest,
    db: Session = Depends(get_db)
):
    """
    Apply a graded quiz to the user's mastery, difficulty, streak and badges.

    Returns:
    - score and points earned
    - updated mastery records and category progress
    - newly awarded badges
    - game stats and overall mastery
    """
    user_id = get_user_id_from_cookie(request)

    result = process_quiz_submission(
        db,
        QuizSubmissionResult(
            user_id=user_id,
            quiz_id=submission.quiz_id,
            category_ids=submission.category_ids,
            subcategory_ids=submission.subcategory_ids,
            mode=submission.mode,
            outcomes=[
                AnswerOutcome(o.question_id, o.category_id, o.subcategory_id, o.is_correct)
                for o in submission.outcomes
            ],
        ),
        adaptive=submission.adaptive,
        activity_date=submission.activity_date,
    )

    badges = {badge.id: badge for badge in list_badges(db)}
    stats = result.game_stats

    return {
        "score": result.score,
        "points_earned": result.points_earned,
        "leveled_up": result.leveled_up,
        "overall_mastery": result.overall_mastery,
        "mastery": [mastery_record_to_dict(r) for r in result.mastery_records],
        "category_progress": [progress_to_dict(p) for p in result.category_progress],
        "new_badges": [
            {
                "badge_id": ub.badge_id,
                "name": badges[ub.badge_id].name,
                "points": badges[ub.badge_id].points,
                "earned_at": ub.earned_at.isoformat(),
            }
            for ub in result.new_badges
        ],
        "game_stats": {
            "total_points": stats.total_points,
            "level": stats.level,
            "next_level_points": stats.next_level_points,
            "current_streak": stats.current_streak,
            "longest_streak": stats.longest_streak,
        },
    }


@router.get("/mastery")
async def get_mastery_overview(request: Request, db: Session = Depends(get_db)):
    """Overall mastery plus one score per category the user has answered."""
    user_id = get_user_id_from_cookie(request)

    return {
        "overall_mastery": overall_mastery(db, user_id),
        "categories": certification_mastery_scores(db, user_id),
    }


@router.get("/mastery/{category_id}")
async def get_category_mastery(
    category_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """Mastery for one category with its per-subcategory records."""
    user_id = get_user_id_from_cookie(request)

    return {
        "category_id": category_id,
        "mastery_score": category_mastery(db, user_id, category_id),
        "subcategories": [
            mastery_record_to_dict(r) for r in list_mastery_records(db, user_id, category_id)
        ],
    }


@router.get("/adaptive-count")
async def get_adaptive_count(
    request: Request,
    base_count: int = Query(..., ge=1, description="Requested number of questions"),
    category_ids: List[int] = Query(..., description="Categories the quiz draws from"),
    db: Session = Depends(get_db)
):
    """Question count adjusted to the user's recent performance."""
    user_id = get_user_id_from_cookie(request)

    return {
        "base_count": base_count,
        "question_count": adaptive_question_count(db, user_id, base_count, category_ids),
    }


@router.get("/categories/{category_id}")
async def get_category_state(
    category_id: int,
    request: Request,
    db: Session = Depends(get_db)
):
    """Adaptive state for one category; cold-start defaults when never attempted."""
    user_id = get_user_id_from_cookie(request)

    progress = get_category_progress(db, ProgressKey(user_id, category_id))
    if progress is None:
        return {
            "category_id": category_id,
            "questions_completed": 0,
            "adaptive_difficulty": MIN_DIFFICULTY,
            "consecutive_correct": 0,
            "consecutive_wrong": 0,
            "weak_subcategories": [],
            "last_quiz_date": None,
        }
    return progress_to_dict(progress)
