"""Quiz submission pipeline.

Runs one graded quiz through the engine for a single user:
mastery counters -> category difficulty (adaptive mode only) -> streak ->
quiz completion and points -> badges, then commits once. A submission
without a quiz_id is recorded as a new completed quiz.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from certlab.db.models import CategoryProgress, MasteryScore, Quiz, UserBadge, UserGameStats
from certlab.db.repository import commit, flush, get_quiz
from certlab.exceptions import InvalidInputError, RecordNotFoundError
from certlab.services.achievements import evaluate
from certlab.services.adaptive import AdaptivePolicy, update_progress
from certlab.services.aggregation import overall_mastery
from certlab.services.level_progression import award_points, calculate_quiz_points
from certlab.services.mastery import apply_outcomes, round_percent
from certlab.services.outcomes import AnswerOutcome, QuizSubmissionResult, validate_submission
from certlab.services.streaks import record_activity, to_date

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Everything a submission changed, for the response serializer."""
    mastery_records: List[MasteryScore]
    category_progress: List[CategoryProgress]
    new_badges: List[UserBadge]
    game_stats: UserGameStats
    overall_mastery: int
    score: int
    points_earned: int = 0
    leveled_up: bool = False


def _outcomes_by_category(outcomes: List[AnswerOutcome]) -> Dict[int, List[AnswerOutcome]]:
    grouped: Dict[int, List[AnswerOutcome]] = {}
    for outcome in outcomes:
        grouped.setdefault(outcome.category_id, []).append(outcome)
    return grouped


def process_quiz_submission(
    db: Session,
    submission: QuizSubmissionResult,
    adaptive: bool = True,
    policy: Optional[AdaptivePolicy] = None,
    activity_date: Optional[date] = None
) -> SubmissionResult:
    """
    Apply a graded quiz to the user's mastery, progress and achievements.

    Args:
        db: Database session
        submission: Graded outcomes of one quiz
        adaptive: Recompute per-category difficulty when True
        policy: Adaptive thresholds; defaults to settings
        activity_date: Day the quiz was taken; defaults to today (UTC)

    Returns:
        SubmissionResult describing every record the submission touched

    Raises:
        InvalidInputError: when the submission is malformed (nothing is written)
        InvalidInputError: also when quiz_id names an already completed quiz
        RecordNotFoundError: when quiz_id does not belong to the user
        StorageError: when the database rejects the writes
    """
    validate_submission(submission)
    user_id = submission.user_id

    correct = sum(1 for o in submission.outcomes if o.is_correct)
    total = len(submission.outcomes)
    score = round_percent(100 * correct / total)

    try:
        quiz = None
        if submission.quiz_id is not None:
            quiz = get_quiz(db, user_id, submission.quiz_id)
            if quiz is None:
                raise RecordNotFoundError(f"Quiz {submission.quiz_id} not found for user")
            if quiz.completed_at is not None:
                raise InvalidInputError(f"Quiz {submission.quiz_id} is already completed")

        mastery_records = apply_outcomes(db, user_id, submission.outcomes)

        progress_records = []
        if adaptive:
            for category_id, outcomes in _outcomes_by_category(submission.outcomes).items():
                progress_records.append(
                    update_progress(db, user_id, category_id, outcomes, policy)
                )

        # Backdated submissions complete on their own day
        completed_at = datetime.utcnow()
        if activity_date is not None:
            completed_at = datetime.combine(to_date(activity_date), completed_at.time())

        stats = record_activity(db, user_id, activity_date)
        level_before = stats.level

        if quiz is None:
            # Submissions without a started quiz still enter the history
            quiz = Quiz(
                user_id=user_id,
                category_ids=sorted(set(submission.category_ids)),
                started_at=completed_at,
            )
            db.add(quiz)
        quiz.total_questions = total
        quiz.correct_answers = correct
        quiz.score = score
        quiz.mode = submission.mode
        quiz.completed_at = completed_at
        flush(db)
        points_earned = award_points(db, user_id, calculate_quiz_points(quiz))["points_earned"]

        new_badges = evaluate(db, user_id)
        result = SubmissionResult(
            mastery_records=mastery_records,
            category_progress=progress_records,
            new_badges=new_badges,
            game_stats=stats,
            overall_mastery=overall_mastery(db, user_id),
            score=score,
            points_earned=points_earned,
            leveled_up=stats.level > level_before,
        )
        commit(db)
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Processed submission: {correct}/{total} correct, "
        f"{len(result.new_badges)} new badge(s)",
        extra={"user_id": user_id, "quiz_id": submission.quiz_id}
    )
    return result
