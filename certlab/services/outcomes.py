"""Graded answer outcomes and quiz submissions consumed by the engine."""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from certlab.constants import QUIZ_MODES
from certlab.exceptions import InvalidInputError


@dataclass(frozen=True)
class AnswerOutcome:
    """One graded question attempt."""
    question_id: int
    category_id: int
    subcategory_id: int
    is_correct: bool


@dataclass
class QuizSubmissionResult:
    """Per-question outcomes of one completed quiz, as produced by grading."""
    user_id: str
    category_ids: List[int]
    outcomes: List[AnswerOutcome]
    quiz_id: Optional[int] = None
    mode: str = "standard"
    subcategory_ids: List[int] = field(default_factory=list)


def validate_outcomes(outcomes: Sequence[AnswerOutcome]) -> None:
    """Reject a malformed outcome list before anything is written.

    Raises:
        InvalidInputError: if the list is empty or an element is not an
            AnswerOutcome with a boolean is_correct
    """
    if not outcomes:
        raise InvalidInputError("Outcome list must not be empty")
    for outcome in outcomes:
        if not isinstance(outcome, AnswerOutcome):
            raise InvalidInputError(f"Expected AnswerOutcome, got {type(outcome).__name__}")
        if not isinstance(outcome.is_correct, bool):
            raise InvalidInputError(
                f"Outcome for question {outcome.question_id} has non-boolean is_correct"
            )


def validate_submission(submission: QuizSubmissionResult) -> None:
    """Validate a whole submission: user, mode, outcomes and their categories."""
    if not submission.user_id:
        raise InvalidInputError("Submission has no user_id")
    if submission.mode not in QUIZ_MODES:
        raise InvalidInputError(f"Unknown quiz mode: {submission.mode}")
    validate_outcomes(submission.outcomes)

    allowed = set(submission.category_ids)
    for outcome in submission.outcomes:
        if outcome.category_id not in allowed:
            raise InvalidInputError(
                f"Outcome for question {outcome.question_id} is in category "
                f"{outcome.category_id}, which is not part of this quiz"
            )
    if submission.subcategory_ids:
        allowed_sub = set(submission.subcategory_ids)
        for outcome in submission.outcomes:
            if outcome.subcategory_id not in allowed_sub:
                raise InvalidInputError(
                    f"Outcome for question {outcome.question_id} is in subcategory "
                    f"{outcome.subcategory_id}, which is not part of this quiz"
                )
