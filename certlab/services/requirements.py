"""Badge requirement variants and the user snapshot they are checked against.

A badge's JSON requirement is parsed into one of the models below using its
"type" tag. Anything that fails to parse (unknown tag, missing or invalid
fields) yields None and the badge is treated as never satisfiable.
"""
import logging
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from certlab.services.mastery import round_percent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AchievementSnapshot:
    """Everything badge checks may read, gathered once per evaluation."""
    quiz_scores: Tuple[int, ...] = ()
    review_quiz_count: int = 0
    total_correct_answers: int = 0
    current_streak: int = 0
    total_points: int = 0
    mastery_averages: Tuple[int, ...] = ()
    study_guide_count: int = 0

    @property
    def completed_quiz_count(self) -> int:
        return len(self.quiz_scores)

    @property
    def average_score(self) -> float:
        if not self.quiz_scores:
            return 0.0
        return sum(self.quiz_scores) / len(self.quiz_scores)


def _percent(current: float, target: float) -> int:
    if target <= 0:
        return 100
    return min(100, round_percent(current / target * 100))


class CountRequirement(BaseModel):
    """Requirement met once a measured count reaches `count`."""
    model_config = ConfigDict(frozen=True)

    count: int = Field(..., ge=1)
    unit: ClassVar[str] = "items"

    def measure(self, snapshot: AchievementSnapshot) -> int:
        raise NotImplementedError

    def is_satisfied(self, snapshot: AchievementSnapshot) -> bool:
        return self.measure(snapshot) >= self.count

    def progress(self, snapshot: AchievementSnapshot) -> Tuple[int, str]:
        current = self.measure(snapshot)
        return _percent(current, self.count), f"{current}/{self.count} {self.unit}"


class QuizCompletedRequirement(CountRequirement):
    type: Literal["quiz_completed"]
    unit: ClassVar[str] = "quizzes completed"

    def measure(self, snapshot):
        return snapshot.completed_quiz_count


class PerfectScoreRequirement(CountRequirement):
    type: Literal["perfect_score"]
    unit: ClassVar[str] = "perfect scores"

    def measure(self, snapshot):
        return sum(1 for score in snapshot.quiz_scores if score == 100)


class HighScoreRequirement(CountRequirement):
    type: Literal["high_score"]
    threshold: int = Field(..., ge=0, le=100)
    count: int = Field(1, ge=1)

    def measure(self, snapshot):
        return sum(1 for score in snapshot.quiz_scores if score >= self.threshold)

    def progress(self, snapshot):
        current = self.measure(snapshot)
        return (
            _percent(current, self.count),
            f"{current}/{self.count} quizzes scored {self.threshold}% or higher"
        )


class AvgScoreRequirement(CountRequirement):
    type: Literal["avg_score"]
    threshold: int = Field(..., ge=0, le=100)

    def measure(self, snapshot):
        return snapshot.completed_quiz_count

    def is_satisfied(self, snapshot):
        return (
            snapshot.completed_quiz_count >= self.count
            and snapshot.average_score >= self.threshold
        )

    def progress(self, snapshot):
        average = snapshot.average_score
        percent = min(
            _percent(snapshot.completed_quiz_count, self.count),
            _percent(average, self.threshold)
        )
        return percent, (
            f"Average {round_percent(average)}% over {snapshot.completed_quiz_count} quizzes "
            f"(target: {self.threshold}% over {self.count})"
        )


class DailyStreakRequirement(CountRequirement):
    type: Literal["daily_streak"]
    unit: ClassVar[str] = "day streak"

    def measure(self, snapshot):
        return snapshot.current_streak


class MasteryScoreRequirement(BaseModel):
    """At least one topic with a rolling average at or above threshold."""
    model_config = ConfigDict(frozen=True)

    type: Literal["mastery_score"]
    threshold: int = Field(..., ge=0, le=100)

    def is_satisfied(self, snapshot: AchievementSnapshot) -> bool:
        return any(average >= self.threshold for average in snapshot.mastery_averages)

    def progress(self, snapshot: AchievementSnapshot) -> Tuple[int, str]:
        best = max(snapshot.mastery_averages, default=0)
        return (
            _percent(best, self.threshold),
            f"Best topic mastery: {best}% (target: {self.threshold}%)"
        )


class MultiMasteryRequirement(BaseModel):
    """At least `areas` topics with a rolling average at or above threshold."""
    model_config = ConfigDict(frozen=True)

    type: Literal["multi_mastery"]
    threshold: int = Field(..., ge=0, le=100)
    areas: int = Field(..., ge=1)

    def measure(self, snapshot: AchievementSnapshot) -> int:
        return sum(1 for average in snapshot.mastery_averages if average >= self.threshold)

    def is_satisfied(self, snapshot: AchievementSnapshot) -> bool:
        return self.measure(snapshot) >= self.areas

    def progress(self, snapshot: AchievementSnapshot) -> Tuple[int, str]:
        current = self.measure(snapshot)
        return (
            _percent(current, self.areas),
            f"{current}/{self.areas} areas at {self.threshold}% mastery"
        )


class StudyGuideRequirement(CountRequirement):
    type: Literal["study_guide"]
    unit: ClassVar[str] = "study guides generated"

    def measure(self, snapshot):
        return snapshot.study_guide_count


class ReviewSessionsRequirement(CountRequirement):
    type: Literal["review_sessions"]
    unit: ClassVar[str] = "review sessions"

    def measure(self, snapshot):
        return snapshot.review_quiz_count


class QuestionsAnsweredRequirement(CountRequirement):
    type: Literal["questions_answered"]
    unit: ClassVar[str] = "correct answers"

    def measure(self, snapshot):
        return snapshot.total_correct_answers


class TotalPointsRequirement(CountRequirement):
    type: Literal["total_points"]
    unit: ClassVar[str] = "points earned"

    def measure(self, snapshot):
        return snapshot.total_points


BadgeRequirement = Annotated[
    Union[
        QuizCompletedRequirement,
        PerfectScoreRequirement,
        HighScoreRequirement,
        AvgScoreRequirement,
        DailyStreakRequirement,
        MasteryScoreRequirement,
        MultiMasteryRequirement,
        StudyGuideRequirement,
        ReviewSessionsRequirement,
        QuestionsAnsweredRequirement,
        TotalPointsRequirement,
    ],
    Field(discriminator="type"),
]

_requirement_adapter = TypeAdapter(BadgeRequirement)


def parse_requirement(raw: Any, badge_id: Optional[int] = None) -> Optional[BadgeRequirement]:
    """
    Parse a badge's stored requirement.

    Args:
        raw: The JSON requirement, e.g. {"type": "high_score", "threshold": 90}
        badge_id: Badge id, for logging only

    Returns:
        A requirement model, or None when the requirement is unknown or malformed
    """
    try:
        return _requirement_adapter.validate_python(raw)
    except ValidationError as e:
        logger.warning(
            f"Skipping badge with unusable requirement {raw!r}: {e.error_count()} error(s)",
            extra={"badge_id": badge_id}
        )
        return None
