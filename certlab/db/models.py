"""SQLAlchemy models for the CertLab mastery engine."""
from datetime import datetime
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Integer, JSON, String, Text,
    CheckConstraint, UniqueConstraint, Index,
)
from certlab.db.database import Base


class MasteryScore(Base):
    """Per-user rolling correctness for one (category, subcategory) topic."""
    __tablename__ = "mastery_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    category_id = Column(Integer, nullable=False)
    subcategory_id = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False, default=0)
    total_answers = Column(Integer, nullable=False, default=0)
    rolling_average = Column(Integer, nullable=False, default=0)  # 0-100
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", "subcategory_id", name="uq_mastery_topic"),
        CheckConstraint("correct_answers <= total_answers", name="ck_mastery_counts"),
        CheckConstraint("rolling_average >= 0 AND rolling_average <= 100", name="ck_mastery_average"),
        Index("idx_mastery_user_category", "user_id", "category_id"),
    )


class CategoryProgress(Base):
    """Per-user adaptive state for one category."""
    __tablename__ = "category_progress"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    category_id = Column(Integer, nullable=False)
    questions_completed = Column(Integer, nullable=False, default=0)
    adaptive_difficulty = Column(Integer, nullable=False, default=1)  # 1-5
    consecutive_correct = Column(Integer, nullable=False, default=0)
    consecutive_wrong = Column(Integer, nullable=False, default=0)
    weak_subcategories = Column(JSON, nullable=False, default=list)  # sorted subcategory ids
    last_quiz_date = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_progress_category"),
        CheckConstraint(
            "adaptive_difficulty >= 1 AND adaptive_difficulty <= 5",
            name="ck_progress_difficulty",
        ),
    )


class UserGameStats(Base):
    """Points, streak and level bookkeeping, one row per user."""
    __tablename__ = "user_game_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), unique=True, nullable=False)
    total_points = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_activity_date = Column(Date, nullable=True)
    total_badges_earned = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    next_level_points = Column(Integer, nullable=False, default=100)


class Badge(Base):
    """Achievement catalog entry. The requirement is a tagged JSON object."""
    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, unique=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    icon = Column(Text, nullable=False, default="award")
    category = Column(
        Text,
        CheckConstraint("category IN ('progress', 'performance', 'streak', 'mastery', 'special')"),
        nullable=False,
    )
    requirement = Column(JSON, nullable=False)  # e.g. {"type": "quiz_completed", "count": 5}
    points = Column(Integer, nullable=False, default=0)
    rarity = Column(Text, nullable=False, default="common")


class UserBadge(Base):
    """A badge earned by a user."""
    __tablename__ = "user_badges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    badge_id = Column(Integer, nullable=False)
    progress = Column(Integer, nullable=False, default=0)  # 0-100
    earned_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    is_notified = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
    )


class Quiz(Base):
    """A quiz session; completed quizzes form the achievement history."""
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    category_ids = Column(JSON, nullable=False, default=list)
    mode = Column(
        Text,
        CheckConstraint("mode IN ('standard', 'adaptive', 'review')"),
        nullable=False,
        default="standard",
    )
    total_questions = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    score = Column(Integer, nullable=True)  # 0-100, set on completion
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_quiz_user_completed", "user_id", "completed_at"),
    )


class StudyGuide(Base):
    """A generated study guide; only its existence matters to the engine."""
    __tablename__ = "study_guides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False)
    quiz_id = Column(Integer, nullable=True)
    title = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
