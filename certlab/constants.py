"""Application-wide constants and configuration values.

This module centralizes the policy numbers used by the mastery engine so they
can be reviewed and tuned in one place. Adaptive thresholds can additionally be
overridden through environment variables (see certlab.config).
"""

# Mastery Accumulation
MASTERY_MAX_PERCENT = 100
"""Upper bound of a rolling average."""

PROFICIENT_MIN_AVERAGE = 70
"""Rolling average (percent) at which a topic counts as proficient."""

MASTERED_MIN_AVERAGE = 90
"""Rolling average (percent) required for the MASTERED state."""

MASTERED_MIN_ANSWERS = 10
"""Minimum answers backing a topic before it can be MASTERED."""

# Adaptive Difficulty
MIN_DIFFICULTY = 1
"""Lowest adaptive difficulty level."""

MAX_DIFFICULTY = 5
"""Highest adaptive difficulty level."""

RECENT_OUTCOME_WINDOW = 10
"""Number of most recent outcomes inspected per difficulty update."""

RAISE_DIFFICULTY_AFTER_CORRECT = 5
"""Trailing correct answers required to raise difficulty by one."""

LOWER_DIFFICULTY_AFTER_WRONG = 3
"""Trailing wrong answers required to lower difficulty by one."""

WEAK_SUBCATEGORY_MIN_ANSWERS = 3
"""Minimum answers in a batch before a subcategory is judged weak."""

WEAK_SUBCATEGORY_ACCURACY = 0.6
"""Batch accuracy below which a subcategory is weak (60%)."""

# Adaptive Question Sizing
STRUGGLE_BONUS = 0.5
"""Multiplier bonus applied when a category is on a wrong streak."""

LOW_DIFFICULTY_BONUS = 0.3
"""Multiplier bonus applied while average difficulty is low."""

LOW_DIFFICULTY_CEILING = 2
"""Average difficulty at or below which LOW_DIFFICULTY_BONUS applies."""

MAX_QUESTION_MULTIPLIER = 2
"""Adjusted question count never exceeds this multiple of the base count."""

# Quiz Modes
QUIZ_MODES = ("standard", "adaptive", "review")
"""Recognized quiz modes."""

REVIEW_QUIZ_MODES = ("review", "adaptive")
"""Quiz modes counted as review sessions for achievements."""

# Points
QUIZ_COMPLETION_POINTS = 10
"""Base points for completing any quiz."""

CORRECT_ANSWER_POINTS = 5
"""Points per correct answer in a completed quiz."""

PASSING_SCORE = 85
"""Score (percent) that earns the passing bonus."""

PASSING_BONUS_POINTS = 25
"""Bonus points for a passing score."""

PERFECT_SCORE_BONUS_POINTS = 50
"""Bonus points for a perfect score."""

# Leveling
POINTS_PER_LEVEL_STEP = 100
"""Reaching level L + 1 from level L costs L * POINTS_PER_LEVEL_STEP points."""

# Streaks
STREAK_MILESTONES = (3, 7, 14, 30, 60, 100, 150, 200, 365)
"""Day counts celebrated as streak milestones."""

# Badge Catalog
BADGE_CATEGORIES = ("progress", "performance", "streak", "mastery", "special")
"""Recognized badge categories."""

BADGE_RARITIES = ("common", "uncommon", "rare", "epic", "legendary")
"""Recognized badge rarities."""

# Cookie Configuration
COOKIE_NAME = "cl_uid"
"""Name of the cookie carrying the user id."""

# Rate Limiting
DEFAULT_RATE_LIMIT = "100/minute"
"""Default request limit per client."""

SUBMISSION_RATE_LIMIT = "30/minute"
"""Maximum quiz submissions per minute per client."""

# Logging
DEFAULT_LOG_LEVEL = "INFO"
"""Default logging level for the application."""
