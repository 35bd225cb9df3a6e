"""Database initialization and badge catalog seeding."""
import logging
from typing import Dict, List

from sqlalchemy.orm import Session

from certlab.db.database import engine, SessionLocal, Base
from certlab.db.models import Badge
from certlab.db.repository import commit

logger = logging.getLogger(__name__)

# Default achievement catalog, one entry per badge name
BADGE_CATALOG: List[Dict] = [
    {
        "name": "First Steps",
        "description": "Complete your first quiz",
        "icon": "target",
        "category": "progress",
        "requirement": {"type": "quiz_completed", "count": 1},
        "points": 10,
        "rarity": "common",
    },
    {
        "name": "Getting Serious",
        "description": "Complete 10 quizzes",
        "icon": "book-open",
        "category": "progress",
        "requirement": {"type": "quiz_completed", "count": 10},
        "points": 50,
        "rarity": "uncommon",
    },
    {
        "name": "Quiz Master",
        "description": "Complete 100 quizzes",
        "icon": "crown",
        "category": "progress",
        "requirement": {"type": "quiz_completed", "count": 100},
        "points": 250,
        "rarity": "epic",
    },
    {
        "name": "Perfectionist",
        "description": "Achieve a perfect score on any quiz",
        "icon": "star",
        "category": "performance",
        "requirement": {"type": "perfect_score", "count": 1},
        "points": 50,
        "rarity": "uncommon",
    },
    {
        "name": "High Achiever",
        "description": "Score 90% or higher on a quiz",
        "icon": "trending-up",
        "category": "performance",
        "requirement": {"type": "high_score", "threshold": 90, "count": 1},
        "points": 25,
        "rarity": "common",
    },
    {
        "name": "Consistent Performer",
        "description": "Average 80% or higher across at least 5 quizzes",
        "icon": "bar-chart",
        "category": "performance",
        "requirement": {"type": "avg_score", "threshold": 80, "count": 5},
        "points": 75,
        "rarity": "rare",
    },
    {
        "name": "On a Roll",
        "description": "Study 3 days in a row",
        "icon": "zap",
        "category": "streak",
        "requirement": {"type": "daily_streak", "count": 3},
        "points": 20,
        "rarity": "common",
    },
    {
        "name": "Week Warrior",
        "description": "Maintain a 7-day study streak",
        "icon": "flame",
        "category": "streak",
        "requirement": {"type": "daily_streak", "count": 7},
        "points": 50,
        "rarity": "uncommon",
    },
    {
        "name": "Topic Expert",
        "description": "Reach 90% mastery in any topic",
        "icon": "award",
        "category": "mastery",
        "requirement": {"type": "mastery_score", "threshold": 90},
        "points": 50,
        "rarity": "uncommon",
    },
    {
        "name": "Well Rounded",
        "description": "Reach 80% mastery in 5 topics",
        "icon": "layers",
        "category": "mastery",
        "requirement": {"type": "multi_mastery", "threshold": 80, "areas": 5},
        "points": 150,
        "rarity": "rare",
    },
    {
        "name": "Study Planner",
        "description": "Generate your first study guide",
        "icon": "clipboard",
        "category": "special",
        "requirement": {"type": "study_guide", "count": 1},
        "points": 15,
        "rarity": "common",
    },
    {
        "name": "Reviewer",
        "description": "Complete 5 review or adaptive sessions",
        "icon": "refresh-cw",
        "category": "special",
        "requirement": {"type": "review_sessions", "count": 5},
        "points": 40,
        "rarity": "uncommon",
    },
    {
        "name": "Century",
        "description": "Answer 100 questions correctly",
        "icon": "check-circle",
        "category": "progress",
        "requirement": {"type": "questions_answered", "count": 100},
        "points": 75,
        "rarity": "rare",
    },
    {
        "name": "Point Collector",
        "description": "Earn 1000 points",
        "icon": "gem",
        "category": "special",
        "requirement": {"type": "total_points", "count": 1000},
        "points": 100,
        "rarity": "legendary",
    },
]


def seed_badges(db: Session) -> int:
    """
    Add catalog badges that are not in the badges table yet.

    Existing badges are matched by name and left untouched, so edits made to a
    stored badge survive restarts.

    Returns:
        Number of badges added
    """
    existing_names = {name for (name,) in db.query(Badge.name).all()}
    added = 0

    for badge_data in BADGE_CATALOG:
        if badge_data["name"] in existing_names:
            continue
        db.add(Badge(**badge_data))
        added += 1

    if added:
        commit(db)
        logger.info(f"Seeded {added} badges ({len(existing_names)} already present)")
    else:
        logger.info(f"Badge catalog already contains {len(existing_names)} entries. Skipping seed.")

    return added


def init_db() -> None:
    """
    Initialize database: create tables and seed the badge catalog.

    Safe to call multiple times.
    """
    logger.info("Initializing database...")

    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified successfully.")

    db = SessionLocal()
    try:
        seed_badges(db)
        logger.info("Database initialization complete.")
    except Exception as e:
        logger.error(f"Error during database initialization: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
