"""Pytest fixtures for testing."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from certlab.db.database import Base
from certlab.db.init_db import BADGE_CATALOG
from certlab.db.models import Badge
from certlab.services.outcomes import AnswerOutcome


@pytest.fixture(scope="function")
def test_db():
    """Create an empty test database for each test."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    db = SessionLocal()

    yield db

    db.close()


@pytest.fixture
def seeded_db(test_db):
    """Test database with the default badge catalog."""
    for badge_data in BADGE_CATALOG:
        test_db.add(Badge(**badge_data))
    test_db.commit()
    return test_db


@pytest.fixture
def test_user():
    """Id of the user under test."""
    return "cl_test_user_123"


@pytest.fixture
def make_outcomes():
    """Build outcomes from a pattern string: 'C' correct, 'W' wrong."""
    def _make(pattern, category_id=1, subcategory_id=10, start_id=1):
        return [
            AnswerOutcome(
                question_id=start_id + i,
                category_id=category_id,
                subcategory_id=subcategory_id,
                is_correct=(ch == "C"),
            )
            for i, ch in enumerate(pattern)
        ]
    return _make
