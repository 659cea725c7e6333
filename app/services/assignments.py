"""Daily assignments: one per date, each with an easy, medium and hard question."""
import logging
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.db.models import Assignment
from app.services.questions import (
    set_question,
    update_question,
    get_questions_by_date,
    delete_question,
    serialize_question,
)
from app.constants import ASSIGNMENT_DIFFICULTIES

logger = logging.getLogger(__name__)


def get_assignment(db: Session, day: date) -> Optional[Assignment]:
    return db.query(Assignment).filter(Assignment.date == day).first()


def set_assignment(
    db: Session,
    day: date,
    day_number: int,
    questions: Dict[str, Dict],
    created_by: str
) -> Assignment:
    """
    Create or replace the assignment for a date.

    Args:
        db: Database session
        day: Assignment date (its identity)
        day_number: Challenge day number
        questions: Mapping of 'easy', 'medium', 'hard' to question fields
        created_by: Admin uid

    Raises:
        ValueError: If a tier is missing or a question is invalid
    """
    missing = [tier for tier in ASSIGNMENT_DIFFICULTIES if tier not in questions]
    if missing:
        raise ValueError(f"Assignment is missing questions for: {', '.join(missing)}")
    if day_number < 1:
        raise ValueError("day_number must be positive")

    now = datetime.utcnow()
    assignment = get_assignment(db, day)
    if assignment is None:
        assignment = Assignment(date=day, created_at=now)
        db.add(assignment)
        logger.info(f"Creating assignment for {day}")
    else:
        logger.info(f"Replacing assignment for {day}")

    assignment.day_number = day_number
    assignment.created_by = created_by
    assignment.updated_at = now

    for tier in ASSIGNMENT_DIFFICULTIES:
        set_question(db, day, tier, questions[tier])

    db.flush()
    return assignment


def update_assignment(
    db: Session,
    day: date,
    day_number: Optional[int] = None,
    questions: Optional[Dict[str, Dict]] = None
) -> Optional[Assignment]:
    """Partially update an assignment. Returns None when it does not exist."""
    assignment = get_assignment(db, day)
    if assignment is None:
        return None

    if day_number is not None:
        if day_number < 1:
            raise ValueError("day_number must be positive")
        assignment.day_number = day_number

    for tier, fields in (questions or {}).items():
        if tier not in ASSIGNMENT_DIFFICULTIES:
            raise ValueError(f"Assignments have no {tier} question")
        if update_question(db, day, tier, fields) is None:
            set_question(db, day, tier, fields)

    assignment.updated_at = datetime.utcnow()
    db.flush()
    return assignment


def delete_assignment(db: Session, day: date) -> bool:
    """Delete an assignment and its tier questions; 'choice' bank entries stay."""
    assignment = get_assignment(db, day)
    if assignment is None:
        return False

    for tier in ASSIGNMENT_DIFFICULTIES:
        delete_question(db, day, tier)
    db.delete(assignment)
    db.flush()

    logger.info(f"Deleted assignment for {day}")
    return True


def get_all_assignments(db: Session) -> List[Assignment]:
    return db.query(Assignment).order_by(Assignment.date).all()


def get_assignments_by_date_range(db: Session, start: date, end: date) -> List[Assignment]:
    """Assignments dated start..end inclusive, ascending."""
    return db.query(Assignment).filter(
        Assignment.date >= start,
        Assignment.date <= end
    ).order_by(Assignment.date).all()


def serialize_assignment(db: Session, assignment: Assignment) -> Dict:
    questions = get_questions_by_date(db, assignment.date)
    data = {
        "id": assignment.date.isoformat(),
        "date": assignment.date.isoformat(),
        "day_number": assignment.day_number,
        "created_by": assignment.created_by,
        "created_at": assignment.created_at.isoformat(),
        "updated_at": assignment.updated_at.isoformat(),
    }
    for tier in ASSIGNMENT_DIFFICULTIES:
        question = questions.get(tier)
        data[f"{tier}_question"] = serialize_question(question) if question else None
    return data
