"""Per-date question bank keyed by date and difficulty."""
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.db.models import Question
from app.constants import DIFFICULTIES

QUESTION_FIELDS = ("title", "description", "link", "tags", "category", "example", "constraint")


def question_id(day: date, difficulty: str) -> str:
    return f"{day.isoformat()}_{difficulty}"


def _apply_fields(question: Question, fields: Dict) -> None:
    for field, value in fields.items():
        if field not in QUESTION_FIELDS:
            raise ValueError(f"Unknown question field: {field}")
        if value is None:
            continue
        if field == "constraint":
            question.constraint_text = value
        elif field == "tags":
            question.tags = list(value)
        else:
            setattr(question, field, value)


def set_question(db: Session, day: date, difficulty: str, fields: Dict) -> Question:
    """
    Create or replace the question for a date and difficulty.

    created_at survives a replacement.

    Raises:
        ValueError: On an unknown difficulty, unknown field or missing title
    """
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")
    if not fields.get("title"):
        raise ValueError("Question title is required")

    now = datetime.utcnow()
    question = get_question(db, day, difficulty)
    if question is None:
        question = Question(
            id=question_id(day, difficulty),
            date=day,
            difficulty=difficulty,
            created_at=now,
        )
        db.add(question)

    question.description = ""
    question.link = ""
    question.tags = []
    question.category = None
    question.example = None
    question.constraint_text = None
    _apply_fields(question, fields)
    question.updated_at = now
    db.flush()
    return question


def update_question(db: Session, day: date, difficulty: str, fields: Dict) -> Optional[Question]:
    """Change only the given fields of an existing question."""
    question = get_question(db, day, difficulty)
    if question is None:
        return None
    _apply_fields(question, fields)
    question.updated_at = datetime.utcnow()
    db.flush()
    return question


def get_question(db: Session, day: date, difficulty: str) -> Optional[Question]:
    return db.query(Question).filter(Question.id == question_id(day, difficulty)).first()


def get_questions_by_date(db: Session, day: date) -> Dict[str, Question]:
    """Questions of a date keyed by difficulty; missing tiers are absent."""
    questions = db.query(Question).filter(Question.date == day).all()
    return {q.difficulty: q for q in questions}


def delete_question(db: Session, day: date, difficulty: str) -> bool:
    question = get_question(db, day, difficulty)
    if question is None:
        return False
    db.delete(question)
    db.flush()
    return True


def get_all_questions(db: Session) -> List[Question]:
    questions = db.query(Question).order_by(Question.date).all()
    return sorted(questions, key=lambda q: (q.date, DIFFICULTIES.index(q.difficulty)))


def serialize_question(question: Question) -> Dict:
    return {
        "id": question.id,
        "date": question.date.isoformat(),
        "difficulty": question.difficulty,
        "title": question.title,
        "description": question.description,
        "link": question.link,
        "tags": list(question.tags or []),
        "category": question.category,
        "example": question.example,
        "constraint": question.constraint_text,
        "created_at": question.created_at.isoformat(),
        "updated_at": question.updated_at.isoformat(),
    }
