"""Admin management of daily assignments and the per-date question bank."""
import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import User
from app.dependencies import require_admin
from app.services.assignments import (
    delete_assignment,
    get_all_assignments,
    get_assignment,
    get_assignments_by_date_range,
    serialize_assignment,
    set_assignment,
    update_assignment,
)
from app.services.questions import (
    delete_question,
    get_all_questions,
    get_questions_by_date,
    serialize_question,
    set_question,
)
from app.constants import DIFFICULTIES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


class QuestionFields(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    description: str = Field("", max_length=20000)
    link: str = Field("", max_length=500)
    tags: List[str] = Field(default_factory=list)
    category: Optional[str] = None
    example: Optional[str] = None
    constraint: Optional[str] = None

    @validator('title')
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('title cannot be empty')
        return v.strip()


class QuestionPatch(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    description: Optional[str] = None
    link: Optional[str] = None
    tags: Optional[List[str]] = None
    category: Optional[str] = None
    example: Optional[str] = None
    constraint: Optional[str] = None


class AssignmentRequest(BaseModel):
    """Request body for creating or replacing an assignment."""
    day_number: int = Field(..., ge=1)
    easy_question: QuestionFields
    medium_question: QuestionFields
    hard_question: QuestionFields


class AssignmentPatch(BaseModel):
    day_number: Optional[int] = Field(None, ge=1)
    easy_question: Optional[QuestionPatch] = None
    medium_question: Optional[QuestionPatch] = None
    hard_question: Optional[QuestionPatch] = None


@router.get("")
async def list_assignments(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"assignments": [serialize_assignment(db, a) for a in get_all_assignments(db)]}


@router.get("/range")
async def assignments_in_range(
    start: date,
    end: date,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Assignments dated start..end inclusive, ascending."""
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")
    return {
        "assignments": [serialize_assignment(db, a) for a in get_assignments_by_date_range(db, start, end)]
    }


@router.get("/questions")
async def question_bank(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"questions": [serialize_question(q) for q in get_all_questions(db)]}


@router.get("/{day}")
async def get_one(day: date, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    assignment = get_assignment(db, day)
    if assignment is None:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return serialize_assignment(db, assignment)


@router.put("/{day}")
async def put_assignment(
    day: date,
    body: AssignmentRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create or replace the assignment for a date. created_at survives a replacement."""
    questions = {
        "easy": body.easy_question.dict(),
        "medium": body.medium_question.dict(),
        "hard": body.hard_question.dict(),
    }
    try:
        assignment = set_assignment(db, day, body.day_number, questions, created_by=admin.id)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Saving assignment for {day} failed: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error saving assignment: {str(e)}")

    return serialize_assignment(db, assignment)


@router.patch("/{day}")
async def patch_assignment(
    day: date,
    body: AssignmentPatch,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    questions = {}
    for tier in ("easy", "medium", "hard"):
        patch = getattr(body, f"{tier}_question")
        if patch is not None:
            questions[tier] = patch.dict(exclude_unset=True)

    try:
        assignment = update_assignment(db, day, body.day_number, questions)
        if assignment is None:
            raise HTTPException(status_code=404, detail="Assignment not found")
        db.commit()
    except HTTPException:
        raise
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    return serialize_assignment(db, assignment)


@router.delete("/{day}")
async def remove_assignment(day: date, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not delete_assignment(db, day):
        raise HTTPException(status_code=404, detail="Assignment not found")
    db.commit()
    return {"deleted": day.isoformat()}


@router.get("/{day}/questions")
async def questions_for_date(day: date, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    questions = get_questions_by_date(db, day)
    return {tier: serialize_question(q) for tier, q in questions.items()}


@router.put("/{day}/questions/{difficulty}")
async def put_question(
    day: date,
    difficulty: str,
    body: QuestionFields,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if difficulty not in DIFFICULTIES:
        raise HTTPException(status_code=400, detail=f"Unknown difficulty: {difficulty}")
    try:
        question = set_question(db, day, difficulty, body.dict())
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_question(question)


@router.delete("/{day}/questions/{difficulty}")
async def remove_question(
    day: date,
    difficulty: str,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if not delete_question(db, day, difficulty):
        raise HTTPException(status_code=404, detail="Question not found")
    db.commit()
    return {"deleted": f"{day.isoformat()}_{difficulty}"}
