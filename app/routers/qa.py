"""Student support question endpoints."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import StudentQuestion, User
from app.dependencies import ensure_service_available, get_current_user, require_admin
from app.rate_limit import limiter
from app.services.qa import (
    add_tags,
    answer_question,
    close_question,
    escalate_question,
    get_all_questions,
    get_qa_statistics,
    get_question,
    get_questions_by_status,
    get_student_questions,
    get_unread_count,
    mark_as_read,
    serialize_student_question,
    submit_feedback,
    submit_question,
    update_priority,
)
from app.constants import (
    MAX_SATISFACTION_RATING,
    MIN_SATISFACTION_RATING,
    QA_CATEGORIES,
    QA_PRIORITIES,
    QA_STATUSES,
    QUESTION_RATE_LIMIT,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/qa",
    tags=["qa"],
    dependencies=[Depends(ensure_service_available)]
)


class QuestionRequest(BaseModel):
    question_text: str = Field(..., min_length=1, max_length=5000)
    category: Optional[str] = None
    priority: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @validator('question_text')
    def validate_text(cls, v):
        if not v.strip():
            raise ValueError('question_text cannot be empty')
        return v.strip()

    @validator('category')
    def validate_category(cls, v):
        if v is not None and v not in QA_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(QA_CATEGORIES)}")
        return v

    @validator('priority')
    def validate_priority(cls, v):
        if v is not None and v not in QA_PRIORITIES:
            raise ValueError(f"priority must be one of {', '.join(QA_PRIORITIES)}")
        return v


class AnswerRequest(BaseModel):
    response: str = Field(..., min_length=1, max_length=10000)
    mark_as_resolved: bool = True


class ReasonRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class PriorityRequest(BaseModel):
    priority: str

    @validator('priority')
    def validate_priority(cls, v):
        if v not in QA_PRIORITIES:
            raise ValueError(f"priority must be one of {', '.join(QA_PRIORITIES)}")
        return v


class TagsRequest(BaseModel):
    tags: List[str]

    @validator('tags')
    def validate_tags(cls, v):
        v = [tag.strip() for tag in v if tag.strip()]
        if not v:
            raise ValueError('at least one tag is required')
        return v


class FeedbackRequest(BaseModel):
    rating: int = Field(..., ge=MIN_SATISFACTION_RATING, le=MAX_SATISFACTION_RATING)
    feedback: Optional[str] = Field(None, max_length=2000)


def _get_question_or_404(db: Session, question_id: str, user: User) -> StudentQuestion:
    """Admins see every question; students only their own."""
    question = get_question(db, question_id)
    if question is None or (question.student_uid != user.id and not user.is_admin):
        raise HTTPException(status_code=404, detail="Question not found")
    return question


@router.post("/questions", status_code=201)
@limiter.limit(QUESTION_RATE_LIMIT)
async def ask_question(
    request: Request,
    body: QuestionRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        question = submit_question(
            db,
            user,
            body.question_text,
            category=body.category,
            priority=body.priority,
            tags=body.tags,
        )
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Question submission failed: {e}", exc_info=True, extra={"user_id": user.id})
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error submitting question: {str(e)}")

    return serialize_student_question(question)


@router.get("/questions/mine")
async def my_questions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"questions": [serialize_student_question(q) for q in get_student_questions(db, user.id)]}


@router.get("/questions")
async def list_questions(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    questions = get_all_questions(db, status=status, priority=priority, category=category, limit=limit)
    return {"questions": [serialize_student_question(q) for q in questions]}


@router.get("/questions/status/{status}")
async def questions_by_status(status: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Questions in a status, most urgent first."""
    if status not in QA_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    return {"questions": [serialize_student_question(q) for q in get_questions_by_status(db, status)]}


@router.get("/statistics")
async def statistics(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return get_qa_statistics(db)


@router.get("/unread-count")
async def unread_count(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"unread": get_unread_count(db)}


@router.get("/questions/{question_id}")
async def get_one(question_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_student_question(_get_question_or_404(db, question_id, user))


@router.post("/questions/{question_id}/feedback")
async def feedback(
    question_id: str,
    body: FeedbackRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Rate the answer to one of the session user's own questions."""
    question = _get_question_or_404(db, question_id, user)
    if question.student_uid != user.id:
        raise HTTPException(status_code=403, detail="Only the asking student can leave feedback")

    try:
        submit_feedback(db, question, body.rating, body.feedback)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_student_question(question)


@router.post("/questions/{question_id}/answer")
async def answer(
    question_id: str,
    body: AnswerRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    question = _get_question_or_404(db, question_id, admin)
    try:
        answer_question(
            db,
            question,
            body.response,
            admin_uid=admin.id,
            admin_name=admin.name or admin.email,
            mark_as_resolved=body.mark_as_resolved,
        )
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Answering question failed: {e}", exc_info=True, extra={"question_id": question_id})
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error answering question: {str(e)}")

    return serialize_student_question(question)


@router.post("/questions/{question_id}/read")
async def read(question_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    question = mark_as_read(db, _get_question_or_404(db, question_id, admin))
    db.commit()
    return serialize_student_question(question)


@router.post("/questions/{question_id}/close")
async def close(
    question_id: str,
    body: ReasonRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    question = close_question(db, _get_question_or_404(db, question_id, admin), body.reason)
    db.commit()
    logger.info("Question closed", extra={"question_id": question_id})
    return serialize_student_question(question)


@router.post("/questions/{question_id}/escalate")
async def escalate(
    question_id: str,
    body: ReasonRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if not body.reason:
        raise HTTPException(status_code=400, detail="An escalation reason is required")
    question = escalate_question(db, _get_question_or_404(db, question_id, admin), body.reason)
    db.commit()
    return serialize_student_question(question)


@router.post("/questions/{question_id}/priority")
async def set_priority(
    question_id: str,
    body: PriorityRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    question = _get_question_or_404(db, question_id, admin)
    try:
        update_priority(db, question, body.priority, admin.name or admin.email)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_student_question(question)


@router.post("/questions/{question_id}/tags")
async def tag(
    question_id: str,
    body: TagsRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    question = add_tags(db, _get_question_or_404(db, question_id, admin), body.tags)
    db.commit()
    return serialize_student_question(question)
