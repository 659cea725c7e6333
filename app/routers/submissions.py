"""Submission endpoints for students and the admin review workflow."""
import logging
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import User
from app.dependencies import ensure_service_available, get_current_user, require_admin
from app.rate_limit import limiter
from app.services.submissions import (
    DuplicateSubmissionError,
    SubmissionNotAllowedError,
    get_all_submissions,
    get_student_submissions,
    get_student_submissions_by_date_range,
    get_submission,
    get_submissions_by_date,
    review_submission,
    serialize_submission,
    submit_answer,
    submit_solution,
)
from app.services.users import get_user_data
from app.services.dates import utc_today
from app.constants import (
    DIFFICULTIES,
    RECENT_SUBMISSIONS_LIMIT,
    SUBMISSION_RATE_LIMIT,
    SUBMISSION_STATUSES,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/submissions",
    tags=["submissions"],
    dependencies=[Depends(ensure_service_available)]
)


class SolutionSubmission(BaseModel):
    """Request body for a solution submission."""
    difficulty: str = Field(..., description="easy, medium, hard or choice")
    code_text: str = Field("", max_length=100000)
    github_file_link: str = Field("", max_length=500)
    external_problem_link: str = Field("", max_length=500)
    question_title: Optional[str] = Field(None, max_length=300)

    @validator('difficulty')
    def validate_difficulty(cls, v):
        if v not in DIFFICULTIES:
            raise ValueError(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
        return v


class ChoiceAnswer(BaseModel):
    """Request body for a choice-tier answer."""
    question_id: str = Field(..., min_length=1, max_length=300)
    answer: str = Field(..., min_length=1, max_length=100000)

    @validator('answer')
    def validate_answer(cls, v):
        if not v.strip():
            raise ValueError('answer cannot be empty')
        return v


class ReviewRequest(BaseModel):
    status: str = Field(..., description="approved or rejected")
    admin_feedback: Optional[str] = Field(None, max_length=5000)

    @validator('status')
    def validate_status(cls, v):
        if v not in ("approved", "rejected"):
            raise ValueError("status must be 'approved' or 'rejected'")
        return v


@router.post("", status_code=201)
@limiter.limit(SUBMISSION_RATE_LIMIT)
async def submit(
    request: Request,
    body: SolutionSubmission,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit a solution for today's question of a tier.

    Errors:
    - 400 with the reason when today does not accept submissions
    - 409 when the tier was already attempted today
    """
    if not body.code_text.strip() and not body.github_file_link.strip():
        raise HTTPException(status_code=400, detail="Provide code_text or github_file_link")

    try:
        submission = submit_solution(
            db,
            user,
            difficulty=body.difficulty,
            code_text=body.code_text,
            github_file_link=body.github_file_link,
            external_problem_link=body.external_problem_link,
            question_title=body.question_title,
        )
        db.commit()
    except SubmissionNotAllowedError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail={"message": str(e), "reason": e.reason})
    except DuplicateSubmissionError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Submission failed: {e}", exc_info=True, extra={"user_id": user.id})
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error submitting solution: {str(e)}")

    return serialize_submission(submission)


@router.post("/answer", status_code=201)
@limiter.limit(SUBMISSION_RATE_LIMIT)
async def answer_choice(
    request: Request,
    body: ChoiceAnswer,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Answer today's choice question; same errors as a solution submission."""
    try:
        submission = submit_answer(db, user, body.question_id, body.answer, utc_today())
        db.commit()
    except SubmissionNotAllowedError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail={"message": str(e), "reason": e.reason})
    except DuplicateSubmissionError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Choice answer failed: {e}", exc_info=True, extra={"user_id": user.id})
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error submitting answer: {str(e)}")

    return serialize_submission(submission)


@router.get("/mine")
async def my_submissions(
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Submissions of the session user, newest first."""
    submissions = get_student_submissions(db, user.id)
    if limit:
        submissions = submissions[:limit]
    return {"submissions": [serialize_submission(s) for s in submissions]}


@router.get("/recent")
async def recent_submissions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    submissions = get_student_submissions(db, user.id)[:RECENT_SUBMISSIONS_LIMIT]
    return {"submissions": [serialize_submission(s) for s in submissions]}


@router.get("")
async def list_submissions(
    status: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if status and status not in SUBMISSION_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown submission status: {status}")
    return {"submissions": [serialize_submission(s) for s in get_all_submissions(db, status)]}


@router.get("/by-date/{day}")
async def submissions_by_date(
    day: date,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return {
        "date": day.isoformat(),
        "submissions": [serialize_submission(s) for s in get_submissions_by_date(db, day)]
    }


@router.get("/student/{student_uid}")
async def submissions_by_student(
    student_uid: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """A student's submissions, optionally limited to a question date range."""
    if get_user_data(db, student_uid) is None:
        raise HTTPException(status_code=404, detail="Student not found")

    if start or end:
        if not (start and end):
            raise HTTPException(status_code=400, detail="Both start and end are required")
        if end < start:
            raise HTTPException(status_code=400, detail="end must not be before start")
        submissions = get_student_submissions_by_date_range(db, student_uid, start, end)
    else:
        submissions = get_student_submissions(db, student_uid)

    return {"submissions": [serialize_submission(s) for s in submissions]}


@router.get("/{submission_id}")
async def get_one(
    submission_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    submission = get_submission(db, submission_id)
    if submission is None or (submission.student_uid != user.id and not user.is_admin):
        raise HTTPException(status_code=404, detail="Submission not found")
    return serialize_submission(submission)


@router.post("/{submission_id}/review")
async def review(
    submission_id: str,
    body: ReviewRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Approve or reject a submission.

    Updates:
    - Submission status and review fields
    - Student approved counts, streak breaks and disqualification
    - Stored streak and calendar
    - Student notification
    """
    submission = get_submission(db, submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail="Submission not found")

    try:
        review_submission(
            db,
            submission,
            status=body.status,
            admin_feedback=body.admin_feedback,
            reviewed_by=admin.name or admin.email,
        )
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Review failed: {e}", exc_info=True, extra={"submission_id": submission_id})
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error reviewing submission: {str(e)}")

    return serialize_submission(submission)
