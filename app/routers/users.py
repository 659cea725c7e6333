"""Registration, profile and daily summation endpoints."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import User
from app.dependencies import ensure_service_available, get_current_user
from app.rate_limit import limiter
from app.services.users import (
    DuplicateUserError,
    get_daily_summations,
    register_user,
    serialize_summation,
    serialize_user,
    submit_daily_summation,
    update_user_profile,
)
from app.services.registration import can_register, get_registration_settings
from app.config import settings
from app.constants import COOKIE_NAME, REGISTRATION_RATE_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    dependencies=[Depends(ensure_service_available)]
)


class ProfileFields(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    enrollment_no: Optional[str] = Field(None, max_length=50)
    course: Optional[str] = Field(None, max_length=100)
    section: Optional[str] = Field(None, max_length=20)
    semester: Optional[str] = Field(None, max_length=20)
    github_repo_link: Optional[str] = Field(None, max_length=500)


class RegisterRequest(ProfileFields):
    """Request body for registration. The identity provider supplies the email."""
    email: str = Field(..., min_length=3, max_length=320)

    @validator('email')
    def validate_email(cls, v):
        v = v.strip().lower()
        if '@' not in v:
            raise ValueError('email must contain @')
        return v


class SummationRequest(BaseModel):
    day: int = Field(..., ge=1, description="Challenge day number")
    content: str = Field(..., min_length=1, max_length=20000)

    @validator('content')
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError('content cannot be empty')
        return v


def set_session_cookie(response: Response, user_id: str) -> None:
    response.set_cookie(
        key=COOKIE_NAME,
        value=user_id,
        max_age=settings.COOKIE_MAX_AGE,
        httponly=settings.COOKIE_HTTPONLY,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE
    )


@router.post("/register", status_code=201)
@limiter.limit(REGISTRATION_RATE_LIMIT)
async def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Create the user record for an authenticated email and start a session.

    The session cookie carries the new user's opaque handle.
    """
    profile = body.dict(exclude={"email"})
    try:
        user = register_user(db, body.email, profile)
        db.commit()
    except DuplicateUserError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=403, detail=str(e))
    except Exception as e:
        logger.error(f"Registration failed: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error registering user: {str(e)}")

    set_session_cookie(response, user.id)
    return serialize_user(db, user)


@router.get("/registration-status")
async def registration_status(db: Session = Depends(get_db)):
    """Whether registration is open, without exposing the user cap."""
    student_count = db.query(User).filter(User.is_admin.is_(False)).count()
    gate = can_register(db, student_count)
    settings_row = get_registration_settings(db)
    db.commit()
    return {
        "allowed": gate["allowed"],
        "reason": gate["reason"],
        "require_approval": settings_row.require_approval,
    }


@router.get("/me")
async def get_me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return serialize_user(db, user)


@router.patch("/me")
async def update_me(
    body: ProfileFields,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        updated = update_user_profile(db, user.id, body.dict(exclude_unset=True))
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    logger.info("Profile updated", extra={"user_id": user.id})
    return serialize_user(db, updated)


@router.get("/me/summations")
async def list_summations(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {
        "summations": [serialize_summation(s) for s in get_daily_summations(db, user.id)]
    }


@router.post("/me/summations")
async def post_summation(
    body: SummationRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Write (or overwrite) the reflection for a challenge day."""
    try:
        summation = submit_daily_summation(db, user, body.day, body.content)
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Summation saved for day {body.day}", extra={"user_id": user.id})
    return serialize_summation(summation)
