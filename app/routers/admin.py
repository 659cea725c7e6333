"""Admin endpoints: user management, exam windows, registration and maintenance."""
import logging
from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import Submission, User
from app.dependencies import require_admin
from app.services.users import (
    approve_user,
    get_all_users,
    get_daily_summations,
    get_user_data,
    get_users_by_filter,
    increment_violations,
    reset_user_streak_breaks,
    review_daily_summation,
    serialize_summation,
    serialize_user,
    set_user_ban_status,
    set_user_disqualification,
    update_user_streak,
)
from app.services.exam_cooldown import (
    delete_program_exam_cooldown,
    get_exam_cooldown,
    get_program_exam_cooldowns,
    serialize_exam_cooldown,
    set_program_exam_cooldown,
    toggle_exam_mode,
    update_exam_cooldown,
)
from app.services.registration import (
    get_registration_settings,
    serialize_registration_settings,
    toggle_registration,
    update_registration_settings,
)
from app.services.maintenance import (
    get_maintenance_settings,
    serialize_maintenance_settings,
    update_maintenance_settings,
)
from app.services.notifications import (
    create_violation_notification,
    get_admin_notifications,
    serialize_notification,
)
from app.services.qa import get_qa_statistics
from app.services.schedule import get_todays_assignment
from app.services.dates import utc_today

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class DisqualificationRequest(BaseModel):
    disqualified: bool


class BanRequest(BaseModel):
    is_banned: bool
    reason: Optional[str] = Field(None, max_length=1000)


class ViolationRequest(BaseModel):
    violation_type: str = Field(..., min_length=1, max_length=200)


class StreakRequest(BaseModel):
    streak_count: int = Field(..., ge=0)
    streak_breaks: Optional[int] = Field(None, ge=0)


class SummationReviewRequest(BaseModel):
    review_notes: str = Field("", max_length=5000)
    approved: bool = True


class ExamWindowRequest(BaseModel):
    active: bool
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    pause_submissions_count: bool = True
    message: Optional[str] = Field(None, max_length=1000)


class ProgramExamWindowRequest(ExamWindowRequest):
    course: str = Field(..., min_length=1)
    semester: Optional[str] = None
    section: Optional[str] = None


class ToggleRequest(BaseModel):
    active: bool


class RegistrationUpdate(BaseModel):
    enabled: Optional[bool] = None
    max_users: Optional[int] = Field(None, ge=0)
    require_approval: Optional[bool] = None
    restriction_message: Optional[str] = Field(None, max_length=1000)


class RegistrationToggle(BaseModel):
    enabled: bool


class MaintenanceRequest(BaseModel):
    enabled: bool
    message: Optional[str] = Field(None, max_length=1000)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


def _get_user_or_404(db: Session, uid: str) -> User:
    user = get_user_data(db, uid)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _admin_name(admin: User) -> str:
    return admin.name or admin.email


# Users

@router.get("/users")
async def list_users(
    course: Optional[str] = None,
    section: Optional[str] = None,
    semester: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if course or section or semester:
        users = get_users_by_filter(db, course=course, section=section, semester=semester)
    else:
        users = get_all_users(db)
    return {"users": [serialize_user(db, u) for u in users]}


@router.get("/users/{uid}")
async def user_detail(uid: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = _get_user_or_404(db, uid)
    return {
        **serialize_user(db, user),
        "submission_count": db.query(Submission).filter(Submission.student_uid == uid).count(),
        "summations": [serialize_summation(s) for s in get_daily_summations(db, uid)],
    }


@router.post("/users/{uid}/approve")
async def approve(uid: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = approve_user(db, _get_user_or_404(db, uid))
    db.commit()
    logger.info(f"User approved by {_admin_name(admin)}", extra={"user_id": uid})
    return serialize_user(db, user)


@router.post("/users/{uid}/disqualification")
async def disqualification(
    uid: str,
    body: DisqualificationRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = set_user_disqualification(db, _get_user_or_404(db, uid), body.disqualified)
    db.commit()
    return serialize_user(db, user)


@router.post("/users/{uid}/reset-streak-breaks")
async def reset_streak_breaks(uid: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    user = reset_user_streak_breaks(db, _get_user_or_404(db, uid))
    db.commit()
    return serialize_user(db, user)


@router.post("/users/{uid}/ban")
async def ban(
    uid: str,
    body: BanRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    if uid == admin.id and body.is_banned:
        raise HTTPException(status_code=400, detail="Admins cannot ban themselves")

    user = set_user_ban_status(db, _get_user_or_404(db, uid), body.is_banned, body.reason)
    db.commit()
    return serialize_user(db, user)


@router.post("/users/{uid}/violations")
async def record_violation(
    uid: str,
    body: ViolationRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Count a rule violation and tell the student about it."""
    user = _get_user_or_404(db, uid)
    increment_violations(db, user)
    create_violation_notification(db, user.id, body.violation_type)
    db.commit()
    logger.warning(f"Violation recorded: {body.violation_type}", extra={"user_id": uid})
    return serialize_user(db, user)


@router.post("/users/{uid}/streak")
async def set_streak(
    uid: str,
    body: StreakRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    user = update_user_streak(db, _get_user_or_404(db, uid), body.streak_count, body.streak_breaks)
    db.commit()
    return serialize_user(db, user)


@router.post("/users/{uid}/summations/{day}/review")
async def review_summation(
    uid: str,
    day: int,
    body: SummationReviewRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    _get_user_or_404(db, uid)
    summation = review_daily_summation(db, uid, day, body.review_notes, _admin_name(admin), body.approved)
    if summation is None:
        raise HTTPException(status_code=404, detail="Summation not found")
    db.commit()
    return serialize_summation(summation)


# Exam cooldown

@router.get("/exam-cooldown")
async def exam_cooldown(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return serialize_exam_cooldown(get_exam_cooldown(db))


@router.put("/exam-cooldown")
async def save_exam_cooldown(
    body: ExamWindowRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        row = update_exam_cooldown(
            db,
            active=body.active,
            start_date=body.start_date,
            end_date=body.end_date,
            pause_submissions_count=body.pause_submissions_count,
            message=body.message,
        )
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_exam_cooldown(row)


@router.post("/exam-cooldown/toggle")
async def toggle_exam_cooldown(
    body: ToggleRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    row = toggle_exam_mode(db, body.active)
    if row is None:
        raise HTTPException(status_code=404, detail="No exam cooldown settings saved yet")
    db.commit()
    return serialize_exam_cooldown(row)


@router.get("/exam-cooldown/programs")
async def program_windows(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"windows": [serialize_exam_cooldown(row) for row in get_program_exam_cooldowns(db)]}


@router.put("/exam-cooldown/programs")
async def save_program_window(
    body: ProgramExamWindowRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        row = set_program_exam_cooldown(
            db,
            course=body.course,
            active=body.active,
            start_date=body.start_date,
            end_date=body.end_date,
            semester=body.semester,
            section=body.section,
            pause_submissions_count=body.pause_submissions_count,
            message=body.message,
        )
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_exam_cooldown(row)


@router.delete("/exam-cooldown/programs/{cooldown_id}")
async def remove_program_window(cooldown_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    if not delete_program_exam_cooldown(db, cooldown_id):
        raise HTTPException(status_code=404, detail="Exam window not found")
    db.commit()
    return {"deleted": cooldown_id}


# Registration

@router.get("/registration")
async def registration(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    settings_row = get_registration_settings(db)
    db.commit()
    return serialize_registration_settings(settings_row)


@router.patch("/registration")
async def update_registration(
    body: RegistrationUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        settings_row = update_registration_settings(db, body.dict(exclude_unset=True), _admin_name(admin))
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_registration_settings(settings_row)


@router.post("/registration/toggle")
async def toggle_registration_endpoint(
    body: RegistrationToggle,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    settings_row = toggle_registration(db, body.enabled, _admin_name(admin))
    db.commit()
    return serialize_registration_settings(settings_row)


# Maintenance

@router.get("/maintenance")
async def maintenance(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    settings_row = get_maintenance_settings(db)
    db.commit()
    return serialize_maintenance_settings(settings_row)


@router.put("/maintenance")
async def save_maintenance(
    body: MaintenanceRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    try:
        settings_row = update_maintenance_settings(
            db,
            enabled=body.enabled,
            message=body.message,
            starts_at=body.starts_at,
            ends_at=body.ends_at,
            updated_by=_admin_name(admin),
        )
        db.commit()
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_maintenance_settings(settings_row)


# Dashboard

@router.get("/notifications")
async def admin_notifications(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"notifications": [serialize_notification(n) for n in get_admin_notifications(db)]}


@router.get("/stats")
async def dashboard_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    """Headline numbers for the admin dashboard."""
    today = utc_today()
    students = db.query(User).filter(User.is_admin.is_(False))

    return {
        "date": today.isoformat(),
        "students": {
            "total": students.count(),
            "pending_approval": students.filter(User.is_approved.is_(False)).count(),
            "disqualified": students.filter(User.disqualified.is_(True)).count(),
            "banned": students.filter(User.is_banned.is_(True)).count(),
        },
        "submissions": {
            "total": db.query(Submission).count(),
            "pending_review": db.query(Submission).filter(Submission.status == "submitted").count(),
            "today": db.query(Submission).filter(Submission.question_date == today).count(),
        },
        "has_assignment_today": get_todays_assignment(db, today) is not None,
        "exam_cooldown": serialize_exam_cooldown(get_exam_cooldown(db), today),
        "qa": get_qa_statistics(db, today),
    }
