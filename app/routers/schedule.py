"""Schedule endpoints: assignments, streak, eligibility and calendar."""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import User
from app.dependencies import ensure_service_available, get_current_user
from app.services.schedule import (
    calculate_enhanced_streak,
    can_submit_today,
    get_assignment_calendar,
    get_todays_assignment,
    get_visible_assignments,
    refresh_streak,
)
from app.services.exam_cooldown import (
    get_exam_cooldown,
    get_exam_cooldown_for_student,
    is_student_in_exam_period,
    serialize_exam_cooldown,
)
from app.services.dates import utc_today

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/schedule",
    tags=["schedule"],
    dependencies=[Depends(ensure_service_available)]
)


@router.get("/assignments")
async def list_assignments(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Every dated assignment with its position relative to today."""
    today = utc_today()
    return {
        "today": today.isoformat(),
        "assignments": [a.to_dict(db) for a in get_visible_assignments(db, today, user)]
    }


@router.get("/today")
async def todays_assignment(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    scheduled = get_todays_assignment(db, user=user)
    if scheduled is None:
        raise HTTPException(status_code=404, detail="No assignment scheduled for today")
    return scheduled.to_dict(db)


@router.get("/streak")
async def get_streak(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    calculation = calculate_enhanced_streak(db, user)
    return {
        **calculation.to_dict(),
        "stored_streak": user.streak_count,
        "streak_breaks": user.streak_breaks,
        "disqualified": user.disqualified,
    }


@router.get("/can-submit")
async def get_can_submit(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return can_submit_today(db, user).to_dict(db)


@router.get("/calendar")
async def get_calendar(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"calendar": get_assignment_calendar(db, user)}


@router.get("/exam-status")
async def exam_status(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """The global window, the student's program window and whether either covers today."""
    today = utc_today()
    program = get_exam_cooldown_for_student(db, user.course, user.semester, user.section)
    return {
        "in_exam_period": is_student_in_exam_period(db, user, today),
        "global": serialize_exam_cooldown(get_exam_cooldown(db), today),
        "program": serialize_exam_cooldown(program, today) if program else None,
    }


@router.post("/refresh")
async def refresh(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Recompute and store the streak and calendar of the session user."""
    try:
        calculation = refresh_streak(db, user)
        db.commit()
    except Exception as e:
        logger.error(f"Streak refresh failed: {e}", exc_info=True, extra={"user_id": user.id})
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Error refreshing streak: {str(e)}")

    return calculation.to_dict()
