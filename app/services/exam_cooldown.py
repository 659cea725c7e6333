"""Exam cooldown windows during which streaks are paused.

There is one global window and any number of program windows. A program
window is scoped to a course and may be narrowed by semester and section.
"""
import logging
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.db.models import ExamCooldown, User
from app.services.dates import iter_dates, utc_today
from app.constants import DEFAULT_EXAM_MESSAGE

logger = logging.getLogger(__name__)


def _default_cooldown() -> ExamCooldown:
    now = datetime.utcnow()
    return ExamCooldown(
        course=None,
        semester=None,
        section=None,
        active=False,
        start_date=None,
        end_date=None,
        pause_submissions_count=True,
        message=DEFAULT_EXAM_MESSAGE,
        created_at=now,
        updated_at=now,
    )


def _get_global_row(db: Session) -> Optional[ExamCooldown]:
    return db.query(ExamCooldown).filter(ExamCooldown.course.is_(None)).first()


def get_exam_cooldown(db: Session) -> ExamCooldown:
    """Return the global window, or unsaved inactive defaults when none is configured."""
    return _get_global_row(db) or _default_cooldown()


def _validate_window(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValueError("Exam period cannot end before it starts")


def _apply_window(
    row: ExamCooldown,
    active: bool,
    start_date: Optional[date],
    end_date: Optional[date],
    pause_submissions_count: bool,
    message: Optional[str],
) -> None:
    row.active = active
    row.start_date = start_date
    row.end_date = end_date
    row.pause_submissions_count = pause_submissions_count
    row.message = message or DEFAULT_EXAM_MESSAGE
    row.updated_at = datetime.utcnow()


def update_exam_cooldown(
    db: Session,
    active: bool,
    start_date: Optional[date],
    end_date: Optional[date],
    pause_submissions_count: bool = True,
    message: Optional[str] = None,
) -> ExamCooldown:
    """
    Save the global exam window.

    Raises:
        ValueError: If end_date is before start_date
    """
    _validate_window(start_date, end_date)

    row = _get_global_row(db)
    if row is None:
        row = _default_cooldown()
        db.add(row)

    _apply_window(row, active, start_date, end_date, pause_submissions_count, message)
    db.flush()

    logger.info(f"Global exam cooldown saved: active={active}, {start_date} - {end_date}")
    return row


def toggle_exam_mode(db: Session, active: bool) -> Optional[ExamCooldown]:
    """Switch the saved global window on or off. Returns None when nothing is saved."""
    row = _get_global_row(db)
    if row is None:
        return None

    row.active = active
    row.updated_at = datetime.utcnow()
    db.flush()

    logger.info(f"Exam mode {'activated' if active else 'deactivated'}")
    return row


def is_exam_period(cooldown: ExamCooldown, today: Optional[date] = None) -> bool:
    """Active, both dates set, and today within them (inclusive)."""
    if not cooldown.active or not cooldown.start_date or not cooldown.end_date:
        return False

    today = today or utc_today()
    return cooldown.start_date <= today <= cooldown.end_date


def exam_days(cooldown: ExamCooldown) -> List[date]:
    """Every date of an active window, inclusive; empty when inactive or undated."""
    if not cooldown.active or not cooldown.start_date or not cooldown.end_date:
        return []
    return list(iter_dates(cooldown.start_date, cooldown.end_date))


def get_days_since_exam_ended(cooldown: ExamCooldown, today: Optional[date] = None) -> int:
    """Days elapsed since the window's last day; 0 while it has not ended."""
    if not cooldown.end_date:
        return 0
    today = today or utc_today()
    return max(0, (today - cooldown.end_date).days)


def get_program_exam_cooldowns(db: Session) -> List[ExamCooldown]:
    return db.query(ExamCooldown).filter(
        ExamCooldown.course.isnot(None)
    ).order_by(ExamCooldown.course, ExamCooldown.semester, ExamCooldown.section).all()


def get_program_exam_cooldown(db: Session, cooldown_id: int) -> Optional[ExamCooldown]:
    return db.query(ExamCooldown).filter(
        ExamCooldown.id == cooldown_id,
        ExamCooldown.course.isnot(None)
    ).first()


def set_program_exam_cooldown(
    db: Session,
    course: str,
    active: bool,
    start_date: Optional[date],
    end_date: Optional[date],
    semester: Optional[str] = None,
    section: Optional[str] = None,
    pause_submissions_count: bool = True,
    message: Optional[str] = None,
) -> ExamCooldown:
    """Create or replace the window for one course / semester / section scope."""
    if not course:
        raise ValueError("A program exam window needs a course")
    _validate_window(start_date, end_date)

    semester = semester or None
    section = section or None

    query = db.query(ExamCooldown).filter(ExamCooldown.course == course)
    query = query.filter(ExamCooldown.semester == semester if semester else ExamCooldown.semester.is_(None))
    query = query.filter(ExamCooldown.section == section if section else ExamCooldown.section.is_(None))
    row = query.first()

    if row is None:
        row = _default_cooldown()
        row.course = course
        row.semester = semester
        row.section = section
        db.add(row)

    _apply_window(row, active, start_date, end_date, pause_submissions_count, message)
    db.flush()

    logger.info(f"Program exam cooldown saved for {course}/{semester}/{section}: active={active}")
    return row


def delete_program_exam_cooldown(db: Session, cooldown_id: int) -> bool:
    row = get_program_exam_cooldown(db, cooldown_id)
    if row is None:
        return False
    db.delete(row)
    db.flush()
    return True


def get_exam_cooldown_for_student(
    db: Session,
    course: str,
    semester: Optional[str] = None,
    section: Optional[str] = None
) -> Optional[ExamCooldown]:
    """
    Most specific active program window matching a student.

    A window matches when its course equals the student's and its semester
    and section are either unset or equal to the student's.
    """
    if not course:
        return None

    candidates = db.query(ExamCooldown).filter(
        ExamCooldown.course == course,
        ExamCooldown.active.is_(True)
    ).all()

    matching = [
        row for row in candidates
        if (row.semester is None or row.semester == semester)
        and (row.section is None or row.section == section)
    ]
    if not matching:
        return None

    return max(matching, key=lambda row: (row.semester is not None) + (row.section is not None))


def get_student_exam_windows(db: Session, user: User) -> List[ExamCooldown]:
    """The global window plus the student's program window, when set."""
    windows = [get_exam_cooldown(db)]
    program = get_exam_cooldown_for_student(db, user.course, user.semester, user.section)
    if program is not None:
        windows.append(program)
    return windows


def is_student_in_exam_period(db: Session, user: User, today: Optional[date] = None) -> bool:
    return any(is_exam_period(window, today) for window in get_student_exam_windows(db, user))


def serialize_exam_cooldown(cooldown: ExamCooldown, today: Optional[date] = None) -> Dict:
    return {
        "id": cooldown.id,
        "course": cooldown.course,
        "semester": cooldown.semester,
        "section": cooldown.section,
        "active": cooldown.active,
        "start_date": cooldown.start_date.isoformat() if cooldown.start_date else "",
        "end_date": cooldown.end_date.isoformat() if cooldown.end_date else "",
        "pause_submissions_count": cooldown.pause_submissions_count,
        "message": cooldown.message,
        "is_exam_period": is_exam_period(cooldown, today),
        "created_at": cooldown.created_at.isoformat() if cooldown.created_at else None,
        "updated_at": cooldown.updated_at.isoformat() if cooldown.updated_at else None,
    }
