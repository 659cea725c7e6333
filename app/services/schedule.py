"""Assignment visibility, streak calculation and submit eligibility.

The streak is derived, never accumulated: every call merges three small
collections (approved submission dates, scheduled assignment dates and exam
days) and classifies each scheduled date as completed, missed, exam-paused or
not yet due.

Rules:
- A missed day is a scheduled date strictly before today that is neither an
  exam day nor covered by an approved submission.
- The current streak walks scheduled dates newest first. Future dates and
  today (until it is approved) are skipped, approved dates count, exam days
  are skipped without counting, and any other date ends the walk.
- The streak is active when it is positive or today is an exam day.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Set
from sqlalchemy.orm import Session
from app.db.models import Assignment, Submission, User
from app.services.assignments import get_all_assignments, get_assignment, serialize_assignment
from app.services.exam_cooldown import (
    exam_days as window_exam_days,
    get_exam_cooldown,
    get_student_exam_windows,
    is_exam_period,
)
from app.services.users import update_user_calendar, update_user_streak
from app.services.dates import utc_today
from app.constants import (
    BREAK_EXAM_PERIOD,
    BREAK_MISSED_SUBMISSION,
    BREAK_NO_ASSIGNMENT,
    REASON_ALREADY_COMPLETED,
    REASON_DISQUALIFIED,
    REASON_EXAM_PERIOD,
    REASON_NO_ASSIGNMENT,
    REASON_PENDING_APPROVAL,
)


@dataclass
class ScheduledAssignment:
    """An assignment annotated with its position relative to today."""
    assignment: Assignment
    is_visible: bool
    is_active: bool
    is_upcoming: bool
    is_past: bool

    def to_dict(self, db: Session) -> Dict:
        return {
            **serialize_assignment(db, self.assignment),
            "is_visible": self.is_visible,
            "is_active": self.is_active,
            "is_upcoming": self.is_upcoming,
            "is_past": self.is_past,
        }


@dataclass
class StreakCalculation:
    current_streak: int = 0
    is_streak_active: bool = False
    streak_break_reason: Optional[str] = None
    last_submission_date: Optional[date] = None
    next_required_date: Optional[date] = None
    missed_days: List[date] = field(default_factory=list)
    exam_days: List[date] = field(default_factory=list)
    scheduled_days: List[date] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "current_streak": self.current_streak,
            "is_streak_active": self.is_streak_active,
            "streak_break_reason": self.streak_break_reason,
            "last_submission_date": self.last_submission_date.isoformat() if self.last_submission_date else None,
            "next_required_date": self.next_required_date.isoformat() if self.next_required_date else None,
            "missed_days": [d.isoformat() for d in self.missed_days],
            "exam_days": [d.isoformat() for d in self.exam_days],
            "scheduled_days": [d.isoformat() for d in self.scheduled_days],
        }


@dataclass
class SubmitCheck:
    can_submit: bool
    reason: Optional[str] = None
    assignment: Optional[ScheduledAssignment] = None

    def to_dict(self, db: Session) -> Dict:
        return {
            "can_submit": self.can_submit,
            "reason": self.reason,
            "assignment": self.assignment.to_dict(db) if self.assignment else None,
        }


def compute_streak(
    scheduled_days: Iterable[date],
    approved_dates: Set[date],
    exam_days: Iterable[date],
    today: date
) -> StreakCalculation:
    """Reconcile scheduled, approved and exam dates into a streak."""
    scheduled = sorted(set(scheduled_days))
    exam = sorted(set(exam_days))
    exam_set = set(exam)

    missed = [
        day for day in scheduled
        if day < today and day not in exam_set and day not in approved_dates
    ]

    current_streak = 0
    last_submission_date = None
    for day in reversed(scheduled):
        if day > today:
            continue
        if day in approved_dates:
            current_streak += 1
            if last_submission_date is None:
                last_submission_date = day
        elif day in exam_set or day == today:
            continue
        else:
            break

    next_required = next((day for day in scheduled if day > today), None)
    is_active = current_streak > 0 or today in exam_set

    reason = None
    if not is_active:
        if today in exam_set:
            reason = BREAK_EXAM_PERIOD
        elif today not in scheduled:
            reason = BREAK_NO_ASSIGNMENT
        elif missed:
            reason = BREAK_MISSED_SUBMISSION

    return StreakCalculation(
        current_streak=current_streak,
        is_streak_active=is_active,
        streak_break_reason=reason,
        last_submission_date=last_submission_date,
        next_required_date=next_required,
        missed_days=missed,
        exam_days=exam,
        scheduled_days=scheduled,
    )


def classify_day(day: date, today: date, approved: bool, is_exam_day: bool) -> str:
    """Calendar status of one scheduled date."""
    if is_exam_day:
        return "exam"
    if approved:
        return "completed"
    if day < today:
        return "missed"
    return "scheduled"


def _student_exam_days(db: Session, user: Optional[User]) -> Set[date]:
    windows = get_student_exam_windows(db, user) if user else [get_exam_cooldown(db)]
    days: Set[date] = set()
    for window in windows:
        days.update(window_exam_days(window))
    return days


def _in_exam_period(db: Session, user: Optional[User], today: date) -> bool:
    windows = get_student_exam_windows(db, user) if user else [get_exam_cooldown(db)]
    return any(is_exam_period(window, today) for window in windows)


def _approved_dates(db: Session, student_uid: str) -> Set[date]:
    rows = db.query(Submission.question_date).filter(
        Submission.student_uid == student_uid,
        Submission.status == "approved"
    ).all()
    return {row[0] for row in rows}


def get_visible_assignments(
    db: Session,
    today: Optional[date] = None,
    user: Optional[User] = None
) -> List[ScheduledAssignment]:
    """
    Every dated assignment, ascending by date.

    An assignment is active when it is today's and no exam window (global,
    or the student's own program window when a user is given) covers today.
    """
    today = today or utc_today()
    in_exam = _in_exam_period(db, user, today)

    return [
        ScheduledAssignment(
            assignment=assignment,
            is_visible=True,
            is_active=assignment.date == today and not in_exam,
            is_upcoming=assignment.date > today,
            is_past=assignment.date < today,
        )
        for assignment in get_all_assignments(db)
    ]


def get_todays_assignment(
    db: Session,
    today: Optional[date] = None,
    user: Optional[User] = None
) -> Optional[ScheduledAssignment]:
    today = today or utc_today()
    assignment = get_assignment(db, today)
    if assignment is None:
        return None

    return ScheduledAssignment(
        assignment=assignment,
        is_visible=True,
        is_active=not _in_exam_period(db, user, today),
        is_upcoming=False,
        is_past=False,
    )


def calculate_enhanced_streak(db: Session, user: User, today: Optional[date] = None) -> StreakCalculation:
    """Streak of a student, taking exam windows and the schedule into account."""
    today = today or utc_today()
    scheduled = [assignment.date for assignment in get_all_assignments(db)]
    return compute_streak(
        scheduled,
        _approved_dates(db, user.id),
        _student_exam_days(db, user),
        today,
    )


def can_submit_today(db: Session, user: User, today: Optional[date] = None) -> SubmitCheck:
    """
    Decide whether a student may submit a solution today.

    Checks in order: account standing, exam period, an active assignment
    for today, and an already approved submission for today.
    """
    today = today or utc_today()

    if not user.is_approved:
        return SubmitCheck(can_submit=False, reason=REASON_PENDING_APPROVAL)
    if user.disqualified:
        return SubmitCheck(can_submit=False, reason=REASON_DISQUALIFIED)

    if _in_exam_period(db, user, today):
        return SubmitCheck(can_submit=False, reason=REASON_EXAM_PERIOD)

    todays_assignment = get_todays_assignment(db, today, user)
    if todays_assignment is None or not todays_assignment.is_active:
        return SubmitCheck(can_submit=False, reason=REASON_NO_ASSIGNMENT)

    if today in _approved_dates(db, user.id):
        return SubmitCheck(can_submit=False, reason=REASON_ALREADY_COMPLETED, assignment=todays_assignment)

    return SubmitCheck(can_submit=True, assignment=todays_assignment)


def get_assignment_calendar(db: Session, user: User, today: Optional[date] = None) -> Dict[str, Dict]:
    """Per scheduled date: status, the assignment, has_submission and is_approved."""
    today = today or utc_today()
    exam = _student_exam_days(db, user)

    submissions = db.query(Submission).filter(Submission.student_uid == user.id).all()
    submitted_dates = {sub.question_date for sub in submissions}
    approved_dates = {sub.question_date for sub in submissions if sub.status == "approved"}

    calendar = {}
    for scheduled in get_visible_assignments(db, today, user):
        day = scheduled.assignment.date
        is_approved = day in approved_dates
        calendar[day.isoformat()] = {
            "status": classify_day(day, today, is_approved, day in exam),
            "assignment": scheduled.to_dict(db),
            "has_submission": day in submitted_dates,
            "is_approved": is_approved,
        }
    return calendar


def refresh_streak(db: Session, user: User, today: Optional[date] = None) -> StreakCalculation:
    """Recompute the streak and persist it with the calendar up to today."""
    today = today or utc_today()
    calculation = calculate_enhanced_streak(db, user, today)
    approved = _approved_dates(db, user.id)
    exam = set(calculation.exam_days)

    for day in calculation.scheduled_days:
        if day > today:
            break
        if day in approved:
            update_user_calendar(db, user, day, "completed")
        elif day in exam:
            update_user_calendar(db, user, day, "paused")
        elif day < today:
            update_user_calendar(db, user, day, "missed")

    update_user_streak(db, user, calculation.current_streak)
    return calculation
