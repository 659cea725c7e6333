"""User records, per-tier counters, calendar and daily summations."""
import logging
import re
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.db.models import User, UserTierStat, CalendarEntry, DailySummation
from app.services.registration import can_register, get_registration_settings
from app.services.dates import utc_today
from app.constants import (
    DIFFICULTIES,
    CALENDAR_STATUSES,
    MAX_STREAK_BREAKS,
    USER_ID_PREFIX,
)

logger = logging.getLogger(__name__)


class DuplicateUserError(ValueError):
    """Raised when an email is already registered."""


PROFILE_FIELDS = ("name", "enrollment_no", "course", "section", "semester", "github_repo_link")


def count_words(content: str) -> int:
    """Number of whitespace-separated non-empty tokens."""
    return len([word for word in re.split(r"\s+", content) if word])


def get_user_data(db: Session, uid: str) -> Optional[User]:
    return db.query(User).filter(User.id == uid).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user_record(db: Session, email: str, profile: Dict, is_admin: bool = False, is_approved: bool = True) -> User:
    """Insert a user with zeroed counters for every tier."""
    now = datetime.utcnow()
    user = User(
        id=f"{USER_ID_PREFIX}{uuid.uuid4()}",
        email=email.strip().lower(),
        streak_count=0,
        streak_breaks=0,
        disqualified=False,
        violations=0,
        is_admin=is_admin,
        is_approved=is_approved,
        is_banned=False,
        created_at=now,
        updated_at=now,
        **{field: (profile.get(field) or "") for field in PROFILE_FIELDS}
    )
    db.add(user)

    for difficulty in DIFFICULTIES:
        db.add(UserTierStat(user_id=user.id, difficulty=difficulty, attempts=0, approved=0))

    db.flush()
    return user


def register_user(db: Session, email: str, profile: Dict) -> User:
    """
    Register a new student (or the configured admin).

    The configured admin email always registers and is flagged admin.
    Everyone else goes through the registration gate.

    Raises:
        DuplicateUserError: If the email is taken
        ValueError: If registration is not allowed
    """
    if get_user_by_email(db, email) is not None:
        raise DuplicateUserError("An account with this email already exists")

    is_admin = settings.is_admin_email(email)
    is_approved = True

    if not is_admin:
        student_count = db.query(User).filter(User.is_admin.is_(False)).count()
        gate = can_register(db, student_count)
        if not gate["allowed"]:
            raise ValueError(gate["reason"])
        is_approved = not get_registration_settings(db).require_approval

    user = create_user_record(db, email, profile, is_admin=is_admin, is_approved=is_approved)
    logger.info(
        f"Registered {'admin' if is_admin else 'student'} {user.email}",
        extra={"user_id": user.id}
    )
    return user


def update_user_profile(db: Session, uid: str, data: Dict) -> Optional[User]:
    """
    Update editable profile fields. None values are left untouched.

    Raises:
        ValueError: On fields that are not part of the profile
    """
    unknown = set(data) - set(PROFILE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    user = get_user_data(db, uid)
    if user is None:
        return None

    for field, value in data.items():
        if value is not None:
            setattr(user, field, value)
    user.updated_at = datetime.utcnow()
    db.flush()
    return user


def _get_tier_stat(db: Session, uid: str, difficulty: str) -> UserTierStat:
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")

    stat = db.query(UserTierStat).filter(
        UserTierStat.user_id == uid,
        UserTierStat.difficulty == difficulty
    ).first()
    if stat is None:
        stat = UserTierStat(user_id=uid, difficulty=difficulty, attempts=0, approved=0)
        db.add(stat)
        db.flush()
    return stat


def update_user_streak(db: Session, user: User, streak_count: int, streak_breaks: Optional[int] = None) -> User:
    """Set the stored streak; when breaks are given, disqualification follows them."""
    user.streak_count = streak_count

    if streak_breaks is not None:
        user.streak_breaks = streak_breaks
        user.disqualified = streak_breaks >= MAX_STREAK_BREAKS

    user.updated_at = datetime.utcnow()
    db.flush()
    return user


def add_streak_break(db: Session, user: User) -> User:
    """Record one streak break, disqualifying the user at the limit."""
    return update_user_streak(db, user, user.streak_count, user.streak_breaks + 1)


def increment_attempt(db: Session, user: User, difficulty: str) -> UserTierStat:
    stat = _get_tier_stat(db, user.id, difficulty)
    stat.attempts += 1
    now = datetime.utcnow()
    user.last_submission = now
    user.updated_at = now
    db.flush()
    return stat


def increment_approved(db: Session, user: User, difficulty: str, amount: int = 1) -> UserTierStat:
    """Adjust the approved counter; never drops below zero."""
    stat = _get_tier_stat(db, user.id, difficulty)
    stat.approved = max(0, stat.approved + amount)
    user.updated_at = datetime.utcnow()
    db.flush()
    return stat


def increment_violations(db: Session, user: User) -> User:
    user.violations += 1
    user.updated_at = datetime.utcnow()
    db.flush()
    return user


def update_user_calendar(db: Session, user: User, day: date, status: str) -> CalendarEntry:
    if status not in CALENDAR_STATUSES:
        raise ValueError(f"Unknown calendar status: {status}")

    entry = db.query(CalendarEntry).filter(
        CalendarEntry.user_id == user.id,
        CalendarEntry.date == day
    ).first()
    if entry is None:
        entry = CalendarEntry(user_id=user.id, date=day, status=status)
        db.add(entry)
    else:
        entry.status = status
    user.updated_at = datetime.utcnow()
    db.flush()
    return entry


def clear_user_calendar_day(db: Session, user: User, day: date) -> None:
    db.query(CalendarEntry).filter(
        CalendarEntry.user_id == user.id,
        CalendarEntry.date == day
    ).delete()
    db.flush()


def get_all_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at).all()


def get_users_by_filter(
    db: Session,
    course: Optional[str] = None,
    section: Optional[str] = None,
    semester: Optional[str] = None
) -> List[User]:
    query = db.query(User)
    if course:
        query = query.filter(User.course == course)
    if section:
        query = query.filter(User.section == section)
    if semester:
        query = query.filter(User.semester == semester)
    return query.order_by(User.created_at).all()


def set_user_disqualification(db: Session, user: User, disqualified: bool) -> User:
    user.disqualified = disqualified
    user.updated_at = datetime.utcnow()
    db.flush()
    logger.info(f"User {'disqualified' if disqualified else 'requalified'}", extra={"user_id": user.id})
    return user


def reset_user_streak_breaks(db: Session, user: User) -> User:
    user.streak_breaks = 0
    user.disqualified = False
    user.updated_at = datetime.utcnow()
    db.flush()
    logger.info("Streak breaks reset", extra={"user_id": user.id})
    return user


def set_user_ban_status(db: Session, user: User, is_banned: bool, ban_reason: Optional[str] = None) -> User:
    """Ban records the reason and time; unban clears both."""
    now = datetime.utcnow()
    user.is_banned = is_banned
    if is_banned:
        if ban_reason:
            user.ban_reason = ban_reason
        user.banned_at = now
    else:
        user.ban_reason = None
        user.banned_at = None
    user.updated_at = now
    db.flush()
    logger.info(f"User {'banned' if is_banned else 'unbanned'}", extra={"user_id": user.id})
    return user


def approve_user(db: Session, user: User) -> User:
    user.is_approved = True
    user.updated_at = datetime.utcnow()
    db.flush()
    return user


def get_daily_summation(db: Session, uid: str, day: int) -> Optional[DailySummation]:
    return db.query(DailySummation).filter(
        DailySummation.user_id == uid,
        DailySummation.day == day
    ).first()


def get_daily_summations(db: Session, uid: str) -> List[DailySummation]:
    return db.query(DailySummation).filter(
        DailySummation.user_id == uid
    ).order_by(DailySummation.day).all()


def submit_daily_summation(db: Session, user: User, day: int, content: str, today: Optional[date] = None) -> DailySummation:
    """
    Store the summation for a challenge day, replacing any earlier one.

    A replacement starts unreviewed again.
    """
    if day < 1:
        raise ValueError("Day must be a positive number")
    if not content.strip():
        raise ValueError("Summation content cannot be empty")

    now = datetime.utcnow()
    summation = get_daily_summation(db, user.id, day)
    if summation is None:
        summation = DailySummation(user_id=user.id, day=day)
        db.add(summation)

    summation.date = today or utc_today()
    summation.content = content
    summation.word_count = count_words(content)
    summation.submitted_at = now
    summation.reviewed = False
    summation.approved = None
    summation.review_notes = None
    summation.reviewed_at = None
    summation.reviewed_by = None
    user.updated_at = now
    db.flush()
    return summation


def review_daily_summation(
    db: Session,
    uid: str,
    day: int,
    review_notes: str,
    reviewed_by: str,
    approved: bool = True
) -> Optional[DailySummation]:
    summation = get_daily_summation(db, uid, day)
    if summation is None:
        return None

    summation.reviewed = True
    summation.approved = approved
    summation.review_notes = review_notes
    summation.reviewed_at = datetime.utcnow()
    summation.reviewed_by = reviewed_by
    db.flush()
    return summation


def get_tier_counts(db: Session, uid: str) -> Dict[str, Dict[str, int]]:
    """{"attempts": {tier: n}, "approved": {tier: n}} with every tier present."""
    stats = {stat.difficulty: stat for stat in db.query(UserTierStat).filter(UserTierStat.user_id == uid).all()}
    return {
        "attempts": {d: stats[d].attempts if d in stats else 0 for d in DIFFICULTIES},
        "approved": {d: stats[d].approved if d in stats else 0 for d in DIFFICULTIES},
    }


def serialize_user(db: Session, user: User) -> Dict:
    counts = get_tier_counts(db, user.id)
    calendar = {
        entry.date.isoformat(): entry.status
        for entry in db.query(CalendarEntry).filter(CalendarEntry.user_id == user.id).all()
    }
    return {
        "uid": user.id,
        "email": user.email,
        **{field: getattr(user, field) for field in PROFILE_FIELDS},
        "streak_count": user.streak_count,
        "streak_breaks": user.streak_breaks,
        "disqualified": user.disqualified,
        "violations": user.violations,
        "attempts": counts["attempts"],
        "approved": counts["approved"],
        "calendar": calendar,
        "is_admin": user.is_admin,
        "is_approved": user.is_approved,
        "is_banned": user.is_banned,
        "ban_reason": user.ban_reason,
        "banned_at": user.banned_at.isoformat() if user.banned_at else None,
        "last_submission": user.last_submission.isoformat() if user.last_submission else None,
        "created_at": user.created_at.isoformat(),
        "updated_at": user.updated_at.isoformat(),
    }


def serialize_summation(summation: DailySummation) -> Dict:
    return {
        "day": summation.day,
        "date": summation.date.isoformat(),
        "content": summation.content,
        "word_count": summation.word_count,
        "submitted_at": summation.submitted_at.isoformat(),
        "reviewed": summation.reviewed,
        "approved": summation.approved,
        "review_notes": summation.review_notes,
        "reviewed_at": summation.reviewed_at.isoformat() if summation.reviewed_at else None,
        "reviewed_by": summation.reviewed_by,
    }
