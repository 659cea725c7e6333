"""Solution submissions and the admin review workflow."""
import logging
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.db.models import Submission, User
from app.services.schedule import can_submit_today, refresh_streak
from app.services.questions import get_question
from app.services.users import (
    add_streak_break,
    clear_user_calendar_day,
    get_user_data,
    increment_approved,
    increment_attempt,
)
from app.services.notifications import (
    create_approval_notification,
    create_rejection_notification,
)
from app.services.dates import utc_today
from app.constants import CHOICE_DIFFICULTY, DIFFICULTIES, SUBMISSION_STATUSES

logger = logging.getLogger(__name__)


class SubmissionNotAllowedError(ValueError):
    """Raised when today's schedule does not accept a submission."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Submission not allowed: {reason}")


class DuplicateSubmissionError(ValueError):
    """Raised when a tier was already attempted for the date."""


def submission_id_for(student_uid: str, day: date, difficulty: str, when: datetime) -> str:
    millis = int(when.timestamp() * 1000)
    return f"{student_uid}_{day.isoformat()}_{difficulty}_{millis}"


def has_submitted(db: Session, student_uid: str, day: date, difficulty: str) -> bool:
    return db.query(Submission).filter(
        Submission.student_uid == student_uid,
        Submission.question_date == day,
        Submission.difficulty == difficulty
    ).first() is not None


def has_submitted_any_for_date(db: Session, student_uid: str, day: date) -> bool:
    return db.query(Submission).filter(
        Submission.student_uid == student_uid,
        Submission.question_date == day
    ).first() is not None


def submit_solution(
    db: Session,
    user: User,
    difficulty: str,
    code_text: str,
    github_file_link: str = "",
    external_problem_link: str = "",
    question_title: Optional[str] = None,
    today: Optional[date] = None,
) -> Submission:
    """
    Submit a solution for today's question of the given tier.

    One attempt per tier per day. The attempt counter and last_submission
    of the student are updated.

    Raises:
        ValueError: On an unknown tier or a tier without a question today
        SubmissionNotAllowedError: When the schedule rejects submissions today
        DuplicateSubmissionError: When the tier was already attempted today
    """
    if difficulty not in DIFFICULTIES:
        raise ValueError(f"Unknown difficulty: {difficulty}")

    today = today or utc_today()
    check = can_submit_today(db, user, today)
    if not check.can_submit:
        raise SubmissionNotAllowedError(check.reason)

    question = get_question(db, today, difficulty)
    if question is None and difficulty != CHOICE_DIFFICULTY:
        raise ValueError(f"No {difficulty} question is scheduled for {today}")

    duplicate_message = (
        f"You have already attempted a {difficulty} question today. "
        "You can only attempt one question per difficulty level per day."
    )
    if has_submitted(db, user.id, today, difficulty):
        raise DuplicateSubmissionError(duplicate_message)

    now = datetime.utcnow()
    submission = Submission(
        id=submission_id_for(user.id, today, difficulty, now),
        student_uid=user.id,
        student_name=user.name,
        student_email=user.email,
        question_date=today,
        difficulty=difficulty,
        question_title=question.title if question else (question_title or ""),
        code_text=code_text,
        github_file_link=github_file_link or "",
        external_problem_link=external_problem_link or "",
        status="submitted",
        review_status="pending",
        submitted_at=now,
        created_at=now,
        updated_at=now,
    )
    db.add(submission)
    try:
        db.flush()
    except IntegrityError as e:
        # A concurrent request inserted the same tier first; the caller rolls back
        logger.warning(
            f"Concurrent duplicate submission for {today} ({difficulty})",
            extra={"user_id": user.id}
        )
        raise DuplicateSubmissionError(duplicate_message) from e
    increment_attempt(db, user, difficulty)
    db.flush()

    logger.info(
        f"Submission received for {today} ({difficulty})",
        extra={"user_id": user.id, "submission_id": submission.id}
    )
    return submission


def submit_answer(db: Session, user: User, question_id: str, answer: str, day: date) -> Submission:
    """Shortcut for a 'choice' tier answer to a question identified by id."""
    return submit_solution(
        db,
        user,
        difficulty=CHOICE_DIFFICULTY,
        code_text=answer,
        question_title=question_id,
        today=day,
    )


def get_submission(db: Session, submission_id: str) -> Optional[Submission]:
    return db.query(Submission).filter(Submission.id == submission_id).first()


def get_student_submissions(db: Session, student_uid: str) -> List[Submission]:
    """A student's submissions, newest first."""
    return db.query(Submission).filter(
        Submission.student_uid == student_uid
    ).order_by(desc(Submission.created_at)).all()


def get_submissions_by_date(db: Session, day: date) -> List[Submission]:
    return db.query(Submission).filter(
        Submission.question_date == day
    ).order_by(desc(Submission.created_at)).all()


def get_all_submissions(db: Session, status: Optional[str] = None) -> List[Submission]:
    query = db.query(Submission)
    if status:
        query = query.filter(Submission.status == status)
    return query.order_by(desc(Submission.created_at)).all()


def get_student_submissions_by_date_range(
    db: Session,
    student_uid: str,
    start: date,
    end: date
) -> List[Submission]:
    """Submissions dated start..end inclusive, newest question date first."""
    return db.query(Submission).filter(
        Submission.student_uid == student_uid,
        Submission.question_date >= start,
        Submission.question_date <= end
    ).order_by(desc(Submission.question_date), desc(Submission.created_at)).all()


def update_submission_status(
    db: Session,
    submission: Submission,
    status: str,
    admin_feedback: Optional[str] = None,
    reviewed_by: Optional[str] = None
) -> Submission:
    """
    Set the status and review fields of a submission without side effects.

    Raises:
        ValueError: On an unknown status
    """
    if status not in SUBMISSION_STATUSES:
        raise ValueError(f"Unknown submission status: {status}")

    now = datetime.utcnow()
    submission.status = status
    submission.review_status = "pending" if status == "submitted" else status
    submission.updated_at = now
    submission.reviewed_at = now
    if admin_feedback:
        submission.admin_feedback = admin_feedback
    if reviewed_by:
        submission.reviewed_by = reviewed_by
    db.flush()
    return submission


def review_submission(
    db: Session,
    submission: Submission,
    status: str,
    admin_feedback: Optional[str],
    reviewed_by: str,
    today: Optional[date] = None,
) -> Submission:
    """
    Approve or reject a submission and apply its streak consequences.

    - Becoming approved increments the tier's approved count.
    - Leaving approved decrements it and clears the calendar day.
    - Becoming rejected records a streak break (disqualifying at the limit).
    - The stored streak and calendar are recomputed afterwards and the
      student is notified.

    Raises:
        ValueError: If status is neither 'approved' nor 'rejected'
    """
    if status not in ("approved", "rejected"):
        raise ValueError("Review status must be 'approved' or 'rejected'")

    previous = submission.status
    update_submission_status(db, submission, status, admin_feedback, reviewed_by)

    student = get_user_data(db, submission.student_uid)
    if student is None:
        logger.warning(
            "Reviewed submission of unknown student",
            extra={"submission_id": submission.id}
        )
        return submission

    if status == "approved" and previous != "approved":
        increment_approved(db, student, submission.difficulty)
    elif previous == "approved" and status != "approved":
        increment_approved(db, student, submission.difficulty, amount=-1)
        clear_user_calendar_day(db, student, submission.question_date)

    if status == "rejected" and previous != "rejected":
        add_streak_break(db, student)

    refresh_streak(db, student, today)

    title = submission.question_title or "Question"
    if status == "approved":
        create_approval_notification(db, student.id, submission.id, title)
    else:
        create_rejection_notification(db, student.id, submission.id, title, admin_feedback)

    logger.info(
        f"Submission {previous} -> {status} by {reviewed_by}",
        extra={"user_id": student.id, "submission_id": submission.id}
    )
    return submission


def serialize_submission(submission: Submission) -> Dict:
    return {
        "id": submission.id,
        "student_uid": submission.student_uid,
        "student_name": submission.student_name,
        "student_email": submission.student_email,
        "question_date": submission.question_date.isoformat(),
        "difficulty": submission.difficulty,
        "question_title": submission.question_title,
        "code_text": submission.code_text,
        "github_file_link": submission.github_file_link,
        "external_problem_link": submission.external_problem_link,
        "status": submission.status,
        "admin_feedback": submission.admin_feedback,
        "reviewed_at": submission.reviewed_at.isoformat() if submission.reviewed_at else None,
        "reviewed_by": submission.reviewed_by,
        "admin_review": {
            "status": submission.review_status,
            "feedback": submission.admin_feedback,
            "reviewed_at": submission.reviewed_at.isoformat() if submission.reviewed_at else None,
            "reviewed_by": submission.reviewed_by or "",
        },
        "submitted_at": submission.submitted_at.isoformat(),
        "created_at": submission.created_at.isoformat(),
        "updated_at": submission.updated_at.isoformat(),
    }
