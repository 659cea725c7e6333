"""Student support questions and their admin handling."""
import logging
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy import desc
from sqlalchemy.orm import Session
from app.db.models import StudentQuestion, User
from app.services.notifications import create_notification, notify_admins
from app.services.dates import minutes_between, utc_today
from app.constants import (
    HIGH_PRIORITY_KEYWORDS,
    MAX_SATISFACTION_RATING,
    MIN_SATISFACTION_RATING,
    PRIORITY_RANK,
    QA_CATEGORIES,
    QA_PRIORITIES,
    QA_STATUSES,
    QUESTION_PREVIEW_LENGTH,
    URGENT_KEYWORDS,
)

logger = logging.getLogger(__name__)


def detect_priority(question_text: str) -> str:
    """Guess a priority from keywords in the question text."""
    text = question_text.lower()
    if any(keyword in text for keyword in URGENT_KEYWORDS):
        return "urgent"
    if any(keyword in text for keyword in HIGH_PRIORITY_KEYWORDS):
        return "high"
    return "medium"


def _validate_choice(value: str, allowed, label: str) -> None:
    if value not in allowed:
        raise ValueError(f"Unknown {label}: {value}")


def submit_question(
    db: Session,
    student: User,
    question_text: str,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    tags: Optional[List[str]] = None,
) -> StudentQuestion:
    """
    File a support question for a student and notify the admins.

    An explicit priority wins over the keyword-detected one; urgency
    follows the detected priority.

    Raises:
        ValueError: On empty text or an unknown category / priority
    """
    if not question_text.strip():
        raise ValueError("Question text cannot be empty")
    if category:
        _validate_choice(category, QA_CATEGORIES, "category")
    if priority:
        _validate_choice(priority, QA_PRIORITIES, "priority")

    auto_priority = detect_priority(question_text)
    now = datetime.utcnow()
    question = StudentQuestion(
        id=uuid.uuid4().hex,
        student_uid=student.id,
        student_name=student.name,
        student_email=student.email,
        student_course=student.course,
        student_section=student.section,
        student_semester=student.semester,
        question_text=question_text,
        status="pending",
        priority=priority or auto_priority,
        category=category or "general",
        created_at=now,
        updated_at=now,
        is_read=False,
        is_urgent=auto_priority == "urgent",
        tags=list(dict.fromkeys(tags or [])),
        follow_up_required=False,
    )
    db.add(question)
    db.flush()

    notify_admins(
        db,
        title="New Student Question",
        message=f"New {auto_priority} priority question from {student.name or student.email}: "
                f"{question_text[:100]}",
        priority="high" if auto_priority in ("urgent", "high") else "medium",
    )

    logger.info(
        f"Question submitted ({question.priority}/{question.category})",
        extra={"user_id": student.id, "question_id": question.id}
    )
    return question


def get_question(db: Session, question_id: str) -> Optional[StudentQuestion]:
    return db.query(StudentQuestion).filter(StudentQuestion.id == question_id).first()


def get_all_questions(
    db: Session,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[StudentQuestion]:
    """Questions newest first, optionally filtered and truncated."""
    query = db.query(StudentQuestion)
    if status:
        query = query.filter(StudentQuestion.status == status)
    if priority:
        query = query.filter(StudentQuestion.priority == priority)
    if category:
        query = query.filter(StudentQuestion.category == category)
    query = query.order_by(desc(StudentQuestion.created_at))
    if limit:
        query = query.limit(limit)
    return query.all()


def get_questions_by_status(db: Session, status: str) -> List[StudentQuestion]:
    """Questions in a status, most urgent first, then newest."""
    _validate_choice(status, QA_STATUSES, "status")
    questions = get_all_questions(db, status=status)
    # Stable sort keeps the newest-first order within each priority
    return sorted(questions, key=lambda q: PRIORITY_RANK[q.priority], reverse=True)


def get_student_questions(db: Session, student_uid: str) -> List[StudentQuestion]:
    return db.query(StudentQuestion).filter(
        StudentQuestion.student_uid == student_uid
    ).order_by(desc(StudentQuestion.created_at)).all()


def answer_question(
    db: Session,
    question: StudentQuestion,
    response: str,
    admin_uid: str,
    admin_name: str,
    mark_as_resolved: bool = True,
) -> StudentQuestion:
    """Record an admin answer, its resolution time, and notify the student."""
    if not response.strip():
        raise ValueError("Response cannot be empty")

    now = datetime.utcnow()
    question.admin_response = response
    question.status = "answered" if mark_as_resolved else "pending"
    question.responded_at = now
    question.responded_by = admin_name
    question.responded_by_uid = admin_uid
    question.updated_at = now
    question.resolution_time = minutes_between(question.created_at, now)
    question.is_read = True
    db.flush()

    preview = question.question_text[:QUESTION_PREVIEW_LENGTH]
    create_notification(
        db,
        user_uid=question.student_uid,
        type="general",
        title="Your Question Has Been Answered",
        message=f'Your question about "{preview}..." has been answered by {admin_name}.',
        priority="medium",
    )

    logger.info(
        f"Question answered by {admin_name} after {question.resolution_time} min",
        extra={"user_id": question.student_uid, "question_id": question.id}
    )
    return question


def mark_as_read(db: Session, question: StudentQuestion) -> StudentQuestion:
    question.is_read = True
    question.updated_at = datetime.utcnow()
    db.flush()
    return question


def close_question(db: Session, question: StudentQuestion, reason: Optional[str] = None) -> StudentQuestion:
    question.status = "closed"
    if reason:
        question.closure_reason = reason
    question.updated_at = datetime.utcnow()
    db.flush()
    return question


def escalate_question(db: Session, question: StudentQuestion, reason: str) -> StudentQuestion:
    now = datetime.utcnow()
    question.status = "escalated"
    question.priority = "urgent"
    question.escalation_reason = reason
    question.escalated_at = now
    question.updated_at = now
    db.flush()
    logger.warning(f"Question escalated: {reason}", extra={"question_id": question.id})
    return question


def update_priority(db: Session, question: StudentQuestion, priority: str, admin_name: str) -> StudentQuestion:
    _validate_choice(priority, QA_PRIORITIES, "priority")
    now = datetime.utcnow()
    question.priority = priority
    question.priority_updated_by = admin_name
    question.priority_updated_at = now
    question.updated_at = now
    db.flush()
    return question


def add_tags(db: Session, question: StudentQuestion, tags: List[str]) -> StudentQuestion:
    """Append tags, dropping duplicates while keeping first-seen order."""
    question.tags = list(dict.fromkeys(list(question.tags or []) + list(tags)))
    question.updated_at = datetime.utcnow()
    db.flush()
    return question


def submit_feedback(
    db: Session,
    question: StudentQuestion,
    rating: int,
    feedback: Optional[str] = None
) -> StudentQuestion:
    if not MIN_SATISFACTION_RATING <= rating <= MAX_SATISFACTION_RATING:
        raise ValueError(f"Rating must be between {MIN_SATISFACTION_RATING} and {MAX_SATISFACTION_RATING}")

    question.satisfaction_rating = rating
    if feedback:
        question.student_feedback = feedback
    question.updated_at = datetime.utcnow()
    db.flush()
    return question


def get_qa_statistics(db: Session, today: Optional[date] = None) -> Dict:
    today = today or utc_today()
    questions = get_all_questions(db)

    answered_with_time = [
        q for q in questions
        if q.status == "answered" and q.resolution_time
    ]
    average_resolution_time = 0
    if answered_with_time:
        average_resolution_time = round(
            sum(q.resolution_time for q in answered_with_time) / len(answered_with_time)
        )

    return {
        "total": len(questions),
        "pending": sum(1 for q in questions if q.status == "pending"),
        "answered": sum(1 for q in questions if q.status == "answered"),
        "closed": sum(1 for q in questions if q.status == "closed"),
        "escalated": sum(1 for q in questions if q.status == "escalated"),
        "urgent_count": sum(1 for q in questions if q.priority == "urgent"),
        "todays_questions": sum(1 for q in questions if q.created_at.date() == today),
        "average_resolution_time": average_resolution_time,
    }


def get_unread_count(db: Session) -> int:
    """Unread questions still waiting for an answer."""
    return db.query(StudentQuestion).filter(
        StudentQuestion.is_read.is_(False),
        StudentQuestion.status == "pending"
    ).count()


def serialize_student_question(question: StudentQuestion) -> Dict:
    def iso(value):
        return value.isoformat() if value else None

    return {
        "id": question.id,
        "student_uid": question.student_uid,
        "student_name": question.student_name,
        "student_email": question.student_email,
        "student_course": question.student_course,
        "student_section": question.student_section,
        "student_semester": question.student_semester,
        "question_text": question.question_text,
        "status": question.status,
        "priority": question.priority,
        "category": question.category,
        "created_at": iso(question.created_at),
        "updated_at": iso(question.updated_at),
        "admin_response": question.admin_response,
        "responded_at": iso(question.responded_at),
        "responded_by": question.responded_by,
        "responded_by_uid": question.responded_by_uid,
        "resolution_time": question.resolution_time,
        "is_read": question.is_read,
        "is_urgent": question.is_urgent,
        "tags": list(question.tags or []),
        "follow_up_required": question.follow_up_required,
        "satisfaction_rating": question.satisfaction_rating,
        "student_feedback": question.student_feedback,
        "closure_reason": question.closure_reason,
        "escalation_reason": question.escalation_reason,
        "escalated_at": iso(question.escalated_at),
        "priority_updated_by": question.priority_updated_by,
        "priority_updated_at": iso(question.priority_updated_at),
    }
