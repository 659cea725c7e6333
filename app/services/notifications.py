"""In-app notifications for students and admins."""
import logging
import uuid
from datetime import date, datetime
from typing import Dict, List, Optional
from sqlalchemy import desc
from sqlalchemy.orm import Session
from app.db.models import Notification, User
from app.constants import NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_uid: str,
    type: str,
    title: str,
    message: str,
    submission_id: Optional[str] = None,
    assignment_date: Optional[date] = None,
    action_required: bool = False,
    priority: str = "medium",
) -> Notification:
    """
    Create a notification for a user.

    Raises:
        ValueError: If the notification type or priority is unknown
    """
    if type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {type}")
    if priority not in NOTIFICATION_PRIORITIES:
        raise ValueError(f"Unknown notification priority: {priority}")

    now = datetime.utcnow()
    notification = Notification(
        id=uuid.uuid4().hex,
        user_uid=user_uid,
        type=type,
        title=title,
        message=message,
        date=now,
        read=False,
        submission_id=submission_id,
        assignment_date=assignment_date,
        action_required=action_required,
        priority=priority,
        created_at=now,
    )
    db.add(notification)
    db.flush()

    logger.debug(f"Created {type} notification {notification.id}", extra={"user_id": user_uid})
    return notification


def get_user_notifications(db: Session, user_uid: str) -> List[Notification]:
    """All notifications of a user, newest first."""
    return db.query(Notification).filter(
        Notification.user_uid == user_uid
    ).order_by(desc(Notification.created_at)).all()


def get_notification(db: Session, notification_id: str) -> Optional[Notification]:
    return db.query(Notification).filter(Notification.id == notification_id).first()


def mark_as_read(db: Session, notification_id: str) -> Optional[Notification]:
    notification = get_notification(db, notification_id)
    if notification is None:
        return None
    notification.read = True
    db.flush()
    return notification


def mark_all_as_read(db: Session, user_uid: str) -> int:
    """Mark every unread notification of a user as read.

    Returns:
        Number of notifications that changed
    """
    unread = db.query(Notification).filter(
        Notification.user_uid == user_uid,
        Notification.read.is_(False)
    ).all()
    for notification in unread:
        notification.read = True
    db.flush()
    return len(unread)


def delete_notification(db: Session, notification_id: str) -> bool:
    notification = get_notification(db, notification_id)
    if notification is None:
        return False
    db.delete(notification)
    db.flush()
    return True


def get_unread_count(db: Session, user_uid: str) -> int:
    return db.query(Notification).filter(
        Notification.user_uid == user_uid,
        Notification.read.is_(False)
    ).count()


def create_approval_notification(db: Session, user_uid: str, submission_id: str, question_title: str) -> Notification:
    return create_notification(
        db,
        user_uid=user_uid,
        type="approval",
        title="Submission Approved",
        message=f'Your submission for "{question_title}" has been approved! Your streak continues.',
        submission_id=submission_id,
    )


def create_rejection_notification(
    db: Session,
    user_uid: str,
    submission_id: str,
    question_title: str,
    reason: Optional[str] = None
) -> Notification:
    if reason:
        message = (
            f'Your submission for "{question_title}" was rejected. Reason: {reason}. '
            "This counts as a streak break."
        )
    else:
        message = f'Your submission for "{question_title}" was rejected. This counts as a streak break.'

    return create_notification(
        db,
        user_uid=user_uid,
        type="rejection",
        title="Submission Rejected",
        message=message,
        submission_id=submission_id,
        action_required=True,
    )


def create_violation_notification(db: Session, user_uid: str, violation_type: str) -> Notification:
    return create_notification(
        db,
        user_uid=user_uid,
        type="violation",
        title="Rule Violation",
        message=f"Rule violation detected: {violation_type}. Please review the challenge guidelines.",
        action_required=True,
        priority="high",
    )


def notify_admins(db: Session, title: str, message: str, priority: str = "medium") -> List[Notification]:
    """Send a general notification to every admin account."""
    admins = db.query(User).filter(User.is_admin.is_(True)).all()
    if not admins:
        logger.warning(f"No admin accounts to notify: {title}")
        return []

    return [
        create_notification(
            db,
            user_uid=admin.id,
            type="general",
            title=title,
            message=message,
            priority=priority,
        )
        for admin in admins
    ]


def get_admin_notifications(db: Session) -> List[Notification]:
    """Notifications addressed to any admin account, newest first."""
    return db.query(Notification).join(
        User, Notification.user_uid == User.id
    ).filter(
        User.is_admin.is_(True)
    ).order_by(desc(Notification.created_at)).all()


def serialize_notification(notification: Notification) -> Dict:
    return {
        "id": notification.id,
        "user_uid": notification.user_uid,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "date": notification.date.isoformat(),
        "read": notification.read,
        "submission_id": notification.submission_id,
        "assignment_date": notification.assignment_date.isoformat() if notification.assignment_date else None,
        "action_required": notification.action_required,
        "priority": notification.priority,
        "created_at": notification.created_at.isoformat(),
    }
