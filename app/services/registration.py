"""Registration settings and the registration gate."""
import logging
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.orm import Session
from app.db.models import RegistrationSettings
from app.constants import (
    DEFAULT_REGISTRATION_ENABLED,
    DEFAULT_MAX_USERS,
    DEFAULT_REQUIRE_APPROVAL,
    DEFAULT_RESTRICTION_MESSAGE,
)

logger = logging.getLogger(__name__)

SETTINGS_ID = 1
UPDATABLE_FIELDS = ("enabled", "max_users", "require_approval", "restriction_message")


def _default_settings() -> RegistrationSettings:
    return RegistrationSettings(
        id=SETTINGS_ID,
        enabled=DEFAULT_REGISTRATION_ENABLED,
        max_users=DEFAULT_MAX_USERS,
        require_approval=DEFAULT_REQUIRE_APPROVAL,
        restriction_message=DEFAULT_RESTRICTION_MESSAGE,
        last_updated=datetime.utcnow(),
    )


def get_registration_settings(db: Session) -> RegistrationSettings:
    """Return the registration settings, creating the defaults if none exist."""
    settings_row = db.query(RegistrationSettings).filter(RegistrationSettings.id == SETTINGS_ID).first()
    if settings_row is None:
        settings_row = _default_settings()
        db.add(settings_row)
        db.flush()
        logger.info("Created default registration settings")
    return settings_row


def update_registration_settings(db: Session, changes: Dict, updated_by: Optional[str] = None) -> RegistrationSettings:
    """
    Apply a partial update to the registration settings.

    Args:
        db: Database session
        changes: Mapping of field name to new value; None values are ignored
        updated_by: Name or uid of the admin making the change

    Raises:
        ValueError: On unknown fields or a negative user cap
    """
    unknown = set(changes) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown registration settings: {', '.join(sorted(unknown))}")

    max_users = changes.get("max_users")
    if max_users is not None and max_users < 0:
        raise ValueError("max_users cannot be negative")

    settings_row = get_registration_settings(db)
    for field, value in changes.items():
        if value is not None:
            setattr(settings_row, field, value)

    settings_row.last_updated = datetime.utcnow()
    settings_row.updated_by = updated_by or "admin"
    db.flush()

    logger.info(f"Registration settings updated by {settings_row.updated_by}: {changes}")
    return settings_row


def toggle_registration(db: Session, enabled: bool, updated_by: Optional[str] = None) -> RegistrationSettings:
    return update_registration_settings(db, {"enabled": enabled}, updated_by)


def set_max_users(db: Session, max_users: int, updated_by: Optional[str] = None) -> RegistrationSettings:
    return update_registration_settings(db, {"max_users": max_users}, updated_by)


def set_require_approval(db: Session, require_approval: bool, updated_by: Optional[str] = None) -> RegistrationSettings:
    return update_registration_settings(db, {"require_approval": require_approval}, updated_by)


def set_restriction_message(db: Session, message: str, updated_by: Optional[str] = None) -> RegistrationSettings:
    return update_registration_settings(db, {"restriction_message": message}, updated_by)


def can_register(db: Session, current_user_count: int) -> Dict:
    """
    Check whether a new account may be created.

    Returns:
        {"allowed": bool, "reason": Optional[str]}
    """
    settings_row = get_registration_settings(db)

    if not settings_row.enabled:
        return {"allowed": False, "reason": settings_row.restriction_message}

    if current_user_count >= settings_row.max_users:
        return {"allowed": False, "reason": "Maximum user limit reached"}

    return {"allowed": True, "reason": None}


def serialize_registration_settings(settings_row: RegistrationSettings) -> Dict:
    return {
        "enabled": settings_row.enabled,
        "max_users": settings_row.max_users,
        "require_approval": settings_row.require_approval,
        "restriction_message": settings_row.restriction_message,
        "last_updated": settings_row.last_updated.isoformat() if settings_row.last_updated else None,
        "updated_by": settings_row.updated_by,
    }
