"""Maintenance mode window."""
import logging
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.orm import Session
from app.db.models import MaintenanceSettings
from app.services.dates import to_naive_utc
from app.constants import DEFAULT_MAINTENANCE_MESSAGE

logger = logging.getLogger(__name__)

SETTINGS_ID = 1


def get_maintenance_settings(db: Session) -> MaintenanceSettings:
    """Return the maintenance settings, creating a disabled row if none exists."""
    settings_row = db.query(MaintenanceSettings).filter(MaintenanceSettings.id == SETTINGS_ID).first()
    if settings_row is None:
        settings_row = MaintenanceSettings(
            id=SETTINGS_ID,
            enabled=False,
            message=DEFAULT_MAINTENANCE_MESSAGE,
            updated_at=datetime.utcnow(),
        )
        db.add(settings_row)
        db.flush()
    return settings_row


def update_maintenance_settings(
    db: Session,
    enabled: bool,
    message: Optional[str] = None,
    starts_at: Optional[datetime] = None,
    ends_at: Optional[datetime] = None,
    updated_by: Optional[str] = None,
) -> MaintenanceSettings:
    """
    Replace the maintenance window.

    Bounds with a UTC offset are stored as naive UTC.

    Raises:
        ValueError: If the window ends before it starts
    """
    starts_at = to_naive_utc(starts_at)
    ends_at = to_naive_utc(ends_at)
    if starts_at and ends_at and ends_at < starts_at:
        raise ValueError("Maintenance window cannot end before it starts")

    settings_row = get_maintenance_settings(db)
    settings_row.enabled = enabled
    settings_row.message = message or DEFAULT_MAINTENANCE_MESSAGE
    settings_row.starts_at = starts_at
    settings_row.ends_at = ends_at
    settings_row.updated_by = updated_by or "admin"
    settings_row.updated_at = datetime.utcnow()
    db.flush()

    logger.info(
        f"Maintenance mode {'enabled' if enabled else 'disabled'} by {settings_row.updated_by} "
        f"(window {starts_at} - {ends_at})"
    )
    return settings_row


def is_maintenance_active(settings_row: MaintenanceSettings, now: Optional[datetime] = None) -> bool:
    """Enabled and, when a window is set, now falls inside it."""
    if not settings_row.enabled:
        return False

    now = to_naive_utc(now) or datetime.utcnow()
    if settings_row.starts_at and now < settings_row.starts_at:
        return False
    if settings_row.ends_at and now > settings_row.ends_at:
        return False
    return True


def serialize_maintenance_settings(settings_row: MaintenanceSettings, now: Optional[datetime] = None) -> Dict:
    return {
        "enabled": settings_row.enabled,
        "message": settings_row.message,
        "starts_at": settings_row.starts_at.isoformat() if settings_row.starts_at else None,
        "ends_at": settings_row.ends_at.isoformat() if settings_row.ends_at else None,
        "updated_by": settings_row.updated_by,
        "updated_at": settings_row.updated_at.isoformat() if settings_row.updated_at else None,
        "is_active": is_maintenance_active(settings_row, now),
    }
