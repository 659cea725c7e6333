"""Request dependencies: session user, admin guard and maintenance gate."""
import logging
from typing import Optional
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import User
from app.services.users import get_user_data
from app.services.maintenance import get_maintenance_settings, is_maintenance_active
from app.constants import COOKIE_NAME

logger = logging.getLogger(__name__)


def _cookie_user(request: Request, db: Session) -> Optional[User]:
    user_id = request.cookies.get(COOKIE_NAME)
    if not user_id:
        return None
    return get_user_data(db, user_id)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the user handle in the session cookie."""
    user_id = request.cookies.get(COOKIE_NAME)
    if not user_id:
        raise HTTPException(status_code=401, detail="No user session found")

    user = get_user_data(db, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user session")

    if user.is_banned:
        logger.warning("Banned user rejected", extra={"user_id": user.id})
        raise HTTPException(
            status_code=403,
            detail=f"Account is banned: {user.ban_reason}" if user.ban_reason else "Account is banned"
        )
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def ensure_service_available(request: Request, db: Session = Depends(get_db)) -> None:
    """Answer 503 with the maintenance message while maintenance is active; admins pass."""
    settings_row = get_maintenance_settings(db)
    if not is_maintenance_active(settings_row):
        return

    user = _cookie_user(request, db)
    if user is not None and user.is_admin:
        return

    raise HTTPException(status_code=503, detail=settings_row.message)
