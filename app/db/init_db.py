"""Database initialization and default settings seeding."""
import logging
from sqlalchemy.orm import Session
from app.config import settings
from app.db.database import engine, SessionLocal, Base
from app.db import models  # noqa: F401  registers the tables on Base.metadata
from app.services.registration import get_registration_settings
from app.services.maintenance import get_maintenance_settings
from app.services.users import create_user_record, get_user_by_email

logger = logging.getLogger(__name__)


def seed_default_settings(db: Session) -> None:
    """Create the registration and maintenance singleton rows if missing."""
    get_registration_settings(db)
    get_maintenance_settings(db)
    db.commit()


def seed_admin_account(db: Session) -> None:
    """Create the configured admin account, or promote it if it already exists."""
    if not settings.ADMIN_EMAIL:
        logger.info("ADMIN_EMAIL not set. Skipping admin seed.")
        return

    admin = get_user_by_email(db, settings.ADMIN_EMAIL)
    if admin is None:
        create_user_record(
            db,
            settings.ADMIN_EMAIL,
            {"name": settings.ADMIN_NAME},
            is_admin=True,
            is_approved=True
        )
        logger.info(f"Seeded admin account {settings.ADMIN_EMAIL}")
    elif not admin.is_admin:
        admin.is_admin = True
        admin.is_approved = True
        logger.info(f"Promoted existing account {settings.ADMIN_EMAIL} to admin")

    db.commit()


def init_db() -> None:
    """
    Initialize database: create tables and seed defaults.

    This function:
    1. Creates all tables from SQLAlchemy models
    2. Seeds the registration and maintenance settings
    3. Seeds the admin account when ADMIN_EMAIL is configured

    Safe to call multiple times - all operations are idempotent.
    """
    logger.info("Initializing database...")

    logger.info("Creating database tables from models...")
    Base.metadata.create_all(bind=engine)
    logger.info("Tables created/verified successfully.")

    db = SessionLocal()
    try:
        seed_default_settings(db)
        seed_admin_account(db)
        logger.info("Database initialization complete.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during database initialization: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
    print("Database initialization complete.")
