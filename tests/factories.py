"""Helpers that build users and assignments for tests."""
from datetime import date
from app.services.assignments import set_assignment
from app.services.users import create_user_record

TODAY = date(2025, 3, 12)


def make_questions(prefix: str = "Q") -> dict:
    """Question fields for the three assignment tiers."""
    return {
        tier: {"title": f"{prefix} {tier}", "description": f"Solve the {tier} problem", "tags": [tier]}
        for tier in ("easy", "medium", "hard")
    }


def add_assignment(db, day: date, day_number: int = 1):
    assignment = set_assignment(db, day, day_number, make_questions(f"Day {day_number}"), created_by="admin")
    db.commit()
    return assignment


def add_student(db, email: str = "student@example.com", **profile):
    profile.setdefault("name", "Test Student")
    user = create_user_record(db, email, profile)
    db.commit()
    return user


def add_admin(db, email: str = "admin@example.com"):
    user = create_user_record(db, email, {"name": "Admin User"}, is_admin=True)
    db.commit()
    return user
