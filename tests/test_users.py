"""Tests for user records, counters, moderation and daily summations."""
from datetime import date

import pytest
from app.db.models import UserTierStat
from app.services.registration import toggle_registration, set_max_users, set_require_approval
from app.services.users import (
    DuplicateUserError,
    add_streak_break,
    count_words,
    get_daily_summations,
    get_users_by_filter,
    increment_approved,
    increment_violations,
    register_user,
    reset_user_streak_breaks,
    review_daily_summation,
    serialize_user,
    set_user_ban_status,
    submit_daily_summation,
    update_user_calendar,
    update_user_profile,
    update_user_streak,
)
from tests.factories import TODAY, add_student


class TestRegistration:

    def test_register_creates_counters_for_every_tier(self, test_db):
        user = register_user(test_db, "New@Example.com", {"name": "New", "course": "BCA"})
        test_db.commit()

        assert user.id.startswith("ndc_")
        assert user.email == "new@example.com"
        assert user.is_admin is False
        assert user.is_approved is True
        tiers = {s.difficulty for s in test_db.query(UserTierStat).filter(UserTierStat.user_id == user.id)}
        assert tiers == {"easy", "medium", "hard", "choice"}

    def test_duplicate_email(self, test_db):
        register_user(test_db, "dup@example.com", {})

        with pytest.raises(DuplicateUserError):
            register_user(test_db, "DUP@example.com", {})

    def test_closed_registration(self, test_db):
        toggle_registration(test_db, False)

        with pytest.raises(ValueError, match="Registration is currently closed."):
            register_user(test_db, "late@example.com", {})

    def test_user_cap(self, test_db):
        set_max_users(test_db, 1)
        register_user(test_db, "first@example.com", {})

        with pytest.raises(ValueError, match="Maximum user limit reached"):
            register_user(test_db, "second@example.com", {})

    def test_admin_bypasses_gate(self, test_db):
        toggle_registration(test_db, False)

        admin = register_user(test_db, "admin@example.com", {"name": "Boss"})

        assert admin.is_admin is True
        assert admin.is_approved is True

    def test_require_approval(self, test_db):
        set_require_approval(test_db, True)

        user = register_user(test_db, "waiting@example.com", {})

        assert user.is_approved is False


class TestProfileAndCounters:

    def test_update_profile(self, test_db, student):
        update_user_profile(test_db, student.id, {"section": "B", "name": None})

        assert student.section == "B"
        assert student.name == "Test Student"

    def test_update_profile_rejects_protected_fields(self, test_db, student):
        with pytest.raises(ValueError):
            update_user_profile(test_db, student.id, {"is_admin": True})

    def test_update_profile_unknown_user(self, test_db):
        assert update_user_profile(test_db, "ndc_missing", {"name": "x"}) is None

    def test_streak_breaks_disqualify_at_three(self, test_db, student):
        update_user_streak(test_db, student, 5, 2)
        assert student.disqualified is False

        add_streak_break(test_db, student)

        assert student.streak_breaks == 3
        assert student.disqualified is True
        assert student.streak_count == 5

    def test_reset_streak_breaks(self, test_db, student):
        update_user_streak(test_db, student, 0, 3)

        reset_user_streak_breaks(test_db, student)

        assert student.streak_breaks == 0
        assert student.disqualified is False

    def test_approved_count_never_negative(self, test_db, student):
        increment_approved(test_db, student, "hard", amount=-1)

        assert serialize_user(test_db, student)["approved"]["hard"] == 0

    def test_violations(self, test_db, student):
        increment_violations(test_db, student)
        increment_violations(test_db, student)

        assert student.violations == 2

    def test_calendar_status_validation(self, test_db, student):
        update_user_calendar(test_db, student, TODAY, "paused")
        update_user_calendar(test_db, student, TODAY, "completed")

        assert serialize_user(test_db, student)["calendar"] == {TODAY.isoformat(): "completed"}

        with pytest.raises(ValueError):
            update_user_calendar(test_db, student, TODAY, "excused")


class TestModeration:

    def test_ban_and_unban(self, test_db, student):
        set_user_ban_status(test_db, student, True, "Spam")

        assert student.is_banned is True
        assert student.ban_reason == "Spam"
        assert student.banned_at is not None

        set_user_ban_status(test_db, student, False)

        assert student.is_banned is False
        assert student.ban_reason is None
        assert student.banned_at is None

    def test_filter_by_program(self, test_db):
        add_student(test_db, "a@example.com", course="BCA", section="A")
        add_student(test_db, "b@example.com", course="BCA", section="B")
        add_student(test_db, "c@example.com", course="MCA", section="A")

        assert {u.email for u in get_users_by_filter(test_db, course="BCA")} == {"a@example.com", "b@example.com"}
        assert {u.email for u in get_users_by_filter(test_db, section="A")} == {"a@example.com", "c@example.com"}


class TestDailySummations:

    def test_count_words(self):
        assert count_words("  two   words\n") == 2
        assert count_words("") == 0

    def test_submit_and_overwrite_clears_review(self, test_db, student):
        submit_daily_summation(test_db, student, 3, "Learned about heaps", today=TODAY)
        review_daily_summation(test_db, student.id, 3, "Good", "Admin")

        summation = submit_daily_summation(test_db, student, 3, "Learned about heaps and tries", today=date(2025, 3, 13))

        assert summation.word_count == 5
        assert summation.reviewed is False
        assert summation.approved is None
        assert summation.review_notes is None
        assert summation.date == date(2025, 3, 13)
        assert len(get_daily_summations(test_db, student.id)) == 1

    def test_review(self, test_db, student):
        submit_daily_summation(test_db, student, 1, "Arrays", today=TODAY)

        summation = review_daily_summation(test_db, student.id, 1, "Too short", "Admin", approved=False)

        assert summation.reviewed is True
        assert summation.approved is False
        assert summation.reviewed_by == "Admin"

    def test_review_missing(self, test_db, student):
        assert review_daily_summation(test_db, student.id, 9, "", "Admin") is None

    def test_empty_content_rejected(self, test_db, student):
        with pytest.raises(ValueError):
            submit_daily_summation(test_db, student, 1, "   ", today=TODAY)
