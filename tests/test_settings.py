"""Tests for registration and maintenance settings."""
from datetime import datetime, timedelta, timezone

import pytest
from app.services.registration import (
    can_register,
    get_registration_settings,
    serialize_registration_settings,
    set_restriction_message,
    toggle_registration,
    update_registration_settings,
)
from app.services.maintenance import (
    get_maintenance_settings,
    is_maintenance_active,
    serialize_maintenance_settings,
    update_maintenance_settings,
)
from app.constants import DEFAULT_MAINTENANCE_MESSAGE


class TestRegistrationSettings:

    def test_defaults_created_on_first_read(self, test_db):
        settings_row = get_registration_settings(test_db)

        assert settings_row.enabled is True
        assert settings_row.max_users == 500
        assert settings_row.require_approval is False
        assert settings_row.restriction_message == "Registration is currently closed."

    def test_partial_update_records_author(self, test_db):
        update_registration_settings(test_db, {"max_users": 50, "enabled": None}, "Admin User")

        data = serialize_registration_settings(get_registration_settings(test_db))
        assert data["max_users"] == 50
        assert data["enabled"] is True
        assert data["updated_by"] == "Admin User"

    def test_unknown_field_rejected(self, test_db):
        with pytest.raises(ValueError):
            update_registration_settings(test_db, {"colour": "blue"})

    def test_negative_cap_rejected(self, test_db):
        with pytest.raises(ValueError):
            update_registration_settings(test_db, {"max_users": -1})

    def test_gate_uses_restriction_message(self, test_db):
        toggle_registration(test_db, False)
        set_restriction_message(test_db, "Cohort is full, see you next term")

        assert can_register(test_db, 0) == {"allowed": False, "reason": "Cohort is full, see you next term"}

    def test_gate_cap(self, test_db):
        assert can_register(test_db, 499)["allowed"] is True
        assert can_register(test_db, 500) == {"allowed": False, "reason": "Maximum user limit reached"}


class TestMaintenanceSettings:

    def test_disabled_by_default(self, test_db):
        settings_row = get_maintenance_settings(test_db)

        assert settings_row.enabled is False
        assert settings_row.message == DEFAULT_MAINTENANCE_MESSAGE
        assert is_maintenance_active(settings_row) is False

    def test_enabled_without_window_is_active(self, test_db):
        settings_row = update_maintenance_settings(test_db, True, "Upgrading database")

        assert is_maintenance_active(settings_row) is True
        assert serialize_maintenance_settings(settings_row)["message"] == "Upgrading database"

    def test_window_bounds(self, test_db):
        start = datetime(2025, 3, 12, 22, 0)
        end = datetime(2025, 3, 12, 23, 0)
        settings_row = update_maintenance_settings(test_db, True, starts_at=start, ends_at=end)

        assert is_maintenance_active(settings_row, start - timedelta(minutes=1)) is False
        assert is_maintenance_active(settings_row, start + timedelta(minutes=30)) is True
        assert is_maintenance_active(settings_row, end + timedelta(minutes=1)) is False
        assert serialize_maintenance_settings(settings_row, start)["is_active"] is True

    def test_inverted_window_rejected(self, test_db):
        with pytest.raises(ValueError):
            update_maintenance_settings(
                test_db,
                True,
                starts_at=datetime(2025, 3, 12, 23, 0),
                ends_at=datetime(2025, 3, 12, 22, 0)
            )

    def test_offset_bounds_stored_as_utc(self, test_db):
        india = timezone(timedelta(hours=5, minutes=30))
        settings_row = update_maintenance_settings(
            test_db,
            True,
            starts_at=datetime(2025, 3, 12, 10, 0, tzinfo=india),
            ends_at=datetime(2025, 3, 12, 12, 0, tzinfo=india)
        )

        assert settings_row.starts_at == datetime(2025, 3, 12, 4, 30)
        assert settings_row.ends_at == datetime(2025, 3, 12, 6, 30)
        assert is_maintenance_active(settings_row, datetime(2025, 3, 12, 5, 0)) is True
        assert is_maintenance_active(settings_row, datetime(2025, 3, 12, 10, 30)) is False

    def test_mixed_naive_and_offset_bounds(self, test_db):
        settings_row = update_maintenance_settings(
            test_db,
            True,
            starts_at=datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc),
            ends_at=datetime(2025, 3, 12, 11, 0)
        )

        assert settings_row.starts_at.tzinfo is None
        assert is_maintenance_active(settings_row, datetime(2025, 3, 12, 10, 30, tzinfo=timezone.utc)) is True

    def test_offset_bounds_still_ordered(self, test_db):
        with pytest.raises(ValueError):
            update_maintenance_settings(
                test_db,
                True,
                starts_at=datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc),
                ends_at=datetime(2025, 3, 12, 12, 0, tzinfo=timezone(timedelta(hours=5)))
            )
