"""Tests for in-app notifications."""
import pytest
from app.services.notifications import (
    create_notification,
    create_rejection_notification,
    create_violation_notification,
    delete_notification,
    get_admin_notifications,
    get_unread_count,
    get_user_notifications,
    mark_all_as_read,
    mark_as_read,
    notify_admins,
    serialize_notification,
)
from tests.factories import add_admin


class TestNotifications:

    def test_create_and_list_newest_first(self, test_db, student):
        first = create_notification(test_db, student.id, "general", "Welcome", "Hello")
        second = create_notification(test_db, student.id, "assignment", "Day 2", "New assignment")

        notifications = get_user_notifications(test_db, student.id)

        assert {n.id for n in notifications} == {first.id, second.id}
        assert notifications[0].created_at >= notifications[1].created_at
        assert get_unread_count(test_db, student.id) == 2

    def test_unknown_type_rejected(self, test_db, student):
        with pytest.raises(ValueError):
            create_notification(test_db, student.id, "promo", "Sale", "50% off")

    def test_mark_read_and_read_all(self, test_db, student):
        first = create_notification(test_db, student.id, "general", "A", "a")
        create_notification(test_db, student.id, "general", "B", "b")
        create_notification(test_db, student.id, "general", "C", "c")

        mark_as_read(test_db, first.id)
        assert get_unread_count(test_db, student.id) == 2

        assert mark_all_as_read(test_db, student.id) == 2
        assert get_unread_count(test_db, student.id) == 0

    def test_mark_missing(self, test_db):
        assert mark_as_read(test_db, "nope") is None

    def test_delete(self, test_db, student):
        notification = create_notification(test_db, student.id, "general", "A", "a")

        assert delete_notification(test_db, notification.id) is True
        assert delete_notification(test_db, notification.id) is False
        assert get_user_notifications(test_db, student.id) == []

    def test_rejection_message(self, test_db, student):
        with_reason = create_rejection_notification(test_db, student.id, "sub_1", "Two Sum", "Copied code")
        without_reason = create_rejection_notification(test_db, student.id, "sub_2", "Two Sum")

        assert "Reason: Copied code" in with_reason.message
        assert without_reason.message.endswith("This counts as a streak break.")

    def test_violation_is_high_priority(self, test_db, student):
        notification = create_violation_notification(test_db, student.id, "plagiarism")

        assert notification.priority == "high"
        assert notification.action_required is True
        assert "plagiarism" in notification.message

    def test_notify_admins(self, test_db, student, admin):
        other_admin = add_admin(test_db, "second-admin@example.com")

        sent = notify_admins(test_db, "Heads up", "Something happened", priority="high")

        assert {n.user_uid for n in sent} == {admin.id, other_admin.id}
        assert len(get_admin_notifications(test_db)) == 2
        assert get_user_notifications(test_db, student.id) == []

    def test_notify_admins_without_admins(self, test_db, student):
        assert notify_admins(test_db, "Heads up", "Nobody listens") == []

    def test_serialize(self, test_db, student):
        notification = create_notification(test_db, student.id, "general", "A", "a")

        data = serialize_notification(notification)

        assert data["read"] is False
        assert data["assignment_date"] is None
        assert data["priority"] == "medium"
