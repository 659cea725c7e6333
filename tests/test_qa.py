"""Tests for student support questions."""
from datetime import datetime, timedelta

import pytest
from app.db.models import Notification
from app.services.qa import (
    add_tags,
    answer_question,
    close_question,
    detect_priority,
    escalate_question,
    get_all_questions,
    get_qa_statistics,
    get_questions_by_status,
    get_student_questions,
    get_unread_count,
    mark_as_read,
    submit_feedback,
    submit_question,
    update_priority,
)
from tests.factories import TODAY


class TestPriorityDetection:

    @pytest.mark.parametrize("text,expected", [
        ("This is URGENT, my account is locked", "urgent"),
        ("Deadline is tonight and I can't submit", "urgent"),
        ("Found a bug in the calendar", "high"),
        ("The submit button is not working", "high"),
        ("How do I pick a hard question?", "medium"),
    ])
    def test_keywords(self, text, expected):
        assert detect_priority(text) == expected


class TestSubmitQuestion:

    def test_defaults_and_snapshot(self, test_db, student):
        question = submit_question(test_db, student, "How are streaks counted?")

        assert question.status == "pending"
        assert question.priority == "medium"
        assert question.category == "general"
        assert question.is_urgent is False
        assert question.student_email == student.email
        assert question.tags == []

    def test_explicit_priority_wins_but_urgency_follows_text(self, test_db, student):
        question = submit_question(test_db, student, "Urgent: portal is down", priority="low")

        assert question.priority == "low"
        assert question.is_urgent is True

    def test_admins_are_notified(self, test_db, student, admin):
        submit_question(test_db, student, "There is an error on the calendar page", category="platform")

        notifications = test_db.query(Notification).filter(Notification.user_uid == admin.id).all()
        assert len(notifications) == 1
        assert notifications[0].title == "New Student Question"
        assert notifications[0].priority == "high"

    def test_invalid_category(self, test_db, student):
        with pytest.raises(ValueError):
            submit_question(test_db, student, "Hello", category="billing")

    def test_empty_text(self, test_db, student):
        with pytest.raises(ValueError):
            submit_question(test_db, student, "   ")


class TestAdminHandling:

    def test_answer_sets_resolution_and_notifies_student(self, test_db, student, admin):
        question = submit_question(test_db, student, "Why was my submission rejected yesterday evening?")
        question.created_at = datetime.utcnow() - timedelta(minutes=90)

        answer_question(test_db, question, "It matched another student's code.", admin.id, "Admin User")

        assert question.status == "answered"
        assert question.is_read is True
        assert question.responded_by == "Admin User"
        assert 89 <= question.resolution_time <= 91

        notification = test_db.query(Notification).filter(Notification.user_uid == student.id).one()
        assert notification.title == "Your Question Has Been Answered"
        assert question.question_text[:50] in notification.message

    def test_answer_without_resolving_keeps_pending(self, test_db, student, admin):
        question = submit_question(test_db, student, "Can I switch sections?")

        answer_question(test_db, question, "Ask your coordinator.", admin.id, "Admin User", mark_as_resolved=False)

        assert question.status == "pending"
        assert question.admin_response == "Ask your coordinator."

    def test_close_escalate_and_priority(self, test_db, student):
        question = submit_question(test_db, student, "Please reset my streak")

        escalate_question(test_db, question, "Needs faculty decision")
        assert question.status == "escalated"
        assert question.priority == "urgent"
        assert question.escalated_at is not None

        update_priority(test_db, question, "high", "Admin User")
        assert question.priority == "high"
        assert question.priority_updated_by == "Admin User"

        close_question(test_db, question, "Resolved offline")
        assert question.status == "closed"
        assert question.closure_reason == "Resolved offline"

    def test_update_priority_validates(self, test_db, student):
        question = submit_question(test_db, student, "Question")

        with pytest.raises(ValueError):
            update_priority(test_db, question, "critical", "Admin User")

    def test_add_tags_deduplicates_in_order(self, test_db, student):
        question = submit_question(test_db, student, "Question", tags=["streak"])

        add_tags(test_db, question, ["exam", "streak", "calendar", "exam"])

        assert question.tags == ["streak", "exam", "calendar"]

    def test_feedback_rating_bounds(self, test_db, student):
        question = submit_question(test_db, student, "Question")

        submit_feedback(test_db, question, 5, "Quick answer")
        assert question.satisfaction_rating == 5
        assert question.student_feedback == "Quick answer"

        with pytest.raises(ValueError):
            submit_feedback(test_db, question, 6)


class TestQueries:

    def test_by_status_orders_by_priority_then_newest(self, test_db, student):
        low = submit_question(test_db, student, "General question", priority="low")
        urgent = submit_question(test_db, student, "Emergency, cannot log in")
        medium_old = submit_question(test_db, student, "First medium")
        medium_new = submit_question(test_db, student, "Second medium")
        medium_old.created_at = datetime.utcnow() - timedelta(hours=2)
        medium_new.created_at = datetime.utcnow() - timedelta(hours=1)
        test_db.flush()

        ordered = get_questions_by_status(test_db, "pending")

        assert [q.id for q in ordered] == [urgent.id, medium_new.id, medium_old.id, low.id]

    def test_filters_and_student_listing(self, test_db, student, admin):
        submit_question(test_db, student, "Bug in grading", category="technical")
        submit_question(test_db, student, "Account question", category="account")

        assert len(get_all_questions(test_db, category="technical")) == 1
        assert len(get_all_questions(test_db, limit=1)) == 1
        assert len(get_student_questions(test_db, student.id)) == 2
        assert get_student_questions(test_db, admin.id) == []

    def test_unread_count(self, test_db, student):
        first = submit_question(test_db, student, "One")
        submit_question(test_db, student, "Two")

        mark_as_read(test_db, first)

        assert get_unread_count(test_db) == 1

    def test_statistics(self, test_db, student, admin):
        answered = submit_question(test_db, student, "Answered one")
        answered.created_at = datetime.utcnow() - timedelta(minutes=30)
        answer_question(test_db, answered, "Done", admin.id, "Admin User")
        submit_question(test_db, student, "Urgent help")
        closed = submit_question(test_db, student, "Closed one")
        close_question(test_db, closed)

        stats = get_qa_statistics(test_db, datetime.utcnow().date())

        assert stats["total"] == 3
        assert stats["answered"] == 1
        assert stats["pending"] == 1
        assert stats["closed"] == 1
        assert stats["escalated"] == 0
        assert stats["urgent_count"] == 1
        assert stats["todays_questions"] >= 2
        assert 29 <= stats["average_resolution_time"] <= 31

    def test_statistics_for_another_day(self, test_db, student):
        submit_question(test_db, student, "Anything")

        assert get_qa_statistics(test_db, TODAY)["todays_questions"] == 0
