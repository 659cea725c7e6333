"""SQLAlchemy models for the N Days Of Code tracker."""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Date, Boolean, JSON, ForeignKey,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from app.db.database import Base


class User(Base):
    """Student or admin, identified by the opaque handle in the session cookie."""
    __tablename__ = "users"

    id = Column(Text, primary_key=True)  # ndc_<uuid>
    email = Column(String(320), unique=True, nullable=False)
    name = Column(Text, nullable=False, default="")
    enrollment_no = Column(Text, nullable=False, default="")
    course = Column(Text, nullable=False, default="")
    section = Column(Text, nullable=False, default="")
    semester = Column(Text, nullable=False, default="")
    github_repo_link = Column(Text, nullable=False, default="")

    streak_count = Column(Integer, nullable=False, default=0)
    streak_breaks = Column(Integer, nullable=False, default=0)
    disqualified = Column(Boolean, nullable=False, default=False)
    violations = Column(Integer, nullable=False, default=0)

    is_admin = Column(Boolean, nullable=False, default=False)
    is_approved = Column(Boolean, nullable=False, default=True)
    is_banned = Column(Boolean, nullable=False, default=False)
    ban_reason = Column(Text, nullable=True)
    banned_at = Column(DateTime, nullable=True)

    last_submission = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_user_program', 'course', 'section', 'semester'),
    )

    # Relationships
    tier_stats = relationship("UserTierStat", back_populates="user", cascade="all, delete-orphan")
    calendar_entries = relationship("CalendarEntry", back_populates="user", cascade="all, delete-orphan")
    summations = relationship("DailySummation", back_populates="user", cascade="all, delete-orphan")


class UserTierStat(Base):
    """Per-user per-difficulty attempt and approval counters."""
    __tablename__ = "user_tier_stats"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    difficulty = Column(Text, primary_key=True)
    attempts = Column(Integer, nullable=False, default=0)
    approved = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("difficulty IN ('easy', 'medium', 'hard', 'choice')", name="ck_tier_difficulty"),
    )

    user = relationship("User", back_populates="tier_stats")


class CalendarEntry(Base):
    """Per-user day status shown on the student calendar."""
    __tablename__ = "calendar_entries"

    user_id = Column(Text, ForeignKey("users.id"), primary_key=True)
    date = Column(Date, primary_key=True)
    status = Column(Text, CheckConstraint("status IN ('completed', 'missed', 'paused')"), nullable=False)

    user = relationship("User", back_populates="calendar_entries")


class DailySummation(Base):
    """Free-text reflection a student writes for a challenge day."""
    __tablename__ = "daily_summations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, ForeignKey("users.id"), nullable=False)
    day = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    content = Column(Text, nullable=False)
    word_count = Column(Integer, nullable=False, default=0)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    reviewed = Column(Boolean, nullable=False, default=False)
    approved = Column(Boolean, nullable=True)
    review_notes = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'day', name='uq_summation_day'),
    )

    user = relationship("User", back_populates="summations")


class Assignment(Base):
    """Daily assignment; the date is its identity."""
    __tablename__ = "assignments"

    date = Column(Date, primary_key=True)
    day_number = Column(Integer, nullable=False)
    created_by = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Question(Base):
    """Question for a date and difficulty, keyed '<date>_<difficulty>'.

    Assignment questions (easy/medium/hard) live here too; the 'choice'
    tier only exists in the question bank.
    """
    __tablename__ = "questions"

    id = Column(Text, primary_key=True)
    date = Column(Date, nullable=False)
    difficulty = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    link = Column(Text, nullable=False, default="")
    tags = Column(JSON, nullable=False, default=list)
    category = Column(Text, nullable=True)
    example = Column(Text, nullable=True)
    constraint_text = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('date', 'difficulty', name='uq_question_date_difficulty'),
        CheckConstraint("difficulty IN ('easy', 'medium', 'hard', 'choice')", name="ck_question_difficulty"),
    )


class Submission(Base):
    """Solution submitted by a student for a dated question."""
    __tablename__ = "submissions"

    id = Column(Text, primary_key=True)  # <uid>_<date>_<difficulty>_<ms>
    student_uid = Column(Text, ForeignKey("users.id"), nullable=False)
    student_name = Column(Text, nullable=False, default="")
    student_email = Column(Text, nullable=False, default="")
    question_date = Column(Date, nullable=False)
    difficulty = Column(Text, nullable=False)
    question_title = Column(Text, nullable=False, default="")
    code_text = Column(Text, nullable=False, default="")
    github_file_link = Column(Text, nullable=False, default="")
    external_problem_link = Column(Text, nullable=False, default="")

    status = Column(Text, nullable=False, default="submitted")
    review_status = Column(Text, nullable=False, default="pending")
    admin_feedback = Column(Text, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(Text, nullable=True)

    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("status IN ('submitted', 'approved', 'rejected')", name="ck_submission_status"),
        CheckConstraint("review_status IN ('pending', 'approved', 'rejected')", name="ck_submission_review_status"),
        UniqueConstraint('student_uid', 'question_date', 'difficulty', name='uq_submission_student_date_tier'),
        Index('idx_submission_student_date', 'student_uid', 'question_date'),
        Index('idx_submission_date', 'question_date'),
        Index('idx_submission_status', 'status'),
    )

    student = relationship("User")


class ExamCooldown(Base):
    """Exam window during which streaks are paused.

    The row with no course is the global window. Rows with a course are
    program windows, optionally narrowed by semester and section.
    """
    __tablename__ = "exam_cooldowns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course = Column(Text, nullable=True)
    semester = Column(Text, nullable=True)
    section = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    pause_submissions_count = Column(Boolean, nullable=False, default=True)
    message = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('idx_exam_scope', 'course', 'semester', 'section'),
    )


class Notification(Base):
    """In-app notification addressed to one user."""
    __tablename__ = "notifications"

    id = Column(Text, primary_key=True)
    user_uid = Column(Text, ForeignKey("users.id"), nullable=False)
    type = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    date = Column(DateTime, default=datetime.utcnow, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    submission_id = Column(Text, nullable=True)
    assignment_date = Column(Date, nullable=True)
    action_required = Column(Boolean, nullable=False, default=False)
    priority = Column(Text, nullable=False, default="medium")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "type IN ('approval', 'rejection', 'violation', 'general', 'assignment')",
            name="ck_notification_type"
        ),
        Index('idx_notification_user_created', 'user_uid', 'created_at'),
    )


class StudentQuestion(Base):
    """Support question asked by a student and handled by admins."""
    __tablename__ = "student_questions"

    id = Column(Text, primary_key=True)
    student_uid = Column(Text, ForeignKey("users.id"), nullable=False)
    student_name = Column(Text, nullable=False, default="")
    student_email = Column(Text, nullable=False, default="")
    student_course = Column(Text, nullable=False, default="")
    student_section = Column(Text, nullable=False, default="")
    student_semester = Column(Text, nullable=False, default="")
    question_text = Column(Text, nullable=False)

    status = Column(Text, nullable=False, default="pending")
    priority = Column(Text, nullable=False, default="medium")
    category = Column(Text, nullable=False, default="general")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    admin_response = Column(Text, nullable=True)
    responded_at = Column(DateTime, nullable=True)
    responded_by = Column(Text, nullable=True)
    responded_by_uid = Column(Text, nullable=True)
    resolution_time = Column(Integer, nullable=True)  # minutes

    is_read = Column(Boolean, nullable=False, default=False)
    is_urgent = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    satisfaction_rating = Column(Integer, nullable=True)
    student_feedback = Column(Text, nullable=True)

    closure_reason = Column(Text, nullable=True)
    escalation_reason = Column(Text, nullable=True)
    escalated_at = Column(DateTime, nullable=True)
    priority_updated_by = Column(Text, nullable=True)
    priority_updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'answered', 'closed', 'escalated')", name="ck_question_status"),
        CheckConstraint("priority IN ('low', 'medium', 'high', 'urgent')", name="ck_question_priority"),
        CheckConstraint(
            "satisfaction_rating IS NULL OR (satisfaction_rating >= 1 AND satisfaction_rating <= 5)",
            name="ck_question_rating"
        ),
        Index('idx_student_question_status', 'status', 'created_at'),
        Index('idx_student_question_student', 'student_uid', 'created_at'),
    )


class RegistrationSettings(Base):
    """Singleton row controlling who may register."""
    __tablename__ = "registration_settings"

    id = Column(Integer, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=True)
    max_users = Column(Integer, nullable=False, default=500)
    require_approval = Column(Boolean, nullable=False, default=False)
    restriction_message = Column(Text, nullable=False, default="")
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_by = Column(Text, nullable=True)


class MaintenanceSettings(Base):
    """Singleton row describing the maintenance window."""
    __tablename__ = "maintenance_settings"

    id = Column(Integer, primary_key=True)
    enabled = Column(Boolean, nullable=False, default=False)
    message = Column(Text, nullable=False, default="")
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    updated_by = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
