"""Application-wide constants and configuration values.

This module centralizes the magic numbers, enumerated values and default texts
used throughout the application.
"""

# Difficulty tiers
DIFFICULTIES = ("easy", "medium", "hard", "choice")
"""All tiers a submission or question can belong to."""

ASSIGNMENT_DIFFICULTIES = ("easy", "medium", "hard")
"""Tiers that every daily assignment carries."""

CHOICE_DIFFICULTY = "choice"

# Submission workflow
SUBMISSION_STATUSES = ("submitted", "approved", "rejected")

MAX_STREAK_BREAKS = 3
"""Number of streak breaks after which a student is disqualified."""

# Calendar
CALENDAR_STATUSES = ("completed", "missed", "paused")

# Streak break reasons and submit check reasons
BREAK_MISSED_SUBMISSION = "missed_submission"
BREAK_EXAM_PERIOD = "exam_period"
BREAK_NO_ASSIGNMENT = "no_assignment_scheduled"

REASON_EXAM_PERIOD = "exam_period"
REASON_NO_ASSIGNMENT = "no_assignment_scheduled"
REASON_ALREADY_COMPLETED = "already_completed"
REASON_DISQUALIFIED = "disqualified"
REASON_PENDING_APPROVAL = "pending_approval"

# Exam cooldown defaults
DEFAULT_EXAM_MESSAGE = "All The Best For Your Exams! Your streak is paused during this period."

# Student questions (QA)
QA_STATUSES = ("pending", "answered", "closed", "escalated")
QA_PRIORITIES = ("low", "medium", "high", "urgent")
QA_CATEGORIES = ("technical", "assignment", "general", "submission", "account", "platform")

PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2, "urgent": 3}

URGENT_KEYWORDS = ("urgent", "deadline", "emergency", "asap", "immediately")
HIGH_PRIORITY_KEYWORDS = ("bug", "error", "broken", "not working", "cannot access")

QUESTION_PREVIEW_LENGTH = 50
"""Characters of the question text quoted in the 'answered' notification."""

MIN_SATISFACTION_RATING = 1
MAX_SATISFACTION_RATING = 5

# Notifications
NOTIFICATION_TYPES = ("approval", "rejection", "violation", "general", "assignment")
NOTIFICATION_PRIORITIES = ("low", "medium", "high")

# Registration defaults
DEFAULT_REGISTRATION_ENABLED = True
DEFAULT_MAX_USERS = 500
DEFAULT_REQUIRE_APPROVAL = False
DEFAULT_RESTRICTION_MESSAGE = "Registration is currently closed."

# Maintenance defaults
DEFAULT_MAINTENANCE_MESSAGE = "The platform is under maintenance. Please check back soon."

# Cookie Configuration
COOKIE_NAME = "ndc_uid"
"""Name of the cookie carrying the opaque user handle."""

USER_ID_PREFIX = "ndc_"

# Rate Limiting
SUBMISSION_RATE_LIMIT = "20/minute"
"""Maximum number of solution submissions allowed per minute per client."""

QUESTION_RATE_LIMIT = "10/minute"
"""Maximum number of support questions allowed per minute per client."""

REGISTRATION_RATE_LIMIT = "5/minute"

# Dashboard
RECENT_SUBMISSIONS_LIMIT = 10
