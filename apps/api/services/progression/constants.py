"""
Enumerations shared by the progression engine, the ORM layer and the API.

Values are stored as text in the database and exchanged verbatim over HTTP.
"""

from enum import Enum


class DeloadStrategy(str, Enum):
    """How target weights are reduced after repeated failure."""
    PROPORTIONAL = "PROPORTIONAL"      # Percentage cut, floored to the increment
    REFERENCE_SET = "REFERENCE_SET"    # Named, no computation defined
    CUSTOM = "CUSTOM"                  # Named, no computation defined


class SetStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class SessionStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Statuses a session can still be worked on in.
OPEN_SESSION_STATUSES = (SessionStatus.PENDING, SessionStatus.IN_PROGRESS)

DEFAULT_DELOAD_STRATEGY = DeloadStrategy.PROPORTIONAL
