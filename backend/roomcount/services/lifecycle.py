# Overview: Count session lifecycle state machine.

"""
Count session lifecycle.

STATES:
    draft -> in_progress -> completed -> finalized

Explicit transitions are administrative overrides: any non-finalized
session may be set to any status (including backwards, for corrections).
finalized is terminal and accepts no further mutation of any kind.

The implicit transition (draft -> in_progress) fires when the first batch
of count items is submitted, inside the same unit of work as the batch.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from ..models import CountSession
from ..validation import BadRequestError, ConflictError


class SessionStatus(str, Enum):
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FINALIZED = "finalized"


_ALL = frozenset(SessionStatus)

EXPLICIT_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.DRAFT: _ALL,
    SessionStatus.IN_PROGRESS: _ALL,
    SessionStatus.COMPLETED: _ALL,
    SessionStatus.FINALIZED: frozenset(),
}

# Statuses whose explicit entry refreshes end_time
_CLOSING = frozenset({SessionStatus.COMPLETED, SessionStatus.FINALIZED})


def parse_status(raw: Any) -> SessionStatus:
    if not isinstance(raw, str):
        raise BadRequestError("Invalid status")
    try:
        return SessionStatus(raw)
    except ValueError:
        raise BadRequestError(f"Invalid status: {raw}")


def current_status(session: CountSession) -> SessionStatus:
    return SessionStatus(session.status)


def is_finalized(session: CountSession) -> bool:
    return current_status(session) is SessionStatus.FINALIZED


def ensure_mutable(session: CountSession) -> None:
    """Raise ConflictError if the session is in its terminal state."""
    if is_finalized(session):
        raise ConflictError("Cannot modify finalized count sessions")


def apply_explicit_transition(session: CountSession, target: SessionStatus, now: datetime) -> None:
    """
    Set status on behalf of an admin/manager.

    - in_progress stamps start_time only if it was never set
    - completed / finalized always refresh end_time
    """
    source = current_status(session)
    if target not in EXPLICIT_TRANSITIONS[source]:
        raise ConflictError(f"Cannot change status of a {source.value} count session")

    session.status = target.value

    if target is SessionStatus.IN_PROGRESS and session.start_time is None:
        session.start_time = now

    if target in _CLOSING:
        session.end_time = now


def apply_implicit_start(session: CountSession, now: datetime) -> bool:
    """
    Advance a draft session to in_progress after its first recorded tally.

    Returns True if the status changed. Idempotent for non-draft sessions.
    """
    if current_status(session) is not SessionStatus.DRAFT:
        return False

    session.status = SessionStatus.IN_PROGRESS.value
    if session.start_time is None:
        session.start_time = now
    return True
