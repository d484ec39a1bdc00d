# Overview: Count session engine; composes lifecycle, visibility and ledger into the operations routes expose.

"""
Count session service.

Every function takes the caller's identity explicitly. Mutating functions
stage their writes and flush; the route commits (or rolls back) the unit
of work.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import func

from ..extensions import db
from ..models import CountItem, CountSession
from ..time_utils import utcnow
from ..validation import BadRequestError, ForbiddenError, NotFoundError, parse_id, parse_name
from . import catalog_service, ledger_service, lifecycle
from .concurrency import run_with_retry
from .lifecycle import SessionStatus
from .visibility import Caller, can_read, require_privileged, scope_query


UPDATABLE_FIELDS = frozenset({"name", "status"})


def _load(session_id: int) -> CountSession:
    session = db.session.get(CountSession, session_id)
    if not session:
        raise NotFoundError("Count session not found")
    return session


def _parse_room_ids(raw: Any) -> list[int]:
    """Validate requested rooms; duplicates collapse, first occurrence wins."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise BadRequestError("rooms must be an array of room IDs")

    room_ids: list[int] = []
    for value in raw:
        room_id = parse_id(value, "room ID")
        if room_id in room_ids:
            continue
        if not catalog_service.get_room(room_id):
            raise BadRequestError(f"Room not found: {room_id}")
        room_ids.append(room_id)
    return room_ids


def session_detail(session: CountSession) -> dict:
    """Session with creator projection and nested items."""
    return {
        **session.to_dict(),
        "item_count": len(session.items),
        "items": [item.to_dict() for item in session.items],
    }


def create_session(caller: Caller, name: Any, room_ids: Any = None) -> CountSession:
    """
    Create a new count session (status: draft).

    Args:
        caller: Admin or manager creating the session
        name: Session name (required, non-blank)
        room_ids: Optional rooms to pre-populate with zero-quantity items

    Returns:
        CountSession: The created session, items seeded

    Raises:
        ForbiddenError: Caller is not admin/manager
        BadRequestError: Missing name, malformed or unknown room IDs
    """
    require_privileged(caller, "Creating count sessions")
    clean_name = parse_name(name)

    def _op():
        rooms = _parse_room_ids(room_ids)

        session = CountSession(
            name=clean_name,
            status=SessionStatus.DRAFT.value,
            created_by_user_id=caller.user_id,
        )
        db.session.add(session)
        db.session.flush()  # Get ID

        if rooms:
            ledger_service.seed_items(session, rooms, caller)

        return session

    return run_with_retry(_op)


def list_sessions(caller: Caller) -> list[dict]:
    """Sessions visible to the caller, most recent first, with item counts."""
    query = scope_query(db.session.query(CountSession), caller)
    sessions = query.order_by(CountSession.created_at.desc(), CountSession.id.desc()).all()

    counts: dict[int, int] = {}
    if sessions:
        rows = (
            db.session.query(CountItem.session_id, func.count(CountItem.id))
            .filter(CountItem.session_id.in_([s.id for s in sessions]))
            .group_by(CountItem.session_id)
            .all()
        )
        counts = {session_id: n for session_id, n in rows}

    return [
        {**s.to_dict(), "item_count": counts.get(s.id, 0)}
        for s in sessions
    ]


def get_session(session_id: int, caller: Caller) -> CountSession:
    """
    Load a session the caller may read.

    Raises:
        NotFoundError: No such session
        ForbiddenError: Session exists but is not visible to the caller
    """
    session = _load(session_id)
    if not can_read(caller, session):
        raise ForbiddenError("You do not have access to this count session")
    return session


def update_session(session_id: int, caller: Caller, patch: dict) -> tuple[CountSession, SessionStatus | None]:
    """
    Rename a session and/or set its status (administrative override).

    Returns:
        (session, new_status) where new_status is None if status was not patched

    Raises:
        ForbiddenError: Caller is not admin/manager
        NotFoundError: No such session
        ConflictError: Session is finalized
        BadRequestError: Unknown field, blank name or unrecognized status
    """
    require_privileged(caller, "Updating count sessions")

    def _op():
        session = _load(session_id)
        lifecycle.ensure_mutable(session)

        for key in patch:
            if key not in UPDATABLE_FIELDS:
                raise BadRequestError(f"Field not allowed: {key}")

        new_name = parse_name(patch["name"]) if patch.get("name") is not None else None
        target = lifecycle.parse_status(patch["status"]) if patch.get("status") is not None else None

        if new_name is not None:
            session.name = new_name
        if target is not None:
            lifecycle.apply_explicit_transition(session, target, utcnow())

        db.session.flush()
        return session, target

    return run_with_retry(_op)


def delete_session(session_id: int, caller: Caller) -> None:
    """
    Delete a session and all its items.

    Raises:
        ForbiddenError: Caller is not admin/manager
        NotFoundError: No such session
        BadRequestError: Session is finalized
    """
    require_privileged(caller, "Deleting count sessions")

    def _op():
        session = _load(session_id)
        if lifecycle.is_finalized(session):
            raise BadRequestError("Cannot delete finalized count sessions")

        # Children are deleted before the parent within the same flush
        for item in list(session.items):
            db.session.delete(item)
        db.session.delete(session)
        db.session.flush()

    return run_with_retry(_op)


def get_session_summary(session_id: int, caller: Caller) -> dict:
    """
    Per-room and overall totals of a session's stored quantities and (snapshot) values.

    Same visibility rules as get_session.
    """
    session = get_session(session_id, caller)

    rooms: dict[int, dict] = {}
    total_quantity = Decimal("0.000")
    total_value = Decimal("0.00")
    for item in session.items:
        entry = rooms.get(item.room_id)
        if entry is None:
            entry = {
                "room_id": item.room_id,
                "room_name": item.room.name if item.room else None,
                "item_count": 0,
                "total_quantity": Decimal("0.000"),
                "total_value": Decimal("0.00"),
            }
            rooms[item.room_id] = entry
        entry["item_count"] += 1
        entry["total_quantity"] += Decimal(item.quantity)
        entry["total_value"] += Decimal(item.value)
        total_quantity += Decimal(item.quantity)
        total_value += Decimal(item.value)

    return {
        "session_id": session.id,
        "name": session.name,
        "status": session.status,
        "item_count": len(session.items),
        "total_quantity": str(total_quantity.quantize(Decimal("0.001"))),
        "total_value": str(total_value.quantize(Decimal("0.01"))),
        "rooms": [
            {
                **entry,
                "total_quantity": str(entry["total_quantity"].quantize(Decimal("0.001"))),
                "total_value": str(entry["total_value"].quantize(Decimal("0.01"))),
            }
            for entry in sorted(rooms.values(), key=lambda r: (r["room_name"] or "", r["room_id"]))
        ],
    }
