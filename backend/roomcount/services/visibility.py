# Overview: Role and ownership rules deciding who may read or mutate a count session.

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import or_

from ..models import CountItem, CountSession, ROLE_ADMIN, ROLE_MANAGER
from ..validation import ForbiddenError


PRIVILEGED_ROLES = frozenset({ROLE_ADMIN, ROLE_MANAGER})


@dataclass(frozen=True)
class Caller:
    """
    Identity of the user on whose behalf an engine call runs.

    Built by the route layer from the authenticated request and passed
    explicitly into every service function.
    """
    user_id: int
    role: str


def is_privileged(caller: Caller) -> bool:
    return caller.role in PRIVILEGED_ROLES


def require_privileged(caller: Caller, action: str) -> None:
    if not is_privileged(caller):
        raise ForbiddenError(f"Access denied. {action} requires admin or manager role")


def has_counted_in(session: CountSession, user_id: int) -> bool:
    return any(item.counted_by_user_id == user_id for item in session.items)


def can_read(caller: Caller, session: CountSession) -> bool:
    """Admins/managers read everything; users read sessions they created or counted in."""
    if is_privileged(caller):
        return True
    if session.created_by_user_id == caller.user_id:
        return True
    return has_counted_in(session, caller.user_id)


def can_submit(caller: Caller, session: CountSession) -> bool:
    """Users may only submit items to sessions they created."""
    if is_privileged(caller):
        return True
    return session.created_by_user_id == caller.user_id


def scope_query(query, caller: Caller):
    """Restrict a CountSession query to the sessions the caller may read."""
    if is_privileged(caller):
        return query
    return query.filter(
        or_(
            CountSession.created_by_user_id == caller.user_id,
            CountSession.items.any(CountItem.counted_by_user_id == caller.user_id),
        )
    )
