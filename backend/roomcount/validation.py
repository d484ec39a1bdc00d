from __future__ import annotations

from typing import Any


class CountSessionError(Exception):
    """Base for errors the count session engine reports to callers."""
    status_code = 400


class BadRequestError(CountSessionError):
    """400-level input problem (malformed body, duplicate ledger key, ...)."""
    status_code = 400


class ForbiddenError(CountSessionError):
    """403: caller lacks the role or ownership for the action."""
    status_code = 403


class NotFoundError(CountSessionError):
    """404: referenced session does not exist."""
    status_code = 404


class ConflictError(CountSessionError):
    """409: mutation attempted on a session in a terminal state."""
    status_code = 409


# Largest value an integer primary key column can hold
MAX_ID = 2 ** 63 - 1


def parse_id(raw: Any, label: str) -> int:
    """
    Parse a positive integer id from a path segment or JSON value.

    Rejects booleans, floats and scientific notation the same way
    integer columns are validated elsewhere.
    """
    if isinstance(raw, bool):
        raise BadRequestError(f"Invalid {label}")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        stripped = raw.strip()
        if not (stripped.isascii() and stripped.isdigit()):
            raise BadRequestError(f"Invalid {label}")
        try:
            value = int(stripped)
        except ValueError:
            raise BadRequestError(f"Invalid {label}")
    else:
        raise BadRequestError(f"Invalid {label}")
    if value <= 0 or value > MAX_ID:
        raise BadRequestError(f"Invalid {label}")
    return value


def require_object(payload: Any) -> dict:
    if payload is None or not isinstance(payload, dict):
        raise BadRequestError("Invalid JSON payload")
    return payload


def parse_name(raw: Any, *, max_length: int = 255) -> str:
    if raw is None:
        raise BadRequestError("Session name is required")
    if not isinstance(raw, str):
        raise BadRequestError("Session name must be a string")
    name = raw.strip()
    if not name:
        raise BadRequestError("Session name is required")
    if len(name) > max_length:
        raise BadRequestError(f"Session name exceeds max length {max_length}")
    return name
