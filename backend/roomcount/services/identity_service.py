# Overview: Bearer token validation that establishes the caller of each request.

"""
Identity gate.

Tokens are minted out of band (CLI, tests) and only their SHA-256 hash is
stored. validate_token returns the active user owning a live token, or None.
"""

from __future__ import annotations

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(user_id: int, ttl: timedelta | None = None) -> tuple[SessionToken, str]:
    """
    Create a token for a user.

    Returns (token_record, plaintext_token). Only the hash is persisted.

    Raises ValueError if the user does not exist or is inactive.
    """
    user = db.session.get(User, user_id)
    if not user or not user.is_active:
        raise ValueError("User not found or inactive")

    if ttl is None:
        ttl = timedelta(hours=current_app.config.get("SESSION_TOKEN_TTL_HOURS", 24))

    plaintext_token = generate_token()
    now = utcnow()

    record = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()

    return record, plaintext_token


def validate_token(token: str) -> User | None:
    """
    Resolve a bearer token to its user.

    Returns None if the token is unknown, revoked or expired, or the
    user has been deactivated.
    """
    if not token:
        return None

    record = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not record or record.is_revoked:
        return None

    if record.expires_at <= utcnow():
        return None

    user = record.user
    if not user or not user.is_active:
        return None

    return user


def revoke_token(token: str) -> bool:
    record = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not record or record.is_revoked:
        return False
    record.is_revoked = True
    record.revoked_at = utcnow()
    db.session.commit()
    return True
