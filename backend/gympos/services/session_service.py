# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service with Branch Context

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

BRANCH SCOPE: Sessions capture the user's selected branch at creation time.
Every request made with the token is scoped to that branch until the user
selects another one (select_branch), which updates the session in place.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute and idle timeouts (SESSION_ABSOLUTE_TIMEOUT_HOURS,
  SESSION_IDLE_TIMEOUT_HOURS)
- Revocable on logout
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Branch, SessionToken, User, UserBranch
from gympos.time_utils import utcnow


@dataclass
class SessionContext:
    """
    Session context returned by validate_session.

    branch_id is None for users that have not selected a branch; such
    sessions see every branch.
    """
    user: User
    session: SessionToken
    branch_id: int | None


class BranchAccessError(ValueError):
    """User may not switch into the requested branch."""


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create new session token for user with branch context.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        branch_id=user.selected_branch_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if the token is invalid, expired, revoked, or belongs to a
    deactivated user. Updates last_used_at on success.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, branch_id=session.branch_id)


def select_branch(session: SessionToken, branch_id: int) -> Branch:
    """
    Switch the session (and the user's default) into another branch.

    The user must be a member of the branch and the branch must be active.
    """
    branch = db.session.get(Branch, branch_id)
    if branch is None or not branch.is_active:
        raise BranchAccessError("Branch not found")

    member = db.session.query(UserBranch).filter_by(
        user_id=session.user_id,
        branch_id=branch_id,
    ).first()
    if member is None:
        raise BranchAccessError("User does not have access to this branch")

    session.branch_id = branch_id
    session.user.selected_branch_id = branch_id
    db.session.commit()
    return branch


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke session token. Returns True if a live session was revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True
