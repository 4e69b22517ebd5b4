# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every ledger entry and sale is attributed to the user who made it
(created_by). Uses bcrypt for password hashing.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Session tokens managed separately (see session_service.py)
"""

from __future__ import annotations

import bcrypt

from ..extensions import db
from ..models import Branch, Role, User, UserBranch
from ..permissions import DEFAULT_ROLES
from gympos.time_utils import utcnow


MIN_PASSWORD_LENGTH = 8


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    name: str,
    email: str,
    password: str,
    *,
    role_name: str | None = None,
    branch_ids: list[int] | None = None,
    bcrypt_rounds: int = 12,
) -> User:
    """
    Create a user, optionally with a role and branch memberships.

    The first branch in branch_ids becomes the selected branch.

    Raises:
        ValueError: email taken, unknown role or unknown branch
        PasswordValidationError: password too weak
    """
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise ValueError("User already exists")

    role = None
    if role_name:
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            raise ValueError(f"Role {role_name} not found")

    branch_ids = list(branch_ids or [])
    for branch_id in branch_ids:
        if db.session.get(Branch, branch_id) is None:
            raise ValueError(f"Branch {branch_id} not found")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password, rounds=bcrypt_rounds),
        role_id=role.id if role else None,
        selected_branch_id=branch_ids[0] if branch_ids else None,
    )
    db.session.add(user)
    db.session.flush()

    for branch_id in branch_ids:
        db.session.add(UserBranch(user_id=user.id, branch_id=branch_id))

    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials are valid and the account is active, None
    otherwise. Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def assign_role(user_id: int, role_name: str) -> User:
    """Replace the user's role."""
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    role = db.session.query(Role).filter_by(name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    user.role_id = role.id
    db.session.commit()
    return user


def user_branch_ids(user: User) -> list[int]:
    return sorted(link.branch_id for link in user.user_branches)


def create_default_roles() -> list[Role]:
    """Create the standard roles if they don't exist."""
    roles = []
    for name, desc in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=name).first()
        if not role:
            role = Role(name=name, description=desc)
            db.session.add(role)
        roles.append(role)

    db.session.commit()
    return roles
