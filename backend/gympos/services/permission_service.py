# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Role-based permission checks.

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- A user holds the permissions of their single role
- Denials are logged through the app logger
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Permission, Role, RolePermission, User
from ..permissions import DEFAULT_ROLE_PERMISSIONS, PERMISSION_DEFINITIONS


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user.

    Returns set of permission codes (e.g., {"MANAGE_SALES"}).
    """
    user = db.session.get(User, user_id)
    if not user or not user.role_id:
        return set()

    rows = db.session.query(Permission.code).join(
        RolePermission, RolePermission.permission_id == Permission.id
    ).filter(RolePermission.role_id == user.role_id).all()
    return {code for (code,) in rows}


def user_has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(user_id: int, permission_code: str, resource: str | None = None) -> None:
    """Raise PermissionDeniedError if the user lacks the permission."""
    if not user_has_permission(user_id, permission_code):
        current_app.logger.warning(
            "Permission denied: user %s lacks %s for %s",
            user_id, permission_code, resource,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")


def initialize_permissions() -> int:
    """
    Create any missing permission rows from PERMISSION_DEFINITIONS.

    Returns count of permissions created.
    """
    created = 0
    for code, name, description, category in PERMISSION_DEFINITIONS:
        if db.session.query(Permission).filter_by(code=code).first():
            continue
        db.session.add(Permission(code=code, name=name, description=description, category=category))
        created += 1

    db.session.commit()
    return created


def assign_default_role_permissions() -> None:
    """Grant each default role its permissions. Missing roles are skipped."""
    for role_name, codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()
        if not role:
            continue

        for code in codes:
            permission = db.session.query(Permission).filter_by(code=code).first()
            if not permission:
                continue
            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id,
            ).first()
            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))

    db.session.commit()
