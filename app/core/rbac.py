# app/core/rbac.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends

from app.core.auth import get_current_user
from app.core.errors import AuthorizationError
from app.models.user import Role, User

# -----------------------------
# Role helpers
# -----------------------------

COMPLIANCE_MANAGER_ROLES = frozenset({Role.HR.value, Role.ADMIN.value, Role.SUPERADMIN.value})


def _role(role) -> str:
    if isinstance(role, Role):
        return role.value
    return (role or "").strip().upper()


def is_compliance_manager(role: Optional[str]) -> bool:
    """HR, ADMIN and SUPERADMIN see organization-wide compliance data."""
    return _role(role) in COMPLIANCE_MANAGER_ROLES


def is_superadmin(role: Optional[str]) -> bool:
    return _role(role) == Role.SUPERADMIN.value


# -----------------------------
# Hard guards (raise 403)
# -----------------------------


def require_compliance_manager(
    current_user: User = Depends(get_current_user),
) -> User:
    if not is_compliance_manager(current_user.role):
        raise AuthorizationError("Only HR and ADMIN users can access this resource")
    return current_user


def require_superadmin(
    current_user: User = Depends(get_current_user),
) -> User:
    if not is_superadmin(current_user.role):
        raise AuthorizationError("Super Admin only")
    return current_user
