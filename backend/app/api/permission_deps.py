"""Permission dependencies.

Usage in endpoints::

    @router.post("/shift/close")
    def close_own_shift(
        db: Session = Depends(get_db),
        current_user: User = Depends(require_permission("shift:own")),
    ):
        ...
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, status

from backend.app.api.deps import get_current_user
from backend.app.models.user import RoleEnum, User

ROLE_PERMISSIONS: dict[RoleEnum, frozenset[str]] = {
    RoleEnum.OWNER: frozenset({"shift:manage", "finance:read"}),
    RoleEnum.MANAGER: frozenset({"shift:manage", "finance:read"}),
    RoleEnum.STAFF: frozenset({"shift:own"}),
}


def user_permissions(user: User) -> frozenset[str]:
    return ROLE_PERMISSIONS.get(user.role, frozenset())


def require_permission(*permission_codes: str):
    """FastAPI dependency factory: the user must hold **all** listed permissions.

    Returns the authenticated ``User`` so the endpoint can use it::

        current_user = Depends(require_permission("finance:read"))
    """

    def _checker(current_user: User = Depends(get_current_user)) -> User:
        missing = set(permission_codes) - user_permissions(current_user)
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(sorted(missing))}",
            )
        return current_user

    return _checker
