# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from app.config import get_settings
from app.exceptions import AuthorizationError
from app.schemas.auth import AuthContext


async def get_auth_context(
    x_user_id: uuid.UUID = Header(),
    x_role: str = Header(default="employee"),
) -> AuthContext:
    """Extract the verified identity forwarded by the auth gateway."""
    return AuthContext(user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_hr(
    auth: AuthDep,
) -> AuthContext:
    """Require one of the configured HR roles."""
    if not auth.has_role(get_settings().hr_roles):
        raise AuthorizationError("HR access required")
    return auth


HRDep = Annotated[AuthContext, Depends(require_hr)]


async def require_manager_or_hr(
    auth: AuthDep,
) -> AuthContext:
    """Require a manager role or one of the HR roles."""
    settings = get_settings()
    if not auth.has_role(settings.manager_roles + settings.hr_roles):
        raise AuthorizationError("Manager or HR access required")
    return auth


ManagerOrHRDep = Annotated[AuthContext, Depends(require_manager_or_hr)]
