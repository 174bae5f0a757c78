# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel


class AuthContext(BaseModel):
    """Verified identity handed over by the Auth collaborator."""

    user_id: uuid.UUID
    role: str = "employee"

    def has_role(self, roles: list[str]) -> bool:
        return self.role.lower() in {r.lower() for r in roles}
