from typing import Dict

from pydantic import BaseModel, Field


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated user for RBAC checks and audit."""

    id: str
    role: str
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
