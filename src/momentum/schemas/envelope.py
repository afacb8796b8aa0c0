"""Pydantic schemas for the wire envelope and auth payloads.

Learn: Every backend response is wrapped the same way:
    {"status": "success", "data": {...}, "message": "...", "token": "..."}
Only `data` matters for ordinary calls; `token` only appears on login and
registration. Unknown keys are kept so nothing the server adds is lost.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ApiEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    data: Any = None
    message: Optional[str] = None
    token: Optional[str] = None


class LoginData(BaseModel):
    """`data` of a successful /auth/login or /auth/google response."""
    model_config = ConfigDict(extra="allow")

    parent: dict
    primaryHouseholdId: Optional[str] = None


class RegisterData(BaseModel):
    """`data` of a successful /auth/signup response."""
    model_config = ConfigDict(extra="allow")

    parent: dict
    household: dict

    @property
    def household_id(self) -> Optional[str]:
        return self.household.get("id") or self.household.get("_id")


class MeData(BaseModel):
    """`data` of /auth/me."""
    model_config = ConfigDict(extra="allow")

    user: dict
    householdId: Optional[str] = None
