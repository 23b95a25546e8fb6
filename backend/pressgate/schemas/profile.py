"""
pressgate/schemas/profile.py
ProfileRecord: the persisted role assignment stored at `users/{uid}`.
"""
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from pressgate.core.roles import DEFAULT_ROLE, Role, stored_role


def _ts_to_dt(ts: Any) -> Optional[datetime]:
    return ts.to_datetime() if hasattr(ts, "to_datetime") else ts


class ProfileRecord(BaseModel):
    id: str = Field(..., description="Firebase UID")
    display_name: str = Field("Anonymous")
    email: str = Field("")
    role: Optional[Role] = Field(DEFAULT_ROLE, description="None when the stored value is not a known role")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, uid: str, data: Dict[str, Any]) -> "ProfileRecord":
        return cls(
            id=data.get("uid") or uid,
            display_name=data.get("displayName") or "Anonymous",
            email=data.get("email") or "",
            role=stored_role(data),
            created_at=_ts_to_dt(data.get("createdAt")),
            updated_at=_ts_to_dt(data.get("updatedAt")),
        )


def profile_defaults(display_name: Optional[str], email: Optional[str]) -> Dict[str, Any]:
    """Fields of a brand-new profile document (the store adds uid and timestamps)."""
    return {
        "displayName": display_name or "Anonymous",
        "email": email or "",
        "role": DEFAULT_ROLE.value,
    }


class ProfileOut(BaseModel):
    id: str
    display_name: str
    email: str
    role: Optional[Role]
