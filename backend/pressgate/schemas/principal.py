"""
pressgate/schemas/principal.py
Principal model: the identity asserted by Firebase Auth.
Display attributes are informational only; the role always comes from the stored profile.
"""
from typing import Optional
from pydantic import BaseModel, Field


class Principal(BaseModel):
    uid: str = Field(..., min_length=1, description="Firebase UID")
    email: Optional[str] = Field(None, description="E-mail (if any)")
    display_name: Optional[str] = Field(None, description="Display name (if any)")
