# pressgate/schemas/comment.py
from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

CommentStatus = Literal["approved", "pending", "spam", "trash"]


class CommentIn(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    parent_id: Optional[str] = Field(None, description="Parent comment for replies")


class CommentOut(BaseModel):
    id: str
    post_id: str
    content: str
    owner_id: str
    author_name: Optional[str] = None
    parent_id: Optional[str] = None
    status: CommentStatus = "approved"
    created_at: Optional[datetime] = None
