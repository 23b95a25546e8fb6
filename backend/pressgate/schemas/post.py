# pressgate/schemas/post.py
from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class PostIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1, description="HTML content")
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    featured_image: Optional[str] = Field(None, description="URL to featured image")


class PostUpdate(BaseModel):
    """Partial update. ownerId is not a field here; the storage policy rejects payloads that carry it."""
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    content: Optional[str] = Field(None, min_length=1)
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    featured_image: Optional[str] = None


class PostOut(BaseModel):
    id: str
    title: str
    content: str
    owner_id: str
    author_name: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    featured_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
