"""
pressgate/schemas/site.py
Singleton site settings stored at `site/settings`. No owner; writable by admins only.
"""
from __future__ import annotations
from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

Theme = Literal["default", "dark", "minimal", "modern", "classic"]


class SiteSettings(BaseModel):
    site_title: str = "Corre de PhD"
    site_description: str = "A modern blog platform"
    site_logo: Optional[str] = None
    theme: Theme = "default"
    custom_css: Optional[str] = None
    primary_color: str = Field("#667eea", pattern=r"^#[0-9a-fA-F]{6}$")
    secondary_color: str = Field("#764ba2", pattern=r"^#[0-9a-fA-F]{6}$")
    updated_at: Optional[datetime] = None
    updated_by: str = ""


class SiteSettingsUpdate(BaseModel):
    site_title: Optional[str] = Field(None, min_length=1)
    site_description: Optional[str] = None
    site_logo: Optional[str] = None
    theme: Optional[Theme] = None
    custom_css: Optional[str] = None
    primary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    secondary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
