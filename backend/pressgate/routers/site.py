"""
Site settings router. The settings document is a singleton with no owner:
readable by everyone (when PUBLIC_SITE_CONFIG is on), writable by admins only.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from pressgate.core.roles import Action
from pressgate.core.security import (
    get_optional_principal, get_principal, get_resolver, get_store, get_writer, open_guard,
)
from pressgate.repositories.store import SITE, SITE_SETTINGS_ID, DocumentStore, Write
from pressgate.schemas.principal import Principal
from pressgate.schemas.site import SiteSettings, SiteSettingsUpdate
from pressgate.services.profile_resolver import ProfileResolver
from pressgate.services.writes import AuthoritativeWriter

router = APIRouter(prefix="/site", tags=["Site"])

# API field -> stored field
_FIELD_MAP = {
    "site_title": "siteTitle",
    "site_description": "siteDescription",
    "site_logo": "siteLogo",
    "theme": "theme",
    "custom_css": "customCSS",
    "primary_color": "primaryColor",
    "secondary_color": "secondaryColor",
}


def _settings_or_default(store: DocumentStore) -> SiteSettings:
    """Stored settings with defaults filled in for missing/empty fields."""
    data: Dict[str, Any] = store.get_document(SITE, SITE_SETTINGS_ID) or {}
    values = {api: data[stored] for api, stored in _FIELD_MAP.items() if data.get(stored)}
    ts = data.get("updatedAt")
    values["updated_at"] = ts.to_datetime() if hasattr(ts, "to_datetime") else ts
    values["updated_by"] = data.get("updatedBy") or ""
    return SiteSettings(**values)


@router.get("/settings", response_model=SiteSettings, summary="Get site settings (defaults when unset)")
async def get_site_settings(
    principal: Optional[Principal] = Depends(get_optional_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
):
    guard = await open_guard(store, resolver, principal)
    guard.require(Action.READ_SITE_CONFIG)
    return _settings_or_default(store)


@router.put("/settings", response_model=SiteSettings, summary="(Admin) Update site settings")
async def update_site_settings(
    payload: SiteSettingsUpdate,
    principal: Principal = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
    writer: AuthoritativeWriter = Depends(get_writer),
):
    guard = await open_guard(store, resolver, principal)
    guard.require(Action.WRITE_SITE_CONFIG)

    current = _settings_or_default(store).model_dump(exclude={"updated_at", "updated_by"})
    current.update(payload.model_dump(exclude_unset=True))
    data = {_FIELD_MAP[k]: v for k, v in current.items()}
    data["updatedBy"] = principal.uid
    await writer.submit(Write("set", SITE, SITE_SETTINGS_ID, principal.uid, data))
    return _settings_or_default(store)
