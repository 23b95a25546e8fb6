# pressgate/routers/me.py - Signed-in principal: profile and UI affordances
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pressgate.core.security import get_current_profile, get_optional_principal, get_resolver, get_store, open_guard
from pressgate.repositories.store import POSTS, DocumentStore
from pressgate.schemas.principal import Principal
from pressgate.schemas.profile import ProfileOut, ProfileRecord
from pressgate.services.profile_resolver import ProfileResolver

router = APIRouter(prefix="/me", tags=["Me"])


@router.get("", response_model=ProfileOut, summary="Current profile (created on first sign-in)")
async def read_me(profile: ProfileRecord = Depends(get_current_profile)):
    return ProfileOut(id=profile.id, display_name=profile.display_name, email=profile.email, role=profile.role)


@router.get("/affordances", summary="Which controls the UI should render")
async def read_affordances(
    post_id: Optional[str] = Query(None, description="Post being viewed, for edit/delete controls"),
    principal: Optional[Principal] = Depends(get_optional_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
):
    guard = await open_guard(
        store, resolver, principal,
        collection=POSTS if post_id else None,
        resource_id=post_id,
    )
    return guard.affordances().as_dict()
