# pressgate/routers/posts.py - Posts (public read, guarded writes)
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pressgate.core.roles import Action
from pressgate.core.security import (
    get_current_profile, get_optional_principal, get_principal, get_resolver, get_store, get_writer, open_guard,
)
from pressgate.repositories.store import OWNER_FIELD, POSTS, DocumentStore, Write
from pressgate.schemas.post import PostIn, PostOut, PostUpdate
from pressgate.schemas.principal import Principal
from pressgate.schemas.profile import ProfileRecord
from pressgate.services.profile_resolver import ProfileResolver
from pressgate.services.writes import AuthoritativeWriter

router = APIRouter(prefix="/posts", tags=["Posts"])

# API field -> stored field
_FIELD_MAP = {
    "title": "title",
    "content": "content",
    "categories": "categories",
    "tags": "tags",
    "featured_image": "featuredImage",
}


def _ts_to_dt(ts):
    return ts.to_datetime() if hasattr(ts, "to_datetime") else ts


def _doc_to_out(doc_id: str, data: Dict[str, Any]) -> PostOut:
    return PostOut(
        id=doc_id,
        title=data.get("title") or "",
        content=data.get("content") or "",
        # Posts written by the earlier client carry authorId instead of ownerId
        owner_id=data.get(OWNER_FIELD) or data.get("authorId") or "",
        author_name=data.get("authorName"),
        categories=data.get("categories") or [],
        tags=data.get("tags") or [],
        featured_image=data.get("featuredImage"),
        created_at=_ts_to_dt(data.get("createdAt")),
        updated_at=_ts_to_dt(data.get("updatedAt")),
    )


def _get_post_or_404(store: DocumentStore, post_id: str) -> Dict[str, Any]:
    data = store.get_document(POSTS, post_id)
    if data is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return data


@router.get("", response_model=List[PostOut], summary="List posts (newest first)")
async def list_posts(
    limit: int = Query(50, ge=1, le=200),
    principal: Optional[Principal] = Depends(get_optional_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
):
    guard = await open_guard(store, resolver, principal)
    guard.require(Action.READ_POST)
    rows = store.list_documents(POSTS, order_by="createdAt", descending=True, limit=limit)
    return [_doc_to_out(doc_id, data) for doc_id, data in rows]


@router.get("/{post_id}", response_model=PostOut, summary="Get a post")
async def get_post(
    post_id: str,
    principal: Optional[Principal] = Depends(get_optional_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
):
    guard = await open_guard(store, resolver, principal)
    guard.require(Action.READ_POST)
    return _doc_to_out(post_id, _get_post_or_404(store, post_id))


@router.post("", response_model=PostOut, status_code=201, summary="Create a post")
async def create_post(
    payload: PostIn,
    principal: Principal = Depends(get_principal),
    profile: ProfileRecord = Depends(get_current_profile),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
    writer: AuthoritativeWriter = Depends(get_writer),
):
    guard = await open_guard(store, resolver, principal)
    guard.require(Action.CREATE_POST)

    data = {_FIELD_MAP[k]: v for k, v in payload.model_dump().items()}
    data.update({
        OWNER_FIELD: principal.uid,
        "authorName": profile.display_name,
        "authorEmail": profile.email,
    })
    post_id = await writer.submit(Write("create", POSTS, None, principal.uid, data))
    return _doc_to_out(post_id, _get_post_or_404(store, post_id))


@router.patch("/{post_id}", response_model=PostOut, summary="Edit a post")
async def edit_post(
    post_id: str,
    payload: PostUpdate,
    principal: Principal = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
    writer: AuthoritativeWriter = Depends(get_writer),
):
    _get_post_or_404(store, post_id)
    guard = await open_guard(store, resolver, principal, collection=POSTS, resource_id=post_id)
    guard.require(Action.EDIT_POST)

    patch = {_FIELD_MAP[k]: v for k, v in payload.model_dump(exclude_unset=True).items()}
    if not patch:
        raise HTTPException(status_code=400, detail="Nothing to update")
    await writer.submit(Write("update", POSTS, post_id, principal.uid, patch))
    return _doc_to_out(post_id, _get_post_or_404(store, post_id))


@router.delete("/{post_id}", summary="Delete a post")
async def delete_post(
    post_id: str,
    principal: Principal = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
    writer: AuthoritativeWriter = Depends(get_writer),
):
    _get_post_or_404(store, post_id)
    guard = await open_guard(store, resolver, principal, collection=POSTS, resource_id=post_id)
    guard.require(Action.DELETE_POST)
    await writer.submit(Write("delete", POSTS, post_id, principal.uid))
    return {"detail": "Post deleted"}
