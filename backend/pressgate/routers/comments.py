# pressgate/routers/comments.py - Comments: public listing, authenticated posting, moderation
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pressgate.core.roles import Action
from pressgate.core.security import (
    get_current_profile, get_optional_principal, get_principal, get_resolver, get_store, get_writer, open_guard,
)
from pressgate.repositories.store import COMMENTS, OWNER_FIELD, POSTS, DocumentStore, Write
from pressgate.schemas.comment import CommentIn, CommentOut
from pressgate.schemas.principal import Principal
from pressgate.schemas.profile import ProfileRecord
from pressgate.services.profile_resolver import ProfileResolver
from pressgate.services.writes import AuthoritativeWriter

router = APIRouter(tags=["Comments"])


def _doc_to_out(doc_id: str, data: Dict[str, Any]) -> CommentOut:
    ts = data.get("createdAt")
    return CommentOut(
        id=doc_id,
        post_id=data.get("postId") or "",
        content=data.get("content") or "",
        owner_id=data.get(OWNER_FIELD) or data.get("authorId") or "",
        author_name=data.get("authorName"),
        parent_id=data.get("parentId"),
        status=data.get("status") or "approved",
        created_at=ts.to_datetime() if hasattr(ts, "to_datetime") else ts,
    )


@router.get("/posts/{post_id}/comments", response_model=List[CommentOut], summary="List approved comments (oldest first)")
async def list_comments(
    post_id: str,
    limit: int = Query(200, ge=1, le=500),
    principal: Optional[Principal] = Depends(get_optional_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
):
    guard = await open_guard(store, resolver, principal)
    guard.require(Action.READ_POST)
    rows = store.list_documents(COMMENTS, where=[("postId", post_id)], order_by="createdAt")
    # Comments without a status predate moderation and count as approved
    approved = [_doc_to_out(i, d) for i, d in rows if (d.get("status") or "approved") == "approved"]
    return approved[:limit]


@router.post("/posts/{post_id}/comments", response_model=CommentOut, status_code=201, summary="Comment on a post")
async def create_comment(
    post_id: str,
    payload: CommentIn,
    principal: Principal = Depends(get_principal),
    profile: ProfileRecord = Depends(get_current_profile),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
    writer: AuthoritativeWriter = Depends(get_writer),
):
    guard = await open_guard(store, resolver, principal)
    guard.require(Action.CREATE_COMMENT)
    if store.get_document(POSTS, post_id) is None:
        raise HTTPException(status_code=404, detail="Post not found")
    if payload.parent_id:
        parent = store.get_document(COMMENTS, payload.parent_id)
        if parent is None or parent.get("postId") != post_id:
            raise HTTPException(status_code=400, detail="Parent comment does not belong to this post")

    data = {
        "postId": post_id,
        "content": payload.content,
        "parentId": payload.parent_id,
        OWNER_FIELD: principal.uid,
        "authorName": profile.display_name,
        "authorEmail": profile.email,
        # Auto-approved; moderation happens after the fact
        "status": "approved",
    }
    comment_id = await writer.submit(Write("create", COMMENTS, None, principal.uid, data))
    return _doc_to_out(comment_id, store.get_document(COMMENTS, comment_id) or data)


@router.delete("/comments/{comment_id}", summary="(Moderation) Delete a comment")
async def delete_comment(
    comment_id: str,
    principal: Principal = Depends(get_principal),
    store: DocumentStore = Depends(get_store),
    resolver: ProfileResolver = Depends(get_resolver),
    writer: AuthoritativeWriter = Depends(get_writer),
):
    if store.get_document(COMMENTS, comment_id) is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    guard = await open_guard(store, resolver, principal, collection=COMMENTS, resource_id=comment_id)
    guard.require(Action.MODERATE_COMMENT)
    await writer.submit(Write("delete", COMMENTS, comment_id, principal.uid))
    return {"detail": "Comment deleted"}
