"""
Comment endpoints (all require a bearer token):
  GET    /comments/{post_id}     — comments on a post, paginated
  POST   /comments/{post_id}     — comment on a post
  PUT    /comments/{comment_id}  — edit own comment
  DELETE /comments/{comment_id}  — delete own comment
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.config import settings
from social_api.database import get_db
from social_api.errors import NotFound
from social_api.models import Comment, Post
from social_api.schemas import CommentContent, CommentResponse, MessageResponse, SortOrder
from social_api.security import get_current_user_id
from social_api.services.graph import require_user

logger = logging.getLogger(__name__)
router = APIRouter()


def _to_response(comment: Comment) -> CommentResponse:
    return CommentResponse(
        id=comment.comment_id,
        post_id=comment.post_id,
        author_id=comment.author_id,
        content=comment.content,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


async def _own_comment(db: AsyncSession, comment_id: str, user_id: str) -> Comment:
    comment = await db.get(Comment, comment_id)
    if comment is None or comment.author_id != user_id:
        raise NotFound("Comment not found")
    return comment


@router.get("/{post_id}", response_model=list[CommentResponse])
async def list_comments(
    post_id: str,
    limit: int = Query(10, ge=1),
    page: int = Query(1, ge=1),
    order: SortOrder = Query(SortOrder.desc),
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    limit = min(limit, settings.page_max_limit)
    if order == SortOrder.desc:
        ordering = (Comment.created_at.desc(), Comment.comment_id.desc())
    else:
        ordering = (Comment.created_at.asc(), Comment.comment_id.asc())

    rows = await db.execute(
        select(Comment)
        .where(Comment.post_id == post_id)
        .order_by(*ordering)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [_to_response(c) for c in rows.scalars().all()]


@router.post("/{post_id}", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: str,
    body: CommentContent,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await require_user(db, current_user_id)
    if await db.get(Post, post_id) is None:
        raise NotFound("Post not found")

    comment = Comment(post_id=post_id, author_id=current_user_id, content=body.content)
    db.add(comment)
    await db.flush()

    logger.info("Comment %s on post %s by %s", comment.comment_id, post_id, current_user_id)
    return _to_response(comment)


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: str,
    body: CommentContent,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    comment = await _own_comment(db, comment_id, current_user_id)
    comment.content = body.content
    await db.flush()
    await db.refresh(comment)  # pick up updated_at
    return _to_response(comment)


@router.delete("/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    comment = await _own_comment(db, comment_id, current_user_id)
    await db.delete(comment)
    return MessageResponse(detail="Comment deleted successfully")
