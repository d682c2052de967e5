"""
Post endpoints (all require a bearer token):
  GET    /posts                — personalised feed, paginated + searchable
  POST   /posts                — create a post
  GET    /posts/like/{id}      — users who liked a post
  POST   /posts/like/{id}      — like / unlike (toggle)
  GET    /posts/{id}           — fetch a single post
  PUT    /posts/{id}           — edit own post
  DELETE /posts/{id}           — delete own post
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from opentelemetry import trace
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.database import get_db
from social_api.errors import NotFound
from social_api.models import Comment, Like, Post, User
from social_api.schemas import (
    AuthorSummary,
    LikeToggleResponse,
    PostContent,
    PostLikers,
    PostResponse,
    SortOrder,
)
from social_api.security import get_current_user_id
from social_api.services.graph import require_user
from social_api.services.posts import get_feed, get_post_response

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def _own_post(db: AsyncSession, post_id: str, user_id: str) -> Post:
    post = await db.get(Post, post_id)
    if post is None or post.author_id != user_id:
        raise NotFound("Post not found")
    return post


@router.get("/", response_model=list[PostResponse])
async def list_posts(
    limit: int = Query(10, ge=1),
    page: int = Query(1, ge=1),
    search: str = Query("", max_length=200),
    sort: SortOrder = Query(SortOrder.desc),
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return await get_feed(
        db, current_user_id, limit=limit, page=page, search=search, order=sort
    )


@router.post("/", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostContent,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    with tracer.start_as_current_span("create_post") as span:
        author = await db.get(User, current_user_id)
        if author is None:
            raise NotFound("Author not found")

        post = Post(author_id=current_user_id, content=body.content)
        db.add(post)
        await db.flush()  # materialise post_id

        span.set_attribute("post.id", post.post_id)
        logger.info("Post created: %s by user %s", post.post_id, current_user_id)
        return PostResponse(
            id=post.post_id,
            content=post.content,
            author=AuthorSummary(id=author.user_id, username=author.username),
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


@router.get("/like/{post_id}", response_model=PostLikers)
async def list_likers(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    if await db.get(Post, post_id) is None:
        raise NotFound("Post not found")

    rows = await db.execute(
        select(User.user_id, User.username)
        .join(Like, Like.user_id == User.user_id)
        .where(Like.post_id == post_id)
        .order_by(Like.created_at)
    )
    return PostLikers(
        post_id=post_id,
        likes=[AuthorSummary(id=uid, username=name) for uid, name in rows.all()],
    )


@router.post("/like/{post_id}", response_model=LikeToggleResponse)
async def toggle_like(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    """Like a post, or remove the like if the caller already liked it."""
    with tracer.start_as_current_span("toggle_like"):
        await require_user(db, current_user_id)
        if await db.get(Post, post_id) is None:
            raise NotFound("Post not found")

        removed = await db.execute(
            delete(Like).where(Like.user_id == current_user_id, Like.post_id == post_id)
        )
        liked = removed.rowcount == 0
        if liked:
            db.add(Like(user_id=current_user_id, post_id=post_id))
            await db.flush()

        likes_count = (
            await db.execute(
                select(func.count()).select_from(Like).where(Like.post_id == post_id)
            )
        ).scalar_one()

        return LikeToggleResponse(
            detail="Post liked successfully" if liked else "Post like removed successfully",
            liked=liked,
            likes_count=likes_count,
        )


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return await get_post_response(db, post_id)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: str,
    body: PostContent,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    post = await _own_post(db, post_id, current_user_id)
    post.content = body.content
    await db.flush()
    return await get_post_response(db, post_id)


@router.delete("/{post_id}", response_model=PostResponse)
async def delete_post(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await _own_post(db, post_id, current_user_id)
    deleted = await get_post_response(db, post_id)
    await db.execute(delete(Like).where(Like.post_id == post_id))
    await db.execute(delete(Comment).where(Comment.post_id == post_id))
    await db.execute(delete(Post).where(Post.post_id == post_id))
    logger.info("Post deleted: %s", post_id)
    return deleted
