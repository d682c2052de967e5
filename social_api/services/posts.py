"""
Post hydration and the post feed behind GET /posts.

Feed sources:
  primary  — posts by the caller's friends and friends-of-friends, plus posts
             the caller liked or commented on
  fallback — posts by the most-connected users, used to fill short pages

Like the friend suggestions, pages walk the virtual list
``primary ++ fallback``, so the fallback offset accounts for primary posts
already shown on earlier pages.
"""
import logging

from opentelemetry import trace
from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.config import settings
from social_api.errors import NotFound
from social_api.models import Comment, Like, Post, User
from social_api.schemas import AuthorSummary, PostResponse, SortOrder
from social_api.services.graph import friend_count_column, friend_ids, neighbours

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _likes_count():
    return (
        select(func.count())
        .select_from(Like)
        .where(Like.post_id == Post.post_id)
        .correlate(Post)
        .scalar_subquery()
    )


def _comments_count():
    return (
        select(func.count())
        .select_from(Comment)
        .where(Comment.post_id == Post.post_id)
        .correlate(Post)
        .scalar_subquery()
    )


def post_query() -> Select:
    """Posts joined with their author and engagement counts."""
    return select(Post, User.username, _likes_count(), _comments_count()).join(
        User, User.user_id == Post.author_id
    )


def _to_response(post: Post, username: str, likes: int, comments: int) -> PostResponse:
    return PostResponse(
        id=post.post_id,
        content=post.content,
        author=AuthorSummary(id=post.author_id, username=username),
        likes_count=likes or 0,
        comments_count=comments or 0,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


async def fetch_posts(db: AsyncSession, stmt: Select) -> list[PostResponse]:
    rows = await db.execute(stmt)
    return [_to_response(*row) for row in rows.all()]


async def get_post_response(db: AsyncSession, post_id: str) -> PostResponse:
    posts = await fetch_posts(db, post_query().where(Post.post_id == post_id))
    if not posts:
        raise NotFound("Post not found")
    return posts[0]


async def _most_connected_users(db: AsyncSession, count: int) -> list[str]:
    friends_count = friend_count_column().label("friends_count")
    rows = await db.execute(
        select(User.user_id, friends_count)
        .order_by(friends_count.desc(), User.created_at, User.user_id)
        .limit(count)
    )
    return [user_id for user_id, _ in rows.all()]


async def get_feed(
    db: AsyncSession,
    user_id: str,
    limit: int = 10,
    page: int = 1,
    search: str = "",
    order: SortOrder = SortOrder.desc,
) -> list[PostResponse]:
    limit = max(1, min(limit, settings.page_max_limit))
    skip = (page - 1) * limit
    ordering = (
        (Post.created_at.desc(), Post.post_id.desc())
        if order == SortOrder.desc
        else (Post.created_at.asc(), Post.post_id.asc())
    )

    with tracer.start_as_current_span("get_post_feed") as span:
        span.set_attribute("user.id", user_id)

        friends = await friend_ids(db, user_id)
        relevant_authors = friends | (await neighbours(db, friends) - {user_id})

        liked = select(Like.post_id).where(Like.user_id == user_id)
        commented = select(Comment.post_id).where(Comment.author_id == user_id)
        primary = or_(
            Post.author_id.in_(relevant_authors),
            Post.post_id.in_(liked),
            Post.post_id.in_(commented),
        )
        matches = Post.content.icontains(search, autoescape=True) if search else None

        stmt = post_query().where(primary)
        total_stmt = select(func.count()).select_from(Post).where(primary)
        if matches is not None:
            stmt = stmt.where(matches)
            total_stmt = total_stmt.where(matches)

        posts = await fetch_posts(db, stmt.order_by(*ordering).offset(skip).limit(limit))

        if len(posts) < limit:
            primary_total = (await db.execute(total_stmt)).scalar_one()
            popular = await _most_connected_users(db, settings.feed_fallback_authors)
            fallback = post_query().where(Post.author_id.in_(popular), ~primary)
            if matches is not None:
                fallback = fallback.where(matches)
            offset = max(0, skip + len(posts) - primary_total)
            posts.extend(
                await fetch_posts(
                    db,
                    fallback.order_by(*ordering).offset(offset).limit(limit - len(posts)),
                )
            )
            span.set_attribute("feed.primary_total", primary_total)

        span.set_attribute("feed.posts_returned", len(posts))

    logger.info("Post feed for %s: %d posts (page=%d)", user_id, len(posts), page)
    return posts
