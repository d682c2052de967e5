"""
Social-graph read helpers shared by the suggestion ranker, the friend-request
state machine and the list endpoints.
"""
from sqlalchemy import func, or_, select
from sqlalchemy.sql.expression import ScalarSelect
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.errors import NotFound
from social_api.models import FriendRequest, Friendship, User
from social_api.schemas import UserSummary


def friend_count_column() -> ScalarSelect:
    """Correlated subquery counting the friendships of the outer ``User`` row."""
    return (
        select(func.count())
        .select_from(Friendship)
        .where(
            or_(
                Friendship.user_a_id == User.user_id,
                Friendship.user_b_id == User.user_id,
            )
        )
        .correlate(User)
        .scalar_subquery()
    )


def to_summary(user: User, friends_count: int) -> UserSummary:
    return UserSummary(
        id=user.user_id,
        username=user.username,
        email=user.email,
        created_at=user.created_at,
        friends_count=friends_count or 0,
    )


async def require_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def get_summary(db: AsyncSession, user_id: str) -> UserSummary:
    row = (
        await db.execute(
            select(User, friend_count_column()).where(User.user_id == user_id)
        )
    ).first()
    if row is None:
        raise NotFound("User not found")
    return to_summary(row[0], row[1])


async def load_summaries(db: AsyncSession, user_ids: list[str]) -> dict[str, UserSummary]:
    """Bulk-load summaries keyed by id; unknown ids are simply absent."""
    if not user_ids:
        return {}
    rows = await db.execute(
        select(User, friend_count_column()).where(User.user_id.in_(user_ids))
    )
    return {user.user_id: to_summary(user, count) for user, count in rows.all()}


async def friend_ids(db: AsyncSession, user_id: str) -> set[str]:
    rows = await db.execute(
        select(Friendship).where(
            or_(Friendship.user_a_id == user_id, Friendship.user_b_id == user_id)
        )
    )
    return {f.other(user_id) for f in rows.scalars().all()}


async def are_friends(db: AsyncSession, first: str, second: str) -> bool:
    return await db.get(Friendship, Friendship.ordered_pair(first, second)) is not None


async def has_pending_request(db: AsyncSession, sender_id: str, recipient_id: str) -> bool:
    return await db.get(FriendRequest, (sender_id, recipient_id)) is not None


async def sent_request_ids(db: AsyncSession, user_id: str) -> set[str]:
    """Users holding a pending request from `user_id`."""
    rows = await db.execute(
        select(FriendRequest.recipient_id).where(FriendRequest.sender_id == user_id)
    )
    return set(rows.scalars().all())


async def neighbours(db: AsyncSession, user_ids: set[str]) -> set[str]:
    """Every user who is friends with at least one member of `user_ids`."""
    if not user_ids:
        return set()
    rows = await db.execute(
        select(Friendship.user_a_id, Friendship.user_b_id).where(
            or_(Friendship.user_a_id.in_(user_ids), Friendship.user_b_id.in_(user_ids))
        )
    )
    found: set[str] = set()
    for user_a, user_b in rows.all():
        if user_a in user_ids:
            found.add(user_b)
        if user_b in user_ids:
            found.add(user_a)
    return found
