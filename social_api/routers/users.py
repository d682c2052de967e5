"""
User and friendship endpoints (all require a bearer token):
  GET    /users/suggestions        — ranked friend suggestions
  GET    /users/friends            — caller's friends
  GET    /users/received-requests  — users who sent the caller a request
  GET    /users/sent-requests      — users the caller sent a request to
  POST   /users/send-request       — NONE → REQUESTED
  POST   /users/accept-request     — REQUESTED → FRIENDS (recipient)
  POST   /users/reject-request     — REQUESTED → NONE (recipient)
  DELETE /users/request            — REQUESTED → NONE (sender)
  DELETE /users/friend             — FRIENDS → NONE (either side)
  PATCH  /users/me                 — update username / email
  GET    /users/{id}               — public profile
  GET    /users/{id}/friends       — someone else's friends
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.config import settings
from social_api.database import get_db
from social_api.errors import Conflict
from social_api.models import FriendRequest, User
from social_api.schemas import (
    MessageResponse,
    SortOrder,
    TargetUser,
    UserSummary,
    UserUpdate,
)
from social_api.security import get_current_user_id
from social_api.services import friendships
from social_api.services.graph import (
    friend_count_column,
    friend_ids,
    get_summary,
    require_user,
    to_summary,
)
from social_api.services.suggestions import suggest_friends

logger = logging.getLogger(__name__)
router = APIRouter()


class ListParams:
    """Shared ``limit / page / search / order`` query parameters."""

    def __init__(
        self,
        limit: int = Query(10, ge=1, description="Page size (capped server-side)"),
        page: int = Query(1, ge=1, description="1-based page number"),
        search: str = Query("", max_length=100, description="Username substring"),
        order: SortOrder = Query(SortOrder.desc, description="Sort by creation time"),
    ) -> None:
        self.limit = min(limit, settings.page_max_limit)
        self.page = page
        self.search = search
        self.order = order


async def _list_users(db: AsyncSession, condition, params: ListParams) -> list[UserSummary]:
    friends_count = friend_count_column().label("friends_count")
    stmt = select(User, friends_count).where(condition)
    if params.search:
        stmt = stmt.where(User.username.icontains(params.search, autoescape=True))
    if params.order == SortOrder.desc:
        stmt = stmt.order_by(User.created_at.desc(), User.user_id.desc())
    else:
        stmt = stmt.order_by(User.created_at.asc(), User.user_id.asc())
    stmt = stmt.offset((params.page - 1) * params.limit).limit(params.limit)

    rows = await db.execute(stmt)
    return [to_summary(user, count) for user, count in rows.all()]


async def _friends_page(db: AsyncSession, user_id: str, params: ListParams) -> list[UserSummary]:
    friends = await friend_ids(db, user_id)
    if not friends:
        return []
    return await _list_users(db, User.user_id.in_(friends), params)


# ──────────────────────────── Suggestions ─────────────────────────────────

@router.get("/suggestions", response_model=list[UserSummary])
async def get_suggestions(
    limit: int = Query(10, ge=1),
    page: int = Query(1, ge=1),
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return await suggest_friends(db, current_user_id, limit=limit, page=page)


# ──────────────────────────── Lists ───────────────────────────────────────

@router.get("/friends", response_model=list[UserSummary])
async def list_my_friends(
    params: ListParams = Depends(),
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return await _friends_page(db, current_user_id, params)


@router.get("/received-requests", response_model=list[UserSummary])
async def list_received_requests(
    params: ListParams = Depends(),
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    senders = select(FriendRequest.sender_id).where(
        FriendRequest.recipient_id == current_user_id
    )
    return await _list_users(db, User.user_id.in_(senders), params)


@router.get("/sent-requests", response_model=list[UserSummary])
async def list_sent_requests(
    params: ListParams = Depends(),
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    recipients = select(FriendRequest.recipient_id).where(
        FriendRequest.sender_id == current_user_id
    )
    return await _list_users(db, User.user_id.in_(recipients), params)


# ──────────────────────────── Friend requests ─────────────────────────────

@router.post("/send-request", response_model=MessageResponse)
async def send_request(
    body: TargetUser,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await friendships.send_request(db, current_user_id, body.user_id)
    return MessageResponse(detail="Friend request sent")


@router.post("/accept-request", response_model=MessageResponse)
async def accept_request(
    body: TargetUser,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await friendships.accept_request(db, current_user_id, body.user_id)
    return MessageResponse(detail="Friend request accepted")


@router.post("/reject-request", response_model=MessageResponse)
async def reject_request(
    body: TargetUser,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await friendships.reject_request(db, current_user_id, body.user_id)
    return MessageResponse(detail="Friend request rejected")


@router.delete("/request", response_model=MessageResponse)
async def cancel_request(
    body: TargetUser,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await friendships.cancel_request(db, current_user_id, body.user_id)
    return MessageResponse(detail="Friend request removed")


@router.delete("/friend", response_model=MessageResponse)
async def remove_friend(
    body: TargetUser,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await friendships.remove_friend(db, current_user_id, body.user_id)
    return MessageResponse(detail="Friend removed")


# ──────────────────────────── Profiles ────────────────────────────────────

@router.patch("/me", response_model=UserSummary)
async def update_me(
    body: UserUpdate,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    user = await require_user(db, current_user_id)
    email = body.email.lower() if body.email else None

    clashes = [User.username == body.username] if body.username else []
    if email:
        clashes.append(User.email == email)
    if clashes:
        existing = await db.execute(
            select(User.user_id).where(or_(*clashes), User.user_id != current_user_id)
        )
        if existing.first():
            raise Conflict("Username or email already exists")

    user.username = body.username or user.username
    user.email = email or user.email
    await db.flush()

    logger.info("Updated user %s", current_user_id)
    return await get_summary(db, current_user_id)


@router.get("/{user_id}", response_model=UserSummary)
async def get_user(
    user_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return await get_summary(db, user_id)


@router.get("/{user_id}/friends", response_model=list[UserSummary])
async def list_user_friends(
    user_id: str,
    params: ListParams = Depends(),
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    await require_user(db, user_id)
    return await _friends_page(db, user_id, params)
