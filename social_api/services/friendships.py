"""
Friend-request state machine.

States per ordered pair (A, B):

  NONE ──send(A→B)──▶ A_REQUESTED_B ──accept(B)──▶ FRIENDS
                          │    ▲                      │
          reject(B) /     │    │                      │ remove(A or B)
          cancel(A)       ▼    │                      ▼
                         NONE ◀────────────────────── NONE

Every transition runs inside the request's single database transaction
(see database.get_db): both sides of the relation change together or not at
all. Deletes check the affected row count, so when two callers race for the
same request or friendship the loser gets InvalidTransition instead of a
silent no-op; duplicate inserts are caught by the primary keys.
"""
import logging
from contextlib import contextmanager

from fastapi import status
from opentelemetry import trace
from sqlalchemy import and_, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.errors import BadRequest, InvalidTransition, SocialApiError
from social_api.models import FriendRequest, Friendship
from social_api.services.graph import are_friends, has_pending_request, require_user
from social_api.telemetry import FRIEND_TRANSITIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ALREADY_RELATED = (
    "Either user is already in your friends list or a friend request has already been sent"
)
REQUEST_NOT_FOUND = "Friend request not found"
NOT_FRIENDS = "User is not in your friends list"


@contextmanager
def _transition(action: str, actor_id: str, target_id: str):
    """Span + metrics around one transition."""
    with tracer.start_as_current_span(f"friend_{action}") as span:
        span.set_attribute("user.id", actor_id)
        span.set_attribute("target.id", target_id)
        try:
            yield span
        except SocialApiError as exc:
            FRIEND_TRANSITIONS_TOTAL.labels(action=action, outcome="rejected").inc()
            logger.info("%s refused for %s → %s: %s", action, actor_id, target_id, exc)
            raise
        FRIEND_TRANSITIONS_TOTAL.labels(action=action, outcome="ok").inc()
        logger.info("%s: %s → %s", action, actor_id, target_id)


async def _flush_or_conflict(db: AsyncSession, message: str, status_code: int | None = None) -> None:
    try:
        await db.flush()
    except IntegrityError as exc:
        raise InvalidTransition(message, status_code=status_code) from exc


async def send_request(db: AsyncSession, sender_id: str, recipient_id: str) -> None:
    """NONE → SENDER_REQUESTED_RECIPIENT."""
    with _transition("send_request", sender_id, recipient_id):
        if sender_id == recipient_id:
            raise BadRequest("You cannot send a friend request to yourself")
        await require_user(db, recipient_id)

        if await has_pending_request(db, sender_id, recipient_id) or await are_friends(
            db, sender_id, recipient_id
        ):
            raise InvalidTransition(ALREADY_RELATED, status_code=status.HTTP_403_FORBIDDEN)

        db.add(FriendRequest(sender_id=sender_id, recipient_id=recipient_id))
        await _flush_or_conflict(db, ALREADY_RELATED, status.HTTP_403_FORBIDDEN)


async def _delete_request(db: AsyncSession, sender_id: str, recipient_id: str) -> None:
    result = await db.execute(
        delete(FriendRequest).where(
            FriendRequest.sender_id == sender_id,
            FriendRequest.recipient_id == recipient_id,
        )
    )
    if result.rowcount != 1:
        raise InvalidTransition(REQUEST_NOT_FOUND)


async def accept_request(db: AsyncSession, recipient_id: str, sender_id: str) -> None:
    """SENDER_REQUESTED_RECIPIENT → FRIENDS. Only the recipient may accept."""
    with _transition("accept_request", recipient_id, sender_id):
        await _delete_request(db, sender_id, recipient_id)

        # A crossed request in the other direction is settled by the same accept
        await db.execute(
            delete(FriendRequest).where(
                FriendRequest.sender_id == recipient_id,
                FriendRequest.recipient_id == sender_id,
            )
        )

        user_a, user_b = Friendship.ordered_pair(recipient_id, sender_id)
        db.add(Friendship(user_a_id=user_a, user_b_id=user_b))
        await _flush_or_conflict(db, REQUEST_NOT_FOUND)


async def reject_request(db: AsyncSession, recipient_id: str, sender_id: str) -> None:
    """SENDER_REQUESTED_RECIPIENT → NONE, by the recipient."""
    with _transition("reject_request", recipient_id, sender_id):
        await _delete_request(db, sender_id, recipient_id)


async def cancel_request(db: AsyncSession, sender_id: str, recipient_id: str) -> None:
    """SENDER_REQUESTED_RECIPIENT → NONE, by the sender."""
    with _transition("cancel_request", sender_id, recipient_id):
        await _delete_request(db, sender_id, recipient_id)


async def remove_friend(db: AsyncSession, user_id: str, friend_id: str) -> None:
    """FRIENDS → NONE, by either party."""
    with _transition("remove_friend", user_id, friend_id):
        user_a, user_b = Friendship.ordered_pair(user_id, friend_id)
        result = await db.execute(
            delete(Friendship).where(
                and_(Friendship.user_a_id == user_a, Friendship.user_b_id == user_b)
            )
        )
        if result.rowcount != 1:
            raise InvalidTransition(NOT_FRIENDS)
