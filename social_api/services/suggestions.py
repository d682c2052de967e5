"""
Friend-suggestion ranker — backs GET /users/suggestions.

  Stage 1 │ Exclusions
  ────────┼──────────────────────────────────────────────────────────────
          │  requester + requester's friends + users already holding a
          │  pending request from the requester

  Stage 2 │ Signal scoring (each source iterated once)
  ────────┼──────────────────────────────────────────────────────────────
          │  mutual friend  — shares ≥1 friend with requester      +10
          │  co-liker       — liked a post authored by requester     +5
          │  co-commenter   — authored a post requester commented on +3
          │  Scores of a user found by several sources are summed.

  Stage 3 │ Rank & paginate
  ────────┼──────────────────────────────────────────────────────────────
          │  Stable sort by score desc (ties keep discovery order),
          │  then slice the page.

  Stage 4 │ Fallback backfill
  ────────┼──────────────────────────────────────────────────────────────
          │  Short pages are topped up from every other eligible user,
          │  most-connected first. Pages walk the virtual list
          │  ``scored ++ fallback`` so no user is skipped or repeated.
"""
import logging
import time
from dataclasses import dataclass

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.config import settings
from social_api.models import Comment, Like, Post, User
from social_api.schemas import UserSummary
from social_api.services.graph import (
    friend_count_column,
    friend_ids,
    load_summaries,
    neighbours,
    require_user,
    sent_request_ids,
    to_summary,
)
from social_api.telemetry import SUGGESTION_CANDIDATES_TOTAL, SUGGESTION_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class Candidate:
    user_id: str
    score: int


def clamp_limit(limit: int) -> int:
    return max(1, min(limit, settings.suggestion_max_limit))


async def _mutual_friend_candidates(
    db: AsyncSession, friends: set[str], excluded: set[str]
) -> list[str]:
    """Users whose own friends intersect `friends`, in discovery order."""
    found = await neighbours(db, friends) - excluded
    if not found:
        return []
    rows = await db.execute(
        select(User.user_id)
        .where(User.user_id.in_(found))
        .order_by(User.created_at, User.user_id)
    )
    return list(rows.scalars().all())


async def _co_liker_candidates(
    db: AsyncSession, requester_id: str, excluded: set[str]
) -> list[str]:
    """Users who liked a post authored by the requester."""
    rows = await db.execute(
        select(User.user_id, User.created_at)
        .join(Like, Like.user_id == User.user_id)
        .join(Post, Post.post_id == Like.post_id)
        .where(Post.author_id == requester_id, User.user_id.not_in(excluded))
        .distinct()
        .order_by(User.created_at, User.user_id)
    )
    return [user_id for user_id, _ in rows.all()]


async def _co_commenter_candidates(
    db: AsyncSession, requester_id: str, excluded: set[str]
) -> list[str]:
    """Authors of posts the requester commented on."""
    rows = await db.execute(
        select(User.user_id, User.created_at)
        .join(Post, Post.author_id == User.user_id)
        .join(Comment, Comment.post_id == Post.post_id)
        .where(Comment.author_id == requester_id, User.user_id.not_in(excluded))
        .distinct()
        .order_by(User.created_at, User.user_id)
    )
    return [user_id for user_id, _ in rows.all()]


def rank_candidates(sources: list[tuple[int, list[str]]]) -> list[Candidate]:
    """
    Merge `(weight, user_ids)` sources into one ranked list.

    A user found by several sources collects the sum of their weights. The
    sort is stable, so equal scores keep the order in which users were first
    discovered.
    """
    scores: dict[str, int] = {}
    for weight, user_ids in sources:
        for user_id in user_ids:
            scores[user_id] = scores.get(user_id, 0) + weight

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [Candidate(user_id=user_id, score=score) for user_id, score in ranked]


def fallback_window(page: int, limit: int, page_scored: int, scored_total: int) -> tuple[int, int]:
    """
    Offset into the fallback pool and number of slots to fill for one page.

    Earlier pages have already consumed ``max(0, start - scored_total)``
    fallback users, where ``start`` is the page's position in the virtual
    list ``scored ++ fallback``.
    """
    start = (page - 1) * limit
    offset = max(0, start + page_scored - scored_total)
    return offset, limit - page_scored


async def _fallback_users(
    db: AsyncSession, skip_ids: set[str], offset: int, limit: int
) -> list[UserSummary]:
    friends_count = friend_count_column().label("friends_count")
    rows = await db.execute(
        select(User, friends_count)
        .where(User.user_id.not_in(skip_ids))
        .order_by(friends_count.desc(), User.created_at, User.user_id)
        .offset(offset)
        .limit(limit)
    )
    return [to_summary(user, count) for user, count in rows.all()]


async def suggest_friends(
    db: AsyncSession, requester_id: str, limit: int = 10, page: int = 1
) -> list[UserSummary]:
    """
    Return one page of friend suggestions for `requester_id`.

    Raises NotFound if the requester does not exist. Read-only.
    """
    t0 = time.perf_counter()
    limit = clamp_limit(limit)
    page = max(1, page)

    with tracer.start_as_current_span("suggest_friends") as span:
        span.set_attribute("user.id", requester_id)
        span.set_attribute("suggestions.limit", limit)
        span.set_attribute("suggestions.page", page)

        await require_user(db, requester_id)

        # ── Stage 1: exclusions ─────────────────────────────────────────
        with tracer.start_as_current_span("stage1_exclusions"):
            friends = await friend_ids(db, requester_id)
            pending = await sent_request_ids(db, requester_id)
            excluded = {requester_id} | friends | pending

        # ── Stage 2: signal scoring ─────────────────────────────────────
        with tracer.start_as_current_span("stage2_signals"):
            mutual = await _mutual_friend_candidates(db, friends, excluded)
            likers = await _co_liker_candidates(db, requester_id, excluded)
            commenters = await _co_commenter_candidates(db, requester_id, excluded)

        SUGGESTION_CANDIDATES_TOTAL.labels(source="mutual_friend").inc(len(mutual))
        SUGGESTION_CANDIDATES_TOTAL.labels(source="co_liker").inc(len(likers))
        SUGGESTION_CANDIDATES_TOTAL.labels(source="co_commenter").inc(len(commenters))

        # ── Stage 3: rank & paginate ────────────────────────────────────
        ranked = rank_candidates(
            [
                (settings.suggestion_weight_mutual, mutual),
                (settings.suggestion_weight_liker, likers),
                (settings.suggestion_weight_commenter, commenters),
            ]
        )
        start = (page - 1) * limit
        page_ids = [c.user_id for c in ranked[start:start + limit]]
        summaries = await load_summaries(db, page_ids)
        results = [summaries[uid] for uid in page_ids if uid in summaries]

        span.set_attribute("suggestions.scored_total", len(ranked))

        # ── Stage 4: fallback backfill ──────────────────────────────────
        if len(results) < limit:
            with tracer.start_as_current_span("stage4_fallback"):
                offset, remaining = fallback_window(page, limit, len(results), len(ranked))
                skip_ids = excluded | {c.user_id for c in ranked}
                backfill = await _fallback_users(db, skip_ids, offset, remaining)
            SUGGESTION_CANDIDATES_TOTAL.labels(source="fallback").inc(len(backfill))
            span.set_attribute("suggestions.fallback", len(backfill))
            results.extend(backfill)

    SUGGESTION_LATENCY.observe(time.perf_counter() - t0)
    logger.info(
        "Suggested %d users for %s (page=%d, limit=%d, scored=%d)",
        len(results), requester_id, page, limit, len(ranked),
    )
    return results
