"""
Friend-suggestion ranking: scoring, exclusion, ordering, fallback and
pagination.
"""
import pytest

from social_api.errors import NotFound
from social_api.services.suggestions import (
    fallback_window,
    rank_candidates,
    suggest_friends,
)


def ids(summaries):
    return [s.id for s in summaries]


# ──────────────────────────── Pure helpers ────────────────────────────────

def test_rank_candidates_sums_weights_across_sources():
    ranked = rank_candidates([(10, ["a", "b"]), (5, ["b", "c"]), (3, ["c", "d"])])
    assert [(c.user_id, c.score) for c in ranked] == [
        ("b", 15),
        ("a", 10),
        ("c", 8),
        ("d", 3),
    ]


def test_rank_candidates_keeps_discovery_order_on_ties():
    ranked = rank_candidates([(5, ["x", "y"]), (3, ["z"]), (5, ["w"])])
    assert [c.user_id for c in ranked] == ["x", "y", "w", "z"]


def test_rank_candidates_empty():
    assert rank_candidates([(10, []), (5, [])]) == []


@pytest.mark.parametrize(
    "page, limit, page_scored, scored_total, expected",
    [
        (1, 5, 2, 2, (0, 3)),    # short first page starts the pool
        (2, 5, 0, 2, (3, 5)),    # page 1 already used 3 fallback users
        (2, 5, 3, 8, (0, 2)),    # scored list runs out mid-page
        (3, 5, 0, 8, (2, 5)),
        (1, 5, 5, 12, (0, 0)),   # full page, nothing to fill
    ],
)
def test_fallback_window(page, limit, page_scored, scored_total, expected):
    assert fallback_window(page, limit, page_scored, scored_total) == expected


# ──────────────────────────── Ranking ─────────────────────────────────────

async def test_mutual_friend_outranks_co_liker(db, graph):
    u1, u2, u5, u6 = await graph.users("u1", "u2", "u5", "u6")
    await graph.befriend(u1, u2)
    await graph.befriend(u5, u2)
    post = await graph.post(u1)
    await graph.like(u6, post)

    result = await suggest_friends(db, u1.user_id, limit=10, page=1)

    assert ids(result) == [u5.user_id, u6.user_id]


async def test_scores_from_several_sources_are_summed(db, graph):
    me, friend, both, mutual_only, liker_commentee, commentee = await graph.users(
        "me", "friend", "both", "mutual_only", "liker_commentee", "commentee"
    )
    await graph.befriend(me, friend)
    my_post = await graph.post(me)

    # both: mutual friend (10) + liked my post (5) = 15
    await graph.befriend(both, friend)
    await graph.like(both, my_post)
    # mutual_only: 10
    await graph.befriend(mutual_only, friend)
    # liker_commentee: liked my post (5) + I commented on their post (3) = 8
    await graph.like(liker_commentee, my_post)
    await graph.comment(me, await graph.post(liker_commentee))
    # commentee: 3
    await graph.comment(me, await graph.post(commentee))

    result = await suggest_friends(db, me.user_id, limit=10, page=1)

    assert ids(result) == [
        both.user_id,
        mutual_only.user_id,
        liker_commentee.user_id,
        commentee.user_id,
    ]


async def test_mutual_friend_score_is_flat_per_candidate(db, graph):
    me, f1, f2, one_shared, two_shared = await graph.users(
        "me", "f1", "f2", "one_shared", "two_shared"
    )
    await graph.befriend(me, f1)
    await graph.befriend(me, f2)
    await graph.befriend(one_shared, f1)
    await graph.befriend(two_shared, f1)
    await graph.befriend(two_shared, f2)

    result = await suggest_friends(db, me.user_id, limit=2, page=1)

    # Both score 10; the earlier-created user stays first.
    assert ids(result) == [one_shared.user_id, two_shared.user_id]


async def test_co_liker_means_liked_a_post_by_the_requester(db, graph):
    me, author, fan = await graph.users("me", "author", "fan")
    # I liked author's post: that is not a signal for author
    await graph.like(me, await graph.post(author))
    await graph.like(fan, await graph.post(me))

    result = await suggest_friends(db, me.user_id, limit=1, page=1)

    assert ids(result) == [fan.user_id]


async def test_repeated_likes_and_comments_count_once_per_source(db, graph):
    me, fan, other = await graph.users("me", "fan", "other")
    for _ in range(3):
        await graph.like(fan, await graph.post(me))
    post_by_other = await graph.post(other)
    await graph.comment(me, post_by_other)
    await graph.comment(me, post_by_other)
    await graph.comment(me, await graph.post(other))

    result = await suggest_friends(db, me.user_id, limit=5, page=1)

    # fan: 5, other: 3; each appears once
    assert ids(result) == [fan.user_id, other.user_id]


# ──────────────────────────── Exclusions ──────────────────────────────────

async def test_never_suggests_self_friends_or_pending_recipients(db, graph):
    me, friend, pending, incoming, stranger = await graph.users(
        "me", "friend", "pending", "incoming", "stranger"
    )
    await graph.befriend(me, friend)
    await graph.request(me, pending)
    await graph.request(incoming, me)
    # make every excluded user a strong candidate too
    my_post = await graph.post(me)
    await graph.like(friend, my_post)
    await graph.like(pending, my_post)
    await graph.befriend(pending, friend)

    result = await suggest_friends(db, me.user_id, limit=20, page=1)
    returned = set(ids(result))

    assert me.user_id not in returned
    assert friend.user_id not in returned
    assert pending.user_id not in returned
    # an incoming request does not hide the sender
    assert returned == {incoming.user_id, stranger.user_id}


async def test_no_user_appears_twice_across_scored_and_fallback(db, graph):
    me, friend, mutual, fan, *others = await graph.users(
        "me", "friend", "mutual", "fan", "o1", "o2", "o3"
    )
    await graph.befriend(me, friend)
    await graph.befriend(mutual, friend)
    await graph.like(fan, await graph.post(me))
    await graph.like(mutual, await graph.post(me))
    # give the scored users big friend counts so they top the fallback pool too
    for other in others:
        await graph.befriend(mutual, other)

    result = await suggest_friends(db, me.user_id, limit=10, page=1)

    assert len(ids(result)) == len(set(ids(result)))
    assert ids(result)[:2] == [mutual.user_id, fan.user_id]


# ──────────────────────────── Fallback & pagination ───────────────────────

@pytest.fixture
async def sparse_graph(graph):
    """Requester with two scored candidates and four popular strangers."""
    me, liker, commentee, h1, h2, h3, h4 = await graph.users(
        "me", "liker", "commentee", "h1", "h2", "h3", "h4"
    )
    await graph.like(liker, await graph.post(me))
    await graph.comment(me, await graph.post(commentee))
    # friend counts: h1=3, h2=2, h3=2, h4=1
    await graph.befriend(h1, h2)
    await graph.befriend(h1, h3)
    await graph.befriend(h1, h4)
    await graph.befriend(h2, h3)
    return {
        "me": me, "liker": liker, "commentee": commentee,
        "h1": h1, "h2": h2, "h3": h3, "h4": h4,
    }


async def test_short_page_is_backfilled_by_friend_count(db, sparse_graph):
    g = sparse_graph

    result = await suggest_friends(db, g["me"].user_id, limit=5, page=1)

    assert ids(result) == [
        g["liker"].user_id,
        g["commentee"].user_id,
        g["h1"].user_id,
        g["h2"].user_id,
        g["h3"].user_id,
    ]
    assert [s.friends_count for s in result] == [0, 0, 3, 2, 2]


async def test_fallback_continues_on_next_page(db, sparse_graph):
    g = sparse_graph

    result = await suggest_friends(db, g["me"].user_id, limit=5, page=2)

    assert ids(result) == [g["h4"].user_id]


@pytest.mark.parametrize("limit", [1, 2, 3, 4])
async def test_pages_concatenate_to_single_large_page(db, sparse_graph, limit):
    me = sparse_graph["me"].user_id
    everything = ids(await suggest_friends(db, me, limit=20, page=1))

    paged = []
    page = 1
    while True:
        chunk = ids(await suggest_friends(db, me, limit=limit, page=page))
        paged.extend(chunk)
        if len(chunk) < limit:
            break
        page += 1

    assert paged == everything
    assert len(everything) == 6


async def test_page_past_the_end_is_empty(db, sparse_graph):
    result = await suggest_friends(db, sparse_graph["me"].user_id, limit=5, page=4)
    assert result == []


async def test_limit_is_capped(db, graph):
    me, *_ = await graph.users(*[f"user{i}" for i in range(25)])

    result = await suggest_friends(db, me.user_id, limit=50, page=1)

    assert len(result) == 20


async def test_unknown_requester_is_not_found(db):
    with pytest.raises(NotFound):
        await suggest_friends(db, "00000000-0000-0000-0000-000000000000")


async def test_suggestions_are_read_only(db, graph):
    me, friend, mutual = await graph.users("me", "friend", "mutual")
    await graph.befriend(me, friend)
    await graph.befriend(mutual, friend)

    first = await suggest_friends(db, me.user_id)
    second = await suggest_friends(db, me.user_id)

    assert ids(first) == ids(second) == [mutual.user_id]
    assert not db.new and not db.dirty and not db.deleted
