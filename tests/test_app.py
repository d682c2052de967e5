"""
App-level behaviour: health, metrics, rate limiting and the error envelope.
"""
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from social_api.clients.redis_client import hit_rate_window
from social_api.config import settings
from social_api.database import get_db
from social_api.main import app
from social_api.models import FriendRequest
from social_api.routers import users as users_router


async def test_health(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": settings.service_name}


async def test_metrics_exposes_suggestion_counters(client, db, graph, headers_for):
    me = await graph.user("me")
    await db.commit()
    await client.get("/users/suggestions", headers=headers_for(me))

    resp = await client.get("/metrics/")

    assert resp.status_code == 200
    assert "friend_suggestion_latency_seconds" in resp.text
    assert "friend_transitions_total" in resp.text


async def test_rate_window_counts_per_client_and_window(fake_redis):
    assert await hit_rate_window("1.2.3.4", 60, now=0) == 1
    assert await hit_rate_window("1.2.3.4", 60, now=59) == 2
    assert await hit_rate_window("5.6.7.8", 60, now=59) == 1
    # next window starts from scratch
    assert await hit_rate_window("1.2.3.4", 60, now=60) == 1
    assert 0 < await fake_redis.ttl("ratelimit:1.2.3.4:1") <= 60


async def test_requests_over_the_limit_get_429(client, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_requests", 2)
    payload = {"email": "nobody@example.com", "password": "s3cret!pw"}

    statuses = [(await client.post("/auth/login", json=payload)).status_code for _ in range(3)]

    assert statuses == [401, 401, 429]
    last = await client.post("/auth/login", json=payload)
    assert last.json() == {"detail": "Too many requests, please try again later"}


async def test_health_is_not_rate_limited(client, monkeypatch):
    monkeypatch.setattr(settings, "rate_limit_requests", 1)

    statuses = [(await client.get("/health")).status_code for _ in range(3)]

    assert statuses == [200, 200, 200]


async def test_unexpected_error_is_reported_as_500(
    override_db, fake_redis, db, graph, headers_for, monkeypatch
):
    async def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(users_router, "suggest_friends", broken)
    me = await graph.user("me")
    await db.commit()

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.get("/users/suggestions", headers=headers_for(me))

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}


async def test_failed_commit_is_reported_as_500(
    override_db, fake_redis, session_factory, db, graph, headers_for
):
    alice, bob = await graph.users("alice", "bob")
    await db.commit()

    async def _db_with_failing_commit():
        async with session_factory() as session:
            async def fail_commit():
                raise RuntimeError("commit failed")

            session.commit = fail_commit
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _db_with_failing_commit

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        resp = await ac.post(
            "/users/send-request", json={"userId": bob.user_id}, headers=headers_for(alice)
        )

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
    persisted = await db.execute(select(func.count()).select_from(FriendRequest))
    assert persisted.scalar_one() == 0
