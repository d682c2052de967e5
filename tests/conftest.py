"""
Shared fixtures: a throwaway SQLite database per test, an in-process Redis,
and an httpx client talking to the ASGI app with get_db overridden.
"""
import os

os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timedelta  # noqa: E402

import fakeredis  # noqa: E402
from fakeredis import aioredis as fake_aioredis  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from social_api.clients import redis_client  # noqa: E402
from social_api.database import Base, get_db  # noqa: E402
from social_api.main import app  # noqa: E402
from social_api.models import (  # noqa: E402
    Comment,
    FriendRequest,
    Friendship,
    Like,
    Post,
    User,
)
from social_api.security import create_access_token  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


class GraphBuilder:
    """Seeds users and relations straight through the ORM.

    Users get strictly increasing creation times in the order they are made,
    so tie-breaking on creation time is predictable.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self._tick = 0

    def _next_time(self) -> datetime:
        self._tick += 1
        return BASE_TIME + timedelta(seconds=self._tick)

    async def user(self, username: str) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash="not-a-real-hash",
            created_at=self._next_time(),
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def users(self, *usernames: str) -> list[User]:
        return [await self.user(name) for name in usernames]

    async def befriend(self, first: User, second: User) -> None:
        user_a, user_b = Friendship.ordered_pair(first.user_id, second.user_id)
        self.db.add(Friendship(user_a_id=user_a, user_b_id=user_b))
        await self.db.flush()

    async def request(self, sender: User, recipient: User) -> None:
        self.db.add(FriendRequest(sender_id=sender.user_id, recipient_id=recipient.user_id))
        await self.db.flush()

    async def post(self, author: User, content: str = "hello world") -> Post:
        post = Post(author_id=author.user_id, content=content, created_at=self._next_time())
        self.db.add(post)
        await self.db.flush()
        return post

    async def like(self, user: User, post: Post) -> None:
        self.db.add(Like(user_id=user.user_id, post_id=post.post_id))
        await self.db.flush()

    async def comment(self, user: User, post: Post, content: str = "nice") -> Comment:
        comment = Comment(
            post_id=post.post_id,
            author_id=user.user_id,
            content=content,
            created_at=self._next_time(),
        )
        self.db.add(comment)
        await self.db.flush()
        return comment


def auth_headers(user_or_id) -> dict:
    user_id = user_or_id if isinstance(user_or_id, str) else user_or_id.user_id
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def graph(db):
    return GraphBuilder(db)


@pytest.fixture
async def fake_redis(monkeypatch):
    fake = fake_aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    monkeypatch.setattr(redis_client, "_redis", fake)
    yield fake
    await fake.aclose()


@pytest.fixture
def override_db(session_factory):
    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_db, fake_redis):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def headers_for():
    return auth_headers
