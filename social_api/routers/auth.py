"""
Authentication endpoints:
  POST /auth/register — create an account and return a bearer token
  POST /auth/login    — exchange email + password for a bearer token
  GET  /auth/me       — the caller's profile
"""
import logging

from fastapi import APIRouter, Depends, status
from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from social_api.database import get_db
from social_api.errors import BadRequest, Unauthorized
from social_api.models import User
from social_api.schemas import AuthResponse, LoginRequest, RegisterRequest, UserSummary
from social_api.security import (
    create_access_token,
    get_current_user_id,
    hash_password,
    verify_password,
)
from social_api.services.graph import get_summary, to_summary

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db, scope="function")):
    with tracer.start_as_current_span("register_user"):
        email = body.email.lower()
        if (await db.execute(select(User).where(User.email == email))).scalar_one_or_none():
            raise BadRequest("Email already exists")
        if (
            await db.execute(select(User).where(User.username == body.username))
        ).scalar_one_or_none():
            raise BadRequest("Username already exists")

        user = User(
            username=body.username,
            email=email,
            password_hash=hash_password(body.password),
        )
        db.add(user)
        await db.flush()  # materialise user_id + timestamps

        logger.info("Registered user %s (id=%s)", user.username, user.user_id)
        return AuthResponse(token=create_access_token(user.user_id), user=to_summary(user, 0))


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db, scope="function")):
    with tracer.start_as_current_span("login_user"):
        user = (
            await db.execute(select(User).where(User.email == body.email.lower()))
        ).scalar_one_or_none()
        if user is None or not verify_password(body.password, user.password_hash):
            raise Unauthorized("Invalid credentials")

        summary = await get_summary(db, user.user_id)
        return AuthResponse(token=create_access_token(user.user_id), user=summary)


@router.get("/me", response_model=UserSummary)
async def me(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db, scope="function"),
):
    return await get_summary(db, current_user_id)
