"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Database (MySQL protocol) ──────────────────────────────────────────
    db_host: str = "mysql"
    db_port: int = 3306
    db_user: str = "root"
    db_password: str = ""
    db_name: str = "social_graph"
    # Full SQLAlchemy URL; takes precedence over the discrete fields above
    database_url_override: Optional[str] = None

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+aiomysql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379

    # ── Auth ───────────────────────────────────────────────────────────────
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7
    password_hash_rounds: int = 12

    # ── Friend suggestions ─────────────────────────────────────────────────
    suggestion_max_limit: int = 20       # bounds server load per page
    suggestion_weight_mutual: int = 10
    suggestion_weight_liker: int = 5
    suggestion_weight_commenter: int = 3

    # ── Paginated lists & post feed ────────────────────────────────────────
    page_max_limit: int = 20
    feed_fallback_authors: int = 20      # most-connected users used to backfill

    # ── Rate limiting ──────────────────────────────────────────────────────
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60

    # ── HTTP ───────────────────────────────────────────────────────────────
    cors_origins: list[str] = ["*"]

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "social-graph-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
