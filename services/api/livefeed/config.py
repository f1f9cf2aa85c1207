"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.

`database_url` and `jwt_secret` have no usable defaults: the app refuses to
start without them (see `Settings.require_runtime`).
"""
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Storage ────────────────────────────────────────────────────────────
    # e.g. mysql+aiomysql://root:@tidb:4000/live_feed
    #      sqlite+aiosqlite:///./live_feed.db
    database_url: Optional[str] = None
    db_pool_size: int = 20
    db_max_overflow: int = 10

    # ── Auth ───────────────────────────────────────────────────────────────
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 3600        # fixed 1h expiry, no refresh
    bcrypt_rounds: int = 12

    # ── Feed ───────────────────────────────────────────────────────────────
    posts_per_page: int = 2
    # GET /posts is readable without a token unless this is switched off
    public_post_listing: bool = True

    # ── HTTP ───────────────────────────────────────────────────────────────
    client_host: str = "*"               # allowed CORS origin
    port: int = 8080

    # ── Images ─────────────────────────────────────────────────────────────
    image_storage: Literal["local", "minio"] = "local"
    images_dir: str = "images"

    # MinIO (S3-compatible), used when image_storage == "minio"
    minio_endpoint: str = "minio:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_bucket: str = "images"
    minio_use_ssl: bool = False

    # ── Kafka (optional post-event relay) ──────────────────────────────────
    kafka_enabled: bool = False
    kafka_bootstrap_servers: str = "kafka:9092"
    kafka_topic_post_events: str = "post-events"

    # ── Observability ──────────────────────────────────────────────────────
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "live-feed-api"
    environment: str = "development"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def require_runtime(self) -> None:
        """Fail fast when a setting needed to serve requests is missing."""
        missing = [
            name
            for name in ("database_url", "jwt_secret")
            if not getattr(self, name)
        ]
        if missing:
            raise RuntimeError(
                "Missing required configuration: " + ", ".join(sorted(missing))
            )


settings = Settings()
