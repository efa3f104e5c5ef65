"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
Every value is optional and falls back to a documented default.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Video Processor"
    VERSION: str = "0.1.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # CORS
    CORS_ORIGINS: list[str] = []

    # Queue / broker
    QUEUE_NAME: str = "video-transcode"
    REDIS_URL: str = "redis://localhost:6379/0"
    WORKER_CONCURRENCY: int = Field(default=1, ge=1)
    COMPLETED_JOB_TTL_SECONDS: int = 60
    TASK_TIME_LIMIT: int = 3600

    # Filesystem roots
    STATIC_DIR: Optional[str] = None
    UPLOADS_DIR: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("UPLOADS_DIR", "PAYLOAD_UPLOADS_DIR"),
    )

    # External tools
    FFMPEG_BIN: str = "ffmpeg"
    FFPROBE_BIN: str = "ffprobe"
    DEFAULT_CRF: int = 24

    # Document store REST API (worker side)
    DOCUMENT_API_URL: Optional[str] = None
    DOCUMENT_API_TOKEN: Optional[str] = None
    DOCUMENT_API_TIMEOUT_SECONDS: float = 30.0

    # Worker /metrics listener; unset disables it
    WORKER_METRICS_PORT: Optional[int] = Field(default=None, ge=1, le=65535)

    # Import path of the VideoProcessorOptions object used by the worker
    VIDEO_WORKER_CONFIG: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VIDEO_WORKER_CONFIG", "PAYLOAD_VIDEO_WORKER_CONFIG"),
    )

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"
        populate_by_name = True


settings = Settings()
