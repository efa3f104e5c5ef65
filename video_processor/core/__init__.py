"""Core module for configuration and utilities."""

from video_processor.core.celery_app import create_celery_app
from video_processor.core.config import Settings, settings
from video_processor.core.redis import create_redis

__all__ = [
    "create_celery_app",
    "Settings",
    "settings",
    "create_redis",
]
