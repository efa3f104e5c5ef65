"""Video Processor.

Transcodes uploaded videos into named presets through a Celery worker and
exposes a small control API for queueing jobs and managing variants.

Modules:
    - core: Configuration, logging, metrics, Redis and Celery setup
    - modules.transcoding: Job queue, worker, filesystem guard and API
"""

__version__ = "0.1.0"
