"""Transcode job queue.

Celery carries the work; a Redis hash per job carries the state the status
endpoint reports. Completed records expire after a short TTL, failed
records are kept until removed so the failure reason stays inspectable.
"""

import json
import logging
import uuid
from typing import Optional

from celery import Celery
import redis.asyncio as redis
from redis.exceptions import WatchError

from video_processor.core.celery_app import create_celery_app
from video_processor.core.config import Settings, settings as default_settings
from video_processor.core.logging import log_info
from video_processor.core.metrics import TRANSCODE_JOBS_ENQUEUED_TOTAL
from video_processor.core.redis import create_redis
from video_processor.modules.transcoding.models import JobState, TERMINAL_JOB_STATES
from video_processor.modules.transcoding.options import VideoProcessorOptions
from video_processor.modules.transcoding.schemas import JobRecord, VideoJob, utc_now_iso

logger = logging.getLogger(__name__)

TRANSCODE_TASK_NAME = "video_processor.transcode"


class RedisJobStore:
    """Job records stored as Redis hashes under ``{queue}:job:{id}``."""

    def __init__(self, client: redis.Redis, queue_name: str):
        self.client = client
        self.queue_name = queue_name

    def key(self, job_id: str) -> str:
        return f"{self.queue_name}:job:{job_id}"

    @staticmethod
    def _serialize(record: JobRecord) -> dict[str, str]:
        data = {
            "id": record.id,
            "name": record.name,
            "state": record.state.value,
            "progress": str(record.progress),
            "data": json.dumps(record.data),
            "createdAt": record.created_at,
        }
        if record.failed_reason is not None:
            data["failedReason"] = record.failed_reason
        if record.finished_at is not None:
            data["finishedAt"] = record.finished_at
        return data

    @staticmethod
    def _deserialize(raw: dict[str, str]) -> JobRecord:
        return JobRecord(
            id=raw["id"],
            name=raw.get("name", ""),
            state=JobState(raw["state"]),
            progress=float(raw.get("progress") or 0),
            data=json.loads(raw.get("data") or "{}"),
            failed_reason=raw.get("failedReason"),
            created_at=raw.get("createdAt") or utc_now_iso(),
            finished_at=raw.get("finishedAt"),
        )

    async def save(self, record: JobRecord) -> None:
        key = self.key(record.id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(key)
            pipe.hset(key, mapping=self._serialize(record))
            await pipe.execute()

    async def claim(self, record: JobRecord) -> bool:
        """Save ``record`` unless a non-terminal record holds its id.

        Runs as a WATCH/MULTI transaction, so of two concurrent claims
        for one id at most one succeeds.
        """
        key = self.key(record.id)
        async with self.client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                state = await pipe.hget(key, "state")
                if state and JobState(state) not in TERMINAL_JOB_STATES:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                pipe.hset(key, mapping=self._serialize(record))
                await pipe.execute()
            except WatchError:
                return False
        return True

    async def get(self, job_id: str) -> Optional[JobRecord]:
        raw = await self.client.hgetall(self.key(job_id))
        if not raw:
            return None
        return self._deserialize(raw)

    async def update(self, job_id: str, fields: dict[str, str], ttl: Optional[int] = None) -> bool:
        """Update fields of an existing record.

        Returns:
            False if the record no longer exists
        """
        key = self.key(job_id)
        if not await self.client.exists(key):
            return False

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=fields)
            if ttl is not None:
                pipe.expire(key, ttl)
            else:
                pipe.persist(key)
            await pipe.execute()
        return True

    async def delete(self, job_id: str) -> bool:
        return bool(await self.client.delete(self.key(job_id)))

    async def close(self) -> None:
        await self.client.aclose()


class JobQueue:
    """Named transcode queue with retrievable job state.

    Args:
        celery_app: Celery app bound to the broker
        store: Job record store
        queue_name: Celery queue the transcode task is routed to
        completed_ttl: Seconds a completed record stays readable
    """

    def __init__(
        self,
        celery_app: Celery,
        store: RedisJobStore,
        queue_name: str,
        completed_ttl: int = 60,
    ):
        self.celery_app = celery_app
        self.store = store
        self.queue_name = queue_name
        self.completed_ttl = completed_ttl

    async def enqueue(
        self,
        job: VideoJob,
        dedupe_key: Optional[str] = None,
        source: str = "api",
    ) -> str:
        """Record a queued job and hand it to Celery.

        With ``dedupe_key`` the job id is the key; while a non-terminal job
        with that id exists, no second task is sent and its id is returned.

        Returns:
            The job id
        """
        job_id = dedupe_key or str(uuid.uuid4())
        payload = job.to_payload()
        record = JobRecord(id=job_id, name=job.preset, state=JobState.QUEUED, data=payload)

        if dedupe_key:
            if not await self.store.claim(record):
                logger.info("Job already pending, skipping enqueue", extra={"job_id": job_id})
                return job_id
        else:
            await self.store.save(record)

        self.celery_app.send_task(
            TRANSCODE_TASK_NAME,
            args=[payload],
            task_id=job_id,
            queue=self.queue_name,
        )

        TRANSCODE_JOBS_ENQUEUED_TOTAL.labels(preset=job.preset, source=source).inc()
        log_info(
            logger,
            "Transcode job enqueued",
            job_id=job_id,
            collection=job.collection,
            document_id=job.document_id,
            preset=job.preset,
        )
        return job_id

    async def get_status(self, job_id: str) -> Optional[JobRecord]:
        return await self.store.get(job_id)

    async def mark_active(self, job_id: str) -> bool:
        return await self.store.update(job_id, {"state": JobState.ACTIVE.value})

    async def update_progress(self, job_id: str, progress: float) -> bool:
        return await self.store.update(job_id, {"progress": str(progress)})

    async def mark_completed(self, job_id: str) -> bool:
        return await self.store.update(
            job_id,
            {
                "state": JobState.COMPLETED.value,
                "progress": "100",
                "finishedAt": utc_now_iso(),
            },
            ttl=self.completed_ttl,
        )

    async def mark_failed(self, job_id: str, reason: str) -> bool:
        return await self.store.update(
            job_id,
            {
                "state": JobState.FAILED.value,
                "failedReason": reason,
                "finishedAt": utc_now_iso(),
            },
        )

    async def remove(self, job_id: str) -> bool:
        """Clear a job record, e.g. a retained failure."""
        return await self.store.delete(job_id)

    async def close(self) -> None:
        await self.store.close()


def create_job_queue(
    options: VideoProcessorOptions,
    settings: Optional[Settings] = None,
    celery_app: Optional[Celery] = None,
) -> JobQueue:
    """Build a JobQueue from options, falling back to settings.

    The caller owns the queue and must ``await queue.close()``.
    """
    settings = settings or default_settings
    queue_name = options.queue.name or settings.QUEUE_NAME
    redis_url = options.queue.redis_url or settings.REDIS_URL
    celery_app = celery_app or create_celery_app(
        settings,
        queue_name=queue_name,
        redis_url=redis_url,
        concurrency=options.queue.concurrency,
    )
    return JobQueue(
        celery_app,
        RedisJobStore(create_redis(redis_url), queue_name),
        queue_name,
        completed_ttl=settings.COMPLETED_JOB_TTL_SECONDS,
    )
