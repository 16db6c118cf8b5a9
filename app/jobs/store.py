"""Job store with a durable backend and an in-process fallback.

The durable backend (Supabase) is optional. When it is unconfigured or a
call against it fails, the store logs the failure and carries on against an
in-memory map. That map lives for the process lifetime only and is not
shared between processes, so horizontally scaled deployments must not rely
on it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Dict, Optional

from app.jobs.errors import NotFound, StoreError
from app.jobs.models import Job, merge_job

logger = logging.getLogger(__name__)


class JobBackend(ABC):
    """Abstract key-value persistence for job records."""

    name: str = "backend"

    @abstractmethod
    async def insert(self, job: Job) -> None:
        ...

    @abstractmethod
    async def fetch(self, job_id: str) -> Optional[Job]:
        """Return the stored job or None when the id is unknown."""
        ...

    @abstractmethod
    async def save(self, job: Job) -> None:
        ...


class InMemoryJobBackend(JobBackend):
    name = "memory"

    def __init__(self):
        self._jobs: Dict[str, Job] = {}

    async def insert(self, job: Job) -> None:
        self._jobs[job.job_id] = job

    async def fetch(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    async def save(self, job: Job) -> None:
        self._jobs[job.job_id] = job

    def __len__(self) -> int:
        return len(self._jobs)


class JobStore:
    """CRUD for job records. Durable backend first, in-memory fallback second."""

    def __init__(
        self,
        durable: Optional[JobBackend] = None,
        fallback: Optional[InMemoryJobBackend] = None,
    ):
        self._durable = durable
        self._fallback = fallback if fallback is not None else InMemoryJobBackend()
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def backend_name(self) -> str:
        return self._durable.name if self._durable else self._fallback.name

    async def create(self, topic: str) -> str:
        """Insert a new pending job and return its id. Never fails silently."""
        job = Job(topic=topic)
        if self._durable is not None:
            try:
                await self._durable.insert(job)
                return job.job_id
            except StoreError as e:
                logger.warning(
                    "Durable insert failed for job %s, using in-memory store: %s",
                    job.job_id, e,
                )
        await self._fallback.insert(job)
        return job.job_id

    async def get(self, job_id: str) -> Job:
        job, _ = await self._load(job_id)
        if job is None:
            raise NotFound(job_id)
        return job

    async def update(self, job_id: str, fields: Dict[str, Any]) -> Job:
        """Merge ``fields`` into the job and persist it.

        Unknown ids get a best-effort synthetic record rather than an
        exception, since pipeline updates are fire-and-forget.
        """
        return await self._mutate(job_id, lambda job: merge_job(job, fields))

    async def record_failure(
        self,
        job_id: str,
        stage: str,
        message: str,
        current_stage: Optional[str] = None,
    ) -> Job:
        """Append a stage error and bump that stage's attempt counter."""

        def apply(job: Job) -> Job:
            fields: Dict[str, Any] = {
                "errors": [{"stage": stage, "error": message}],
                "retry_count": {stage: job.retry_count.get(stage, 0) + 1},
            }
            if current_stage:
                fields["current_stage"] = current_stage
            return merge_job(job, fields)

        return await self._mutate(job_id, apply)

    async def _mutate(self, job_id: str, apply: Callable[[Job], Job]) -> Job:
        async with self._locks[job_id]:
            job, backend = await self._load(job_id)
            if job is None:
                logger.warning("Update for unknown job %s, recording synthetic entry", job_id)
                job = Job(job_id=job_id, topic="")
                backend = self._fallback
            updated = apply(job)
            if updated is not job:
                await self._persist(updated, backend)
        # Terminal jobs never change again
        if updated.status.is_terminal:
            self._locks.pop(job_id, None)
        return updated

    async def _load(self, job_id: str):
        """Find a job and the backend holding it. Returns (None, None) if unknown.

        The in-memory copy wins: a job only lands there after a durable write
        failed, so the durable row may be stale.
        """
        job = await self._fallback.fetch(job_id)
        if job is not None:
            return job, self._fallback
        if self._durable is not None:
            try:
                job = await self._durable.fetch(job_id)
                if job is not None:
                    return job, self._durable
            except StoreError as e:
                logger.warning("Durable fetch failed for job %s: %s", job_id, e)
        return None, None

    async def _persist(self, job: Job, backend: JobBackend) -> None:
        if backend is self._fallback:
            await self._fallback.save(job)
            return
        try:
            await backend.save(job)
        except StoreError as e:
            logger.warning(
                "Durable save failed for job %s, keeping in-memory copy: %s",
                job.job_id, e,
            )
            await self._fallback.save(job)
