"""In-process job controller built on asyncio tasks.

Each submitted job runs its pipeline as an independent detached task. The
submitting caller gets the job id back immediately and observes progress by
polling; nothing raised inside a pipeline ever reaches it.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from app.jobs.dispatcher import JobDispatcher
from app.jobs.errors import InvalidArgument
from app.jobs.models import Job, JobStatus
from app.jobs.store import JobStore
from app.pipeline.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


class JobController(JobDispatcher):
    """Local async controller. Runs many job pipelines concurrently."""

    def __init__(self, store: JobStore, orchestrator: PipelineOrchestrator):
        self._store = store
        self._orchestrator = orchestrator
        self._tasks: Dict[asyncio.Task, str] = {}
        self._running = False

    async def submit(self, topic: Any) -> str:
        if not isinstance(topic, str) or not topic.strip():
            raise InvalidArgument("Topic is required")
        topic = topic.strip()

        job_id = await self._store.create(topic)
        task = asyncio.create_task(self._run_detached(job_id, topic), name=f"pipeline-{job_id}")
        # Strong references; the loop only keeps weak ones
        self._tasks[task] = job_id
        task.add_done_callback(lambda t: self._tasks.pop(t, None))
        logger.info("Submitted job %s for topic %r", job_id, topic)
        return job_id

    async def get_status(self, job_id: str) -> Job:
        return await self._store.get(job_id)

    async def cancel(self, job_id: str) -> bool:
        job = await self._store.get(job_id)
        if job.status.is_terminal:
            return False
        self._orchestrator.request_cancel(job_id)
        job = await self._store.update(
            job_id,
            {"status": JobStatus.CANCELLED, "current_stage": "Cancelled by user"},
        )
        if job.status is not JobStatus.CANCELLED:
            # Finished before the cancel landed
            self._orchestrator.discard_cancel(job_id)
            return False
        logger.info("Cancel requested for job %s", job_id)
        return True

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False
        pending = dict(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            # Tasks cancelled before their first step never reach _run_detached
            for job_id in pending.values():
                await self._mark_interrupted(job_id)
            logger.info("Cancelled %d in-flight pipeline(s) on shutdown", len(pending))

    @property
    def running(self) -> bool:
        return self._running

    def active_jobs(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    async def _run_detached(self, job_id: str, topic: str) -> Optional[Job]:
        """Top-level guard: any pipeline crash ends in a terminal failed state."""
        try:
            return await self._orchestrator.run(job_id, topic)
        except asyncio.CancelledError:
            await self._mark_interrupted(job_id)
            raise
        except Exception as e:
            logger.exception("Pipeline for job %s crashed", job_id)
            await self._store.update(
                job_id,
                {
                    "status": JobStatus.FAILED,
                    "current_stage": "Workflow execution failed",
                    "error": f"{type(e).__name__}: {e}",
                },
            )
            return None

    async def _mark_interrupted(self, job_id: str) -> None:
        """No-op for jobs that already reached a terminal state."""
        await self._store.update(
            job_id,
            {
                "status": JobStatus.FAILED,
                "current_stage": "Workflow interrupted by shutdown",
                "error": "Service shut down before the job finished",
            },
        )
