"""Uniform status bookkeeping around a single pipeline stage call."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from app.jobs.models import JobStatus
from app.jobs.store import JobStore
from app.pipeline.progress import Progress

logger = logging.getLogger(__name__)

StageFn = Callable[[], Awaitable[Any]]
ResultFields = Callable[[Any], Dict[str, Any]]


@dataclass
class StageResult:
    ok: bool
    value: Any = None
    error: Optional[str] = None


class StageRunner:
    """Runs one named stage, recording progress before and after it.

    The runner never decides whether a failure is fatal. It records the
    error and attempt count and hands a StageResult back to the caller.
    """

    def __init__(self, store: JobStore):
        self._store = store

    async def run(
        self,
        job_id: str,
        stage: str,
        stage_fn: StageFn,
        *,
        before: Progress,
        after: Union[Progress, Callable[[], Progress]],
        label: Optional[str],
        timeout: Optional[float] = None,
        result_fields: Optional[ResultFields] = None,
    ) -> StageResult:
        """Invoke ``stage_fn`` with bookkeeping.

        Args:
            before: progress/label written before the call.
            after: progress/label written on success. A callable is
                evaluated at completion time (fan-out sections use this to
                report how many siblings have finished).
            label: stage title used for the "<label> failed" marker. None
                records the failure without touching current_stage.
            timeout: seconds to wait; exceeding it counts as a failure.
            result_fields: maps the stage value to job fields to persist.
        """
        await self._store.update(
            job_id,
            {"status": JobStatus.IN_PROGRESS, **before.as_fields()},
        )

        started = time.monotonic()
        try:
            value = await asyncio.wait_for(stage_fn(), timeout=timeout)
        except asyncio.TimeoutError:
            message = f"{stage} timed out"
            if timeout is not None:
                message += f" after {timeout:g}s"
            return await self._failed(job_id, stage, label, message)
        except Exception as e:
            message = str(e) or type(e).__name__
            return await self._failed(job_id, stage, label, message)

        progress = after() if callable(after) else after
        fields = dict(result_fields(value)) if result_fields else {}
        await self._store.update(job_id, {**progress.as_fields(), **fields})
        logger.info(
            "Stage %s finished in %.2fs", stage, time.monotonic() - started
        )
        return StageResult(ok=True, value=value)

    async def _failed(
        self, job_id: str, stage: str, label: Optional[str], message: str
    ) -> StageResult:
        logger.warning("Stage %s failed: %s", stage, message)
        await self._store.record_failure(
            job_id, stage, message, current_stage=f"{label} failed" if label else None
        )
        return StageResult(ok=False, error=message)
