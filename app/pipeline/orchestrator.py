"""Video generation pipeline orchestrator.

Drives one job through its stages and into a terminal state exactly once:

1. Script (fatal on failure, retried across a primary -> secondary model chain)
2. Narration and animation per script section, concurrently (each section
   degrades to a fallback URL instead of failing the job)
3. Composition of the final video (fatal on failure)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_exponential

from app.collaborators.base import Collaborators, GenerationError, ScriptSection, VideoScript
from app.config import Settings, settings as default_settings
from app.core.logging import set_job_id
from app.jobs.errors import PipelineCancelled
from app.jobs.models import Job, JobStatus, section_key
from app.jobs.store import JobStore
from app.pipeline.progress import SECTION_STAGE_TITLES, FanOutProgress, ProgressReporter
from app.pipeline.stage_runner import StageResult, StageRunner

logger = logging.getLogger(__name__)

SectionCall = Callable[[int, ScriptSection], Awaitable[str]]


def script_model_schedule(models: Sequence[Optional[str]], max_attempts: int) -> List[Optional[str]]:
    """Model to use for each script attempt.

    The primary model gets every attempt except one per fallback model,
    which run last in order. 3 attempts over [a, b] gives [a, a, b].
    """
    models = list(models) or [None]
    primary_attempts = max(1, max_attempts - (len(models) - 1))
    schedule = [models[0]] * primary_attempts + models[1:]
    return schedule[:max_attempts]


def narration_text(script: VideoScript, index: int, max_chars: int) -> str:
    """Text voiced for one section, capped at ``max_chars``.

    The first section opens with the title and introduction and the last
    one closes with the conclusion, so N sections yield N narrations.
    """
    section = script.sections[index]
    parts = []
    if index == 0:
        parts += [f"{script.title}.", script.introduction]
    parts += [f"{section.title}.", section.content]
    if index == len(script.sections) - 1:
        parts.append(script.conclusion)
    text = " ".join(p.strip() for p in parts if p and p.strip())
    return text[:max_chars]


def animation_description(section: ScriptSection) -> str:
    if section.animation_notes:
        return f"{section.visual_description}\n\nAnimation notes: {section.animation_notes}"
    return section.visual_description


class PipelineOrchestrator:
    """Runs the fixed stage sequence for a job against a set of collaborators."""

    def __init__(
        self,
        store: JobStore,
        collaborators: Collaborators,
        config: Settings = default_settings,
        reporter: Optional[ProgressReporter] = None,
    ):
        self._store = store
        self._collab = collaborators
        self._config = config
        self._reporter = reporter or ProgressReporter()
        self._runner = StageRunner(store)
        self._active: Set[str] = set()
        self._cancel_requested: Set[str] = set()

    def request_cancel(self, job_id: str) -> None:
        """Stop scheduling new stages for ``job_id``. In-flight calls finish."""
        self._cancel_requested.add(job_id)

    def discard_cancel(self, job_id: str) -> None:
        self._cancel_requested.discard(job_id)

    def is_running(self, job_id: str) -> bool:
        return job_id in self._active

    async def run(self, job_id: str, topic: str) -> Job:
        """Execute the pipeline. A no-op for terminal or already-running jobs."""
        set_job_id(job_id)
        job = await self._store.get(job_id)
        if job.status.is_terminal:
            logger.info("Job %s is already %s, not re-running", job_id, job.status.value)
            self._cancel_requested.discard(job_id)
            return job
        if job_id in self._active:
            logger.warning("Job %s is already running in this process", job_id)
            return job

        self._active.add(job_id)
        try:
            await self._run_stages(job_id, topic)
        except PipelineCancelled:
            logger.info("Job %s cancelled, remaining stages skipped", job_id)
            await self._store.update(
                job_id, {"status": JobStatus.CANCELLED, "current_stage": "Cancelled"}
            )
        finally:
            self._active.discard(job_id)
            self._cancel_requested.discard(job_id)
        return await self._store.get(job_id)

    async def _run_stages(self, job_id: str, topic: str) -> None:
        logger.info("Starting pipeline for job %s: %r", job_id, topic)
        self._check_cancelled(job_id)

        script_result = await self._generate_script(job_id, topic)
        if not script_result.ok:
            await self._fail(job_id, "script", script_result.error)
            return
        script: VideoScript = script_result.value

        self._check_cancelled(job_id)
        media = FanOutProgress(self._reporter, "media", 2 * len(script.sections))
        narrations, animations = await asyncio.gather(
            self._narrate(job_id, script, media),
            self._animate(job_id, script, media),
        )

        self._check_cancelled(job_id)
        await self._compose(job_id, script, narrations, animations)

    # ------------------------------------------------------------------
    # Script
    # ------------------------------------------------------------------

    async def _generate_script(self, job_id: str, topic: str) -> StageResult:
        """Try the model schedule until one attempt succeeds or attempts run out."""
        schedule = iter(
            script_model_schedule(self._config.script_models, self._config.script_max_attempts)
        )

        async def attempt() -> StageResult:
            self._check_cancelled(job_id)
            model = next(schedule)
            logger.info("Generating script for job %s with %s", job_id, model)
            return await self._runner.run(
                job_id,
                "script",
                lambda: self._write_script(topic, model),
                before=self._reporter.for_stage("script"),
                after=self._reporter.completed("script"),
                label=self._reporter.bounds("script").title,
                timeout=self._config.script_timeout_seconds,
                result_fields=lambda s: {"script": s.model_dump(by_alias=True)},
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._config.script_max_attempts),
            wait=wait_exponential(multiplier=self._config.script_retry_wait_seconds, max=30),
            retry=retry_if_result(lambda result: not result.ok),
            retry_error_callback=lambda state: state.outcome.result(),
        )
        return await retrying(attempt)

    async def _write_script(self, topic: str, model: Optional[str]) -> VideoScript:
        raw: Any = await self._collab.script_generator.generate(topic, model=model)
        if not isinstance(raw, VideoScript):
            try:
                raw = VideoScript.model_validate(raw)
            except ValidationError as e:
                raise GenerationError(f"Malformed script: {e}") from e
        if not raw.sections:
            raise GenerationError("Script has no sections")
        return raw

    # ------------------------------------------------------------------
    # Section fan-out
    # ------------------------------------------------------------------

    async def _narrate(
        self, job_id: str, script: VideoScript, progress: FanOutProgress
    ) -> Dict[str, str]:
        narrator = self._collab.narrator
        limit = self._config.narration_max_chars
        return await self._fan_out(
            job_id,
            "narration",
            script,
            lambda index, _section: narrator.synthesize(narration_text(script, index, limit)),
            progress=progress,
            result_field="narrations",
            fallback_url=self._config.fallback_audio_url,
            timeout=self._config.narration_timeout_seconds,
        )

    async def _animate(
        self, job_id: str, script: VideoScript, progress: FanOutProgress
    ) -> Dict[str, str]:
        renderer = self._collab.renderer
        return await self._fan_out(
            job_id,
            "animation",
            script,
            lambda _index, section: renderer.render(animation_description(section)),
            progress=progress,
            result_field="animations",
            fallback_url=self._config.fallback_animation_url,
            timeout=self._config.animation_timeout_seconds,
        )

    async def _fan_out(
        self,
        job_id: str,
        stage: str,
        script: VideoScript,
        call: SectionCall,
        *,
        progress: FanOutProgress,
        result_field: str,
        fallback_url: str,
        timeout: float,
    ) -> Dict[str, str]:
        """Run ``call`` once per section and wait for every section to resolve.

        Each section ends with either the collaborator's URL or the fallback
        URL; results are written into a keyed map so concurrent sections do
        not overwrite each other. A section failure leaves current_stage alone
        since the job carries on with the fallback.
        """
        semaphore = asyncio.Semaphore(max(1, self._config.max_parallel_sections))
        title = SECTION_STAGE_TITLES[stage]

        async def one(index: int, section: ScriptSection):
            key = section_key(index)
            async with semaphore:
                if self.cancel_requested(job_id):
                    return key, None
                result = await self._runner.run(
                    job_id,
                    stage,
                    lambda: call(index, section),
                    before=progress.current(),
                    after=progress.advance,
                    label=None,
                    timeout=timeout,
                    result_fields=lambda url: {result_field: {key: url}},
                )
            if result.ok:
                return key, result.value

            logger.warning("%s for %s failed (%s), using fallback", title, key, result.error)
            await self._store.update(
                job_id, {result_field: {key: fallback_url}, **progress.advance().as_fields()}
            )
            return key, fallback_url

        pairs = await asyncio.gather(*(one(i, s) for i, s in enumerate(script.sections)))
        return {key: url for key, url in pairs if url is not None}

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    async def _compose(
        self,
        job_id: str,
        script: VideoScript,
        narrations: Dict[str, str],
        animations: Dict[str, str],
    ) -> None:
        keys = [section_key(i) for i in range(len(script.sections))]
        narration_urls = [narrations.get(k, self._config.fallback_audio_url) for k in keys]
        animation_urls = [animations.get(k, self._config.fallback_animation_url) for k in keys]
        compositor = self._collab.compositor

        result = await self._runner.run(
            job_id,
            "compose",
            lambda: compositor.compose(script.sections, narration_urls, animation_urls),
            before=self._reporter.for_stage("compose"),
            after=self._reporter.completed("compose"),
            label=self._reporter.bounds("compose").title,
            timeout=self._config.compose_timeout_seconds,
            result_fields=lambda url: {"video_url": url, "status": JobStatus.COMPLETED},
        )
        if not result.ok:
            await self._fail(job_id, "compose", result.error)
            return
        logger.info("Job %s completed: %s", job_id, result.value)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fail(self, job_id: str, stage: str, message: Optional[str]) -> None:
        label = self._reporter.failed_label(stage)
        logger.error("Job %s failed at %s: %s", job_id, stage, message)
        await self._store.update(
            job_id,
            {
                "status": JobStatus.FAILED,
                "current_stage": label,
                "error": f"{label}: {message}",
            },
        )

    def cancel_requested(self, job_id: str) -> bool:
        return job_id in self._cancel_requested

    def _check_cancelled(self, job_id: str) -> None:
        if self.cancel_requested(job_id):
            raise PipelineCancelled(job_id)
