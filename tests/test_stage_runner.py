import asyncio

import pytest

from app.jobs.models import JobStatus
from app.pipeline.progress import Progress
from app.pipeline.stage_runner import StageRunner


@pytest.mark.asyncio
async def test_success_records_progress_and_result(store, backend):
    job_id = await store.create("t")
    runner = StageRunner(store)

    async def stage():
        return "https://cdn.test/video.mp4"

    result = await runner.run(
        job_id,
        "compose",
        stage,
        before=Progress(90, "Composing final video"),
        after=Progress(100, "Video generation complete"),
        label="Video composition",
        result_fields=lambda url: {"video_url": url},
    )

    assert result.ok and result.value == "https://cdn.test/video.mp4"
    job = await store.get(job_id)
    assert job.status is JobStatus.IN_PROGRESS
    assert job.progress == 100
    assert job.current_stage == "Video generation complete"
    assert job.video_url == "https://cdn.test/video.mp4"
    assert backend.progress_of(job_id) == [0, 90, 100]


@pytest.mark.asyncio
async def test_failure_is_recorded_but_not_terminal(store):
    job_id = await store.create("t")
    await store.update(job_id, {"script": {"title": "kept"}})
    runner = StageRunner(store)

    async def stage():
        raise RuntimeError("model overloaded")

    result = await runner.run(
        job_id,
        "script",
        stage,
        before=Progress(10, "Generating script"),
        after=Progress(30, "Script generated"),
        label="Script generation",
        result_fields=lambda s: {"script": s},
    )

    assert not result.ok
    assert result.error == "model overloaded"
    job = await store.get(job_id)
    assert job.status is JobStatus.IN_PROGRESS
    assert job.current_stage == "Script generation failed"
    assert job.retry_count == {"script": 1}
    assert job.errors[0].stage == "script"
    assert job.script == {"title": "kept"}
    assert job.progress == 10


@pytest.mark.asyncio
async def test_timeout_counts_as_failure(store):
    job_id = await store.create("t")
    runner = StageRunner(store)

    async def stage():
        await asyncio.sleep(1)

    result = await runner.run(
        job_id,
        "narration",
        stage,
        before=Progress(40, "Generating voice narration"),
        after=Progress(60, "Voice narration generated"),
        label="Voice narration",
        timeout=0.01,
    )

    assert not result.ok
    assert result.error == "narration timed out after 0.01s"
    assert (await store.get(job_id)).retry_count == {"narration": 1}


@pytest.mark.asyncio
async def test_after_callable_evaluated_on_completion(store):
    job_id = await store.create("t")
    runner = StageRunner(store)
    calls = []

    def after():
        calls.append("after")
        return Progress(55, "Generating voice narration (3/4)")

    async def stage():
        assert calls == []
        return "x.mp3"

    await runner.run(
        job_id,
        "narration",
        stage,
        before=Progress(40, "Generating voice narration"),
        after=after,
        label="Voice narration",
    )

    assert calls == ["after"]
    assert (await store.get(job_id)).progress == 55


@pytest.mark.asyncio
async def test_failure_without_label_keeps_current_stage(store):
    job_id = await store.create("t")
    runner = StageRunner(store)

    async def stage():
        raise RuntimeError("renderer crashed")

    result = await runner.run(
        job_id,
        "animation",
        stage,
        before=Progress(50, "Generating narration and animations (2/6)"),
        after=Progress(57, "Generating narration and animations (3/6)"),
        label=None,
    )

    assert not result.ok
    job = await store.get(job_id)
    assert job.current_stage == "Generating narration and animations (2/6)"
    assert job.retry_count == {"animation": 1}
