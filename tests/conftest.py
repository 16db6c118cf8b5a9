import asyncio
from typing import Iterable, List, Optional

import pytest

from app.collaborators.base import (
    AnimationRenderer,
    Collaborators,
    CompositionError,
    Compositor,
    GenerationError,
    Narrator,
    RenderError,
    ScriptGenerator,
    ScriptSection,
    SynthesisError,
    VideoScript,
)
from app.config import Settings
from app.jobs.models import Job
from app.jobs.store import InMemoryJobBackend, JobStore


def make_script(sections: int = 3) -> VideoScript:
    return VideoScript(
        title="Newton's First Law",
        introduction="Objects keep doing what they are doing.",
        sections=[
            ScriptSection(
                title=f"Section {i}",
                content=f"Content for section {i}.",
                visual_description=f"Visual {i}",
                animation_notes="Slow zoom" if i == 0 else None,
            )
            for i in range(sections)
        ],
        conclusion="Inertia is everywhere.",
    )


class FakeScriptGenerator(ScriptGenerator):
    def __init__(self, script=None, fail_models: Iterable[str] = (), always_fail=False, gate=None):
        self.script = script if script is not None else make_script()
        self.fail_models = set(fail_models)
        self.always_fail = always_fail
        self.gate: Optional[asyncio.Event] = gate
        self.calls: List[Optional[str]] = []

    async def generate(self, topic, model=None):
        self.calls.append(model)
        if self.gate is not None:
            await self.gate.wait()
        if self.always_fail or model in self.fail_models:
            raise GenerationError(f"{model} is down")
        return self.script


class FakeNarrator(Narrator):
    def __init__(self, fail_on: Iterable[str] = (), delay: float = 0.0, gate=None):
        self.fail_on = list(fail_on)
        self.delay = delay
        self.gate: Optional[asyncio.Event] = gate
        self.started = asyncio.Event()
        self.texts: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def synthesize(self, text):
        self.texts.append(text)
        self.started.set()
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delay)
            if any(marker in text for marker in self.fail_on):
                raise SynthesisError("voice quota exceeded")
            return f"https://cdn.test/audio/{len(self.texts)}.mp3"
        finally:
            self.in_flight -= 1


class FakeRenderer(AnimationRenderer):
    def __init__(self, fail_on: Iterable[str] = ()):
        self.fail_on = list(fail_on)
        self.descriptions: List[str] = []

    async def render(self, section_description):
        self.descriptions.append(section_description)
        if any(marker in section_description for marker in self.fail_on):
            raise RenderError("renderer crashed")
        return f"https://cdn.test/animations/{len(self.descriptions)}.mp4"


class FakeCompositor(Compositor):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def compose(self, sections, narration_urls, animation_urls):
        self.calls.append((list(sections), list(narration_urls), list(animation_urls)))
        if self.fail:
            raise CompositionError("ffmpeg exited with status 1")
        return "https://cdn.test/video/output.mp4"


class RecordingBackend(InMemoryJobBackend):
    """In-memory backend that keeps every saved version of every job."""

    def __init__(self):
        super().__init__()
        self.history: List[Job] = []

    async def insert(self, job):
        self.history.append(job)
        await super().insert(job)

    async def save(self, job):
        self.history.append(job)
        await super().save(job)

    def progress_of(self, job_id) -> List[int]:
        return [job.progress for job in self.history if job.job_id == job_id]


async def wait_for_terminal(store: JobStore, job_id: str, timeout: float = 5.0) -> Job:
    async def poll():
        while True:
            job = await store.get(job_id)
            if job.status.is_terminal:
                return job
            await asyncio.sleep(0.01)

    return await asyncio.wait_for(poll(), timeout)


@pytest.fixture
def test_settings():
    return Settings(
        supabase_url="",
        supabase_service_role_key="",
        script_models=["gemini-2.5-flash", "gemini-2.0-flash"],
        script_max_attempts=3,
        script_retry_wait_seconds=0,
        script_timeout_seconds=2,
        narration_timeout_seconds=2,
        animation_timeout_seconds=2,
        compose_timeout_seconds=2,
        simulated_delay_seconds=0,
    )


@pytest.fixture
def backend():
    return RecordingBackend()


@pytest.fixture
def store(backend):
    return JobStore(fallback=backend)


@pytest.fixture
def fakes():
    return Collaborators(
        script_generator=FakeScriptGenerator(),
        narrator=FakeNarrator(),
        renderer=FakeRenderer(),
        compositor=FakeCompositor(),
    )
