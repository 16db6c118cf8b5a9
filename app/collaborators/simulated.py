"""Simulated collaborators with synthetic delays.

Used for local development and demos when no AI provider is wired in. They
honour the same interfaces and error types as real providers, so the
orchestrator runs the exact same code path against them.
"""

import asyncio
import hashlib
import json
from typing import Iterable, List, Optional

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
    Storage,
    SynthesisError,
    VideoScript,
)


def _digest(*parts: str) -> str:
    h = hashlib.sha1()
    for part in parts:
        h.update(part.encode("utf-8"))
    return h.hexdigest()[:16]


class SimulatedScriptGenerator(ScriptGenerator):
    """Builds a three-section script from the topic text.

    Models listed in ``failing_models`` raise GenerationError, which lets a
    deployment exercise the primary -> secondary fallback chain.
    """

    def __init__(self, delay: float = 0.5, failing_models: Iterable[str] = ()):
        self._delay = delay
        self._failing_models = set(failing_models)

    async def generate(self, topic: str, model: Optional[str] = None) -> VideoScript:
        await asyncio.sleep(self._delay)
        if model in self._failing_models:
            raise GenerationError(f"Model {model} unavailable")
        return VideoScript(
            title=f"Understanding {topic}",
            introduction=f"In this video we explore {topic} step by step.",
            sections=[
                ScriptSection(
                    title="Key Concepts",
                    content=f"The core ideas behind {topic}.",
                    visual_description=f"Diagram introducing the main terms of {topic}",
                ),
                ScriptSection(
                    title="Worked Example",
                    content=f"A concrete example applying {topic}.",
                    visual_description="Step-by-step animated walkthrough",
                    animation_notes="Highlight each step as it is narrated",
                ),
                ScriptSection(
                    title="Common Mistakes",
                    content=f"Misconceptions people have about {topic}.",
                    visual_description="Side-by-side comparison of right and wrong reasoning",
                ),
            ],
            conclusion=f"That wraps up our look at {topic}.",
        )


class SimulatedNarrator(Narrator):

    def __init__(self, storage: Storage, delay: float = 0.5):
        self._storage = storage
        self._delay = delay

    async def synthesize(self, text: str) -> str:
        if not text.strip():
            raise SynthesisError("Nothing to narrate")
        await asyncio.sleep(self._delay)
        return await self._storage.upload(
            f"audio/audio_{_digest(text)}.mp3", text.encode("utf-8")
        )


class SimulatedAnimationRenderer(AnimationRenderer):

    def __init__(self, storage: Storage, delay: float = 0.5):
        self._storage = storage
        self._delay = delay

    async def render(self, section_description: str) -> str:
        if not section_description.strip():
            raise RenderError("Empty section description")
        await asyncio.sleep(self._delay)
        return await self._storage.upload(
            f"animations/animation_{_digest(section_description)}.mp4",
            section_description.encode("utf-8"),
        )


class SimulatedCompositor(Compositor):
    """Writes a JSON edit list in place of an actual render."""

    def __init__(self, storage: Storage, delay: float = 0.5):
        self._storage = storage
        self._delay = delay

    async def compose(
        self,
        sections: List[ScriptSection],
        narration_urls: List[str],
        animation_urls: List[str],
    ) -> str:
        if not (len(sections) == len(narration_urls) == len(animation_urls)):
            raise CompositionError(
                f"Mismatch: {len(sections)} sections, {len(narration_urls)} "
                f"narrations, {len(animation_urls)} animations"
            )
        await asyncio.sleep(self._delay)
        timeline = [
            {"title": s.title, "narration": n, "animation": a}
            for s, n, a in zip(sections, narration_urls, animation_urls)
        ]
        payload = json.dumps({"timeline": timeline}).encode("utf-8")
        return await self._storage.upload(
            f"videos/video_{_digest(*narration_urls, *animation_urls)}.mp4", payload
        )


def build_simulated_collaborators(
    storage: Storage,
    delay: float = 0.5,
    failing_models: Iterable[str] = (),
) -> Collaborators:
    return Collaborators(
        script_generator=SimulatedScriptGenerator(delay, failing_models),
        narrator=SimulatedNarrator(storage, delay),
        renderer=SimulatedAnimationRenderer(storage, delay),
        compositor=SimulatedCompositor(storage, delay),
    )
