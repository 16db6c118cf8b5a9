"""Collaborator interfaces and data types for the generation pipeline.

The orchestrator only ever talks to these abstractions. Concrete providers
(LLM script writers, TTS voices, animation renderers, video compositors)
implement them; ``app.collaborators.simulated`` ships synthetic versions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CollaboratorError(Exception):
    """Base class for failures raised by external collaborators."""


class GenerationError(CollaboratorError):
    pass


class SynthesisError(CollaboratorError):
    pass


class RenderError(CollaboratorError):
    pass


class CompositionError(CollaboratorError):
    pass


class ScriptSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    content: str
    visual_description: str = Field(alias="visualDescription")
    animation_notes: Optional[str] = Field(default=None, alias="animationNotes")
    timestamp: Optional[str] = None


class VideoScript(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    introduction: str
    sections: List[ScriptSection]
    conclusion: str


class ScriptGenerator(ABC):

    @abstractmethod
    async def generate(self, topic: str, model: Optional[str] = None) -> VideoScript:
        """Write a sectioned script for ``topic``.

        ``model`` selects one of several backing strategies. Raises
        GenerationError on failure.
        """
        ...


class Narrator(ABC):

    @abstractmethod
    async def synthesize(self, text: str) -> str:
        """Voice ``text`` and return the audio URL. Raises SynthesisError.

        Callers cap the text length before calling.
        """
        ...


class AnimationRenderer(ABC):

    @abstractmethod
    async def render(self, section_description: str) -> str:
        """Render an animation for a section and return its URL. Raises RenderError."""
        ...


class Compositor(ABC):

    @abstractmethod
    async def compose(
        self,
        sections: List[ScriptSection],
        narration_urls: List[str],
        animation_urls: List[str],
    ) -> str:
        """Combine per-section media into one video. Raises CompositionError."""
        ...


class Storage(ABC):

    @abstractmethod
    async def upload(self, path: str, data: bytes) -> str:
        """Store ``data`` under ``path`` and return its public URL."""
        ...


@dataclass
class Collaborators:
    """The set of external services one pipeline run depends on."""
    script_generator: ScriptGenerator
    narrator: Narrator
    renderer: AnimationRenderer
    compositor: Compositor
