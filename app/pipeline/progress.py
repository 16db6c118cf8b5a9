"""Stage-weighted progress percentages and labels for polling clients."""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class StageBounds:
    before: int
    after: int
    running_label: str
    done_label: str
    title: str


@dataclass(frozen=True)
class Progress:
    progress: int
    label: str

    def as_fields(self) -> Dict[str, object]:
        return {"progress": self.progress, "current_stage": self.label}


# Ordered; bands must not overlap so the whole pipeline is monotonic.
# Narration and animation run concurrently and report into one shared band.
STAGE_BOUNDS: Dict[str, StageBounds] = {
    "script": StageBounds(10, 30, "Generating script", "Script generated", "Script generation"),
    "media": StageBounds(
        40,
        80,
        "Generating narration and animations",
        "Narration and animations generated",
        "Media generation",
    ),
    "compose": StageBounds(
        90, 100, "Composing final video", "Video generation complete", "Video composition"
    ),
}

# Per-section stages and their titles in logs and error records
SECTION_STAGE_TITLES: Dict[str, str] = {
    "narration": "Voice narration",
    "animation": "Animation generation",
}


class ProgressReporter:
    """Maps (stage, substep) to a progress percentage and label."""

    def __init__(self, bounds: Optional[Dict[str, StageBounds]] = None):
        self._bounds = dict(bounds if bounds is not None else STAGE_BOUNDS)
        floor = 0
        for name, b in self._bounds.items():
            if not 0 <= b.before < b.after <= 100:
                raise ValueError(f"Stage '{name}' needs 0 <= before < after <= 100")
            if b.before < floor:
                raise ValueError(f"Stage '{name}' overlaps the previous stage")
            floor = b.after

    def bounds(self, stage: str) -> StageBounds:
        return self._bounds[stage]

    def for_stage(
        self,
        stage: str,
        substep_index: Optional[int] = None,
        substep_count: Optional[int] = None,
    ) -> Progress:
        """Progress at the start of ``stage``, or part-way through a fan-out.

        With a substep count, progress interpolates linearly between the
        stage bounds; ``substep_index == substep_count`` means done.
        """
        b = self._bounds[stage]
        if substep_index is None or not substep_count:
            return Progress(b.before, b.running_label)

        index = min(max(substep_index, 0), substep_count)
        value = b.before + (b.after - b.before) * index // substep_count
        if index == substep_count:
            return Progress(value, b.done_label)
        return Progress(value, f"{b.running_label} ({index}/{substep_count})")

    def completed(self, stage: str) -> Progress:
        b = self._bounds[stage]
        return Progress(b.after, b.done_label)

    def failed_label(self, stage: str) -> str:
        return f"{self._bounds[stage].title} failed"


class FanOutProgress:
    """Completion counter shared by every section task reporting into one band."""

    def __init__(self, reporter: ProgressReporter, stage: str, total: int):
        self._reporter = reporter
        self._stage = stage
        self._total = total
        self._done = 0

    @property
    def done(self) -> int:
        return self._done

    def current(self) -> Progress:
        return self._reporter.for_stage(self._stage, self._done, self._total)

    def advance(self) -> Progress:
        """Count one finished section and return the progress after it."""
        self._done = min(self._done + 1, self._total)
        return self.current()
