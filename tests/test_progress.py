import pytest

from app.pipeline.progress import (
    STAGE_BOUNDS,
    FanOutProgress,
    Progress,
    ProgressReporter,
    StageBounds,
)


@pytest.fixture
def reporter():
    return ProgressReporter()


def test_stage_start(reporter):
    assert reporter.for_stage("script") == Progress(10, "Generating script")
    assert reporter.completed("script") == Progress(30, "Script generated")


def test_fan_out_interpolates(reporter):
    assert reporter.for_stage("media", 0, 6).progress == 40
    assert reporter.for_stage("media", 3, 6) == Progress(60, "Generating narration and animations (3/6)")
    assert reporter.for_stage("media", 6, 6) == Progress(80, "Narration and animations generated")


def test_substep_index_is_clamped(reporter):
    assert reporter.for_stage("media", 9, 3).progress == 80
    assert reporter.for_stage("media", -2, 3).progress == 40


def test_shared_counter_spans_both_fan_outs(reporter):
    counter = FanOutProgress(reporter, "media", 4)
    assert counter.current() == Progress(40, "Generating narration and animations (0/4)")
    seen = [counter.advance().progress for _ in range(5)]
    assert seen == [50, 60, 70, 80, 80]
    assert counter.done == 4
    assert counter.current().label == "Narration and animations generated"


def test_zero_count_means_stage_start(reporter):
    assert reporter.for_stage("compose", 0, 0) == reporter.for_stage("compose")


def test_whole_pipeline_is_monotonic(reporter):
    values = []
    for stage in STAGE_BOUNDS:
        values += [reporter.for_stage(stage, i, 7).progress for i in range(8)]
    assert values == sorted(values)
    assert values[-1] == 100


def test_failed_label(reporter):
    assert reporter.failed_label("compose") == "Video composition failed"


def test_unknown_stage(reporter):
    with pytest.raises(KeyError):
        reporter.for_stage("upload")


def test_rejects_inverted_band():
    with pytest.raises(ValueError):
        ProgressReporter({"a": StageBounds(50, 40, "A", "A done", "A")})


def test_rejects_overlapping_bands():
    with pytest.raises(ValueError):
        ProgressReporter({
            "a": StageBounds(10, 50, "A", "A done", "A"),
            "b": StageBounds(40, 60, "B", "B done", "B"),
        })
