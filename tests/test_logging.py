import json
import logging

from app.core.logging import DevelopmentFormatter, StructuredFormatter, job_id_var


def _record(msg="hello", **extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_includes_job_id_and_redacts():
    token = job_id_var.set("video_1_abc")
    try:
        line = StructuredFormatter().format(_record(api_key="sk-123", section="section_0"))
    finally:
        job_id_var.reset(token)

    data = json.loads(line)
    assert data["message"] == "hello"
    assert data["job_id"] == "video_1_abc"
    assert data["extra"] == {"api_key": "***REDACTED***", "section": "section_0"}


def test_development_formatter_without_job():
    line = DevelopmentFormatter().format(_record("plain"))
    assert "plain" in line
    assert "[" not in line.split("app.test")[1]
