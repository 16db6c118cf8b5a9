"""Application configuration via environment variables."""

import os
import tempfile
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    jobs_table: str = "video_jobs"
    storage_bucket: str = "video-generation"

    # Local file storage (used when Supabase storage is unavailable)
    generated_dir: str = os.path.join(tempfile.gettempdir(), "explainer_generated")
    generated_url_prefix: str = "/generated"
    job_result_ttl_hours: int = 24

    # Script generation: primary model first, fallbacks after
    script_models: List[str] = ["gemini-2.5-flash", "gemini-2.0-flash"]
    script_max_attempts: int = 3
    script_retry_wait_seconds: float = 1.0

    # Per-stage timeouts (seconds)
    script_timeout_seconds: float = 120.0
    narration_timeout_seconds: float = 60.0
    animation_timeout_seconds: float = 120.0
    compose_timeout_seconds: float = 300.0

    # Section fan-out
    max_parallel_sections: int = 4
    narration_max_chars: int = 5000
    fallback_audio_url: str = "/fallback-audio.mp3"
    fallback_animation_url: str = "/fallback-animation.mp4"

    # Simulated collaborators
    simulated_delay_seconds: float = 0.5
    simulated_failing_models: List[str] = []

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8001
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
