"""Application configuration loaded from environment variables."""

import tempfile

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Model provider
    google_api_key: str = ""

    # Database (in-memory store when supabase_url is empty)
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Trusted storage bucket for videoUrl inputs
    bucket_host_suffix: str = ".r2.cloudflarestorage.com"
    bucket_name: str = "gaga-linkcaring"

    # Scratch storage for uploaded / fetched videos
    scratch_dir: str = tempfile.gettempdir()
    scratch_name_max_bytes: int = 128
    fetch_timeout_sec: float = 120.0

    # Gemini request shaping
    inline_video_max_bytes: int = 20 * 1024 * 1024
    file_poll_interval_sec: float = 1.0
    file_poll_max_attempts: int = 300

    # CORS
    allowed_origins: str = ""


settings = Settings()
