"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
import tempfile
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

DEFAULT_MODEL = "gemini-2.0-flash-exp"
DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024


class Settings(BaseModel):
    gemini_api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    max_upload_bytes: int = Field(DEFAULT_MAX_UPLOAD_BYTES, gt=0)
    upload_dir: str = Field(default_factory=tempfile.gettempdir)
    poll_attempts: int = Field(30, ge=1)
    poll_delay_s: float = Field(2.0, ge=0.0)
    poll_deadline_s: Optional[float] = None
    request_timeout_s: float = Field(120.0, gt=0.0)
    log_level: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "gemini_api_key": os.getenv("GOOGLE_AI_API_KEY") or os.getenv("GEMINI_API_KEY"),
            "model": os.getenv("GESTURE_ANALYZER_MODEL"),
            "max_upload_bytes": os.getenv("GESTURE_ANALYZER_MAX_UPLOAD_BYTES"),
            "upload_dir": os.getenv("GESTURE_ANALYZER_UPLOAD_DIR"),
            "poll_attempts": os.getenv("GESTURE_ANALYZER_POLL_ATTEMPTS"),
            "poll_delay_s": os.getenv("GESTURE_ANALYZER_POLL_DELAY_S"),
            "poll_deadline_s": os.getenv("GESTURE_ANALYZER_POLL_DEADLINE_S"),
            "request_timeout_s": os.getenv("GESTURE_ANALYZER_REQUEST_TIMEOUT_S"),
            "log_level": os.getenv("GESTURE_ANALYZER_LOG_LEVEL"),
        }
        # Unset variables fall back to field defaults.
        return cls(**{key: value for key, value in values.items() if value})


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings.from_env()
