import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

load_dotenv()


class Settings(BaseModel):
    """Client settings loaded from environment: backend base URL, request/probe timeouts, polling cadence and ceilings, and optional job state file.
    Why available: Single source of configuration so the worker, the control API and the scripts agree on limits."""
    # defaults come from env, so they must go through the validators too
    model_config = ConfigDict(validate_default=True)

    api_base: str = os.getenv("API_BASE", "http://127.0.0.1:8081")
    request_timeout_seconds: int = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "120"))
    probe_timeout_seconds: int = int(os.getenv("PROBE_TIMEOUT_SECONDS", "5"))
    probe_endpoints: List[str] = [
        p.strip() for p in os.getenv("PROBE_ENDPOINTS", "/env-status,/books,/health,/").split(",") if p.strip()
    ]
    poll_interval_seconds: int = int(os.getenv("POLL_INTERVAL_SECONDS", "5"))
    max_polling_attempts: int = int(os.getenv("MAX_POLLING_ATTEMPTS", "360"))  # 30 minutes at 5s
    max_consecutive_errors: int = int(os.getenv("MAX_CONSECUTIVE_ERRORS", "20"))
    warning_every: int = int(os.getenv("WARNING_EVERY", "5"))
    recent_success_window_seconds: int = int(os.getenv("RECENT_SUCCESS_WINDOW_SECONDS", "300"))
    job_state_file: str = os.getenv("JOB_STATE_FILE", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @field_validator(
        "request_timeout_seconds",
        "probe_timeout_seconds",
        "poll_interval_seconds",
        "max_polling_attempts",
        "max_consecutive_errors",
        "warning_every",
        "recent_success_window_seconds",
    )
    @classmethod
    def must_be_positive(cls, v):
        """Ensure timeouts, cadence and ceilings are positive integers. Prevents invalid config from env."""
        if v <= 0:
            raise ValueError("must be > 0")
        return v

    @field_validator("probe_endpoints")
    @classmethod
    def must_have_probe_endpoint(cls, v):
        """Require at least one connectivity probe endpoint."""
        if not v:
            raise ValueError("at least one probe endpoint is required")
        return v


settings = Settings()
