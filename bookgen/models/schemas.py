from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any, Literal


TERMINAL_STATUSES = ("completed", "failed", "error")


class BookOutcome(BaseModel):
    """Per-book outcome reported by /generation-progress. Why available: Completion tallies count 'Review' as generated and 'Failed' as failed."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    status: str = ""
    id: Optional[str] = None
    error: Optional[str] = None


class LogEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    timestamp: str = ""
    message: str = ""
    type: str = "info"


class StartGenerationResponse(BaseModel):
    """Response for POST /generate-pending-books. Why available: Carries the job_id the worker polls afterwards."""

    model_config = ConfigDict(extra="allow")

    job_id: str = Field(..., min_length=1)
    message: Optional[str] = None
    total_books: int = Field(0, ge=0)
    status: Optional[str] = None


class GenerationProgress(BaseModel):
    """Response for GET /generation-progress/{job_id}: job status, counters, per-book outcomes. Why available: Validates the backend payload once at the boundary instead of probing its shape everywhere."""

    model_config = ConfigDict(extra="allow")

    job_id: Optional[str] = None
    status: str
    total_books: int = Field(0, ge=0)
    processed_books: int = Field(0, ge=0)
    current_book: Optional[str] = None
    message: Optional[str] = ""
    books: List[BookOutcome] = Field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    duration_seconds: Optional[float] = None
    progress_percentage: Optional[float] = None
    remaining_books: Optional[int] = None
    successful_books: Optional[int] = None
    failed_books: Optional[int] = None
    logs: List[LogEntry] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


EventType = Literal["PROGRESS", "COMPLETE", "ERROR", "STATUS_UPDATE"]
MessageType = Literal["START_GENERATION", "CHECK_STATUS", "STOP_GENERATION", "RECOVER_CONNECTION"]


class WorkerEvent(BaseModel):
    """An event emitted by the generation worker to its listener (PROGRESS, COMPLETE, ERROR, STATUS_UPDATE).
    Why available: One shape for every caller-facing notification so the view state and the API can consume them uniformly."""

    type: EventType
    progress: Optional[int] = None
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class WorkerMessage(BaseModel):
    """A command sent to the worker. `type` is kept as a plain string so unknown commands can be reported instead of rejected at parse time."""

    type: str
    token: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class StatusSnapshot(BaseModel):
    """Synchronous worker introspection: running flag, last progress, tracked job id."""

    model_config = ConfigDict(populate_by_name=True)

    is_running: bool = Field(False, alias="isRunning")
    progress: int = 0
    job_id: Optional[str] = Field(None, alias="jobId")


class GenerationView(BaseModel):
    """What a UI renders for the pending-books generation: folded from worker events by GenerationState."""

    is_generating: bool = False
    progress: int = 0
    message: str = ""
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    job_id: Optional[str] = None
    current_book: Optional[str] = None
    total_books: int = 0
    processed_books: int = 0
    estimated_time_remaining: Optional[str] = None
    current_step: str = ""
    successful_books: int = 0
    failed_books: int = 0
    remaining_books: int = 0
    duration: Optional[float] = None
    logs: List[Dict[str, Any]] = Field(default_factory=list)


class GenerationStatusResponse(BaseModel):
    """Response for GET /generation/status: worker snapshot plus the folded view. Why available: Lets the UI render progress by polling one endpoint."""

    status: StatusSnapshot
    view: GenerationView


class LimitsResponse(BaseModel):
    """Response for GET /limits: polling cadence and ceilings. Why available: Lets the UI explain how long the worker keeps trying."""

    api_base: str
    poll_interval_seconds: int = Field(..., description="Seconds between status polls")
    max_polling_attempts: int = Field(..., description="Poll ticks before the job is declared timed out")
    max_consecutive_errors: int = Field(..., description="Consecutive poll failures before a recovery probe")
    recent_success_window_seconds: int = Field(..., description="A success inside this window suppresses recovery")
    probe_endpoints: List[str] = Field(default_factory=list)
