"""Classify HTTP/transport failures of the generation worker into short user-facing messages."""
from dataclasses import dataclass
from typing import Any, Optional

import requests
from pydantic import ValidationError

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
CONNECTIVITY_ERROR_MESSAGE = (
    "Cannot connect to the backend server. The backend may be down or some endpoints may not be accessible. "
    "Please try again later."
)
ALREADY_RUNNING_MESSAGE = "Generation already in progress"
TIMEOUT_MESSAGE = "Generation timeout. The process is taking longer than expected."
CONNECTION_LOST_MESSAGE = (
    "Lost connection to backend. Generation may still be running on the server. "
    "Please check the backend logs or try again later."
)
UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from the server."


@dataclass
class ClassifiedError:
    """A failure reduced to its kind (auth, permission, not_found, server, http, network, other), HTTP status if any, and message."""

    kind: str
    message: str
    status_code: Optional[int] = None

    @property
    def is_fatal_on_poll(self) -> bool:
        # auth and missing job cannot heal by polling again
        return self.kind in ("auth", "not_found")


def _response_body(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def _body_field(body: Any, key: str) -> Optional[str]:
    if isinstance(body, dict):
        val = body.get(key)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return None


def classify_start_error(exc: BaseException) -> ClassifiedError:
    """Classify a failure of POST /generate-pending-books. Every result is fatal for the start attempt."""
    resp = getattr(exc, "response", None)
    if isinstance(exc, requests.HTTPError) and resp is not None:
        status = resp.status_code
        if status == 401:
            return ClassifiedError("auth", "Authentication failed. Please log in again.", status)
        if status == 403:
            return ClassifiedError("permission", "Access denied. You do not have permission to generate books.", status)
        if status == 404:
            return ClassifiedError("not_found", "No pending books found to generate.", status)
        if status == 500:
            return ClassifiedError("server", "Server error. Please try again later.", status)
        msg = _body_field(_response_body(resp), "message")
        return ClassifiedError("http", msg or f"Server error ({status}). Please try again.", status)
    if isinstance(exc, requests.RequestException):
        return ClassifiedError("network", NETWORK_ERROR_MESSAGE)
    if isinstance(exc, ValidationError):
        return ClassifiedError("other", UNEXPECTED_RESPONSE_MESSAGE)
    return ClassifiedError("other", str(exc) or "Failed to start pending books generation")


def classify_poll_error(exc: BaseException) -> ClassifiedError:
    """Classify a failure of GET /generation-progress/{job_id}."""
    resp = getattr(exc, "response", None)
    if isinstance(exc, requests.HTTPError) and resp is not None:
        status = resp.status_code
        if status == 404:
            return ClassifiedError("not_found", "Job not found. The generation job may have expired or been cancelled.", status)
        if status == 401:
            return ClassifiedError("auth", "Authentication failed. Please log in again.", status)
        if status == 500:
            return ClassifiedError("server", "Server error while checking progress. Please try again.", status)
        body = _response_body(resp)
        msg = _body_field(body, "error") or _body_field(body, "message")
        return ClassifiedError("http", msg or f"Server error ({status}) while checking progress.", status)
    if isinstance(exc, requests.RequestException):
        return ClassifiedError("network", NETWORK_ERROR_MESSAGE)
    if isinstance(exc, ValidationError):
        return ClassifiedError("other", UNEXPECTED_RESPONSE_MESSAGE)
    return ClassifiedError("other", str(exc) or "Lost connection to the server. Please check your connection and try again.")
