"""HTTP client for the book backend (base URL and timeouts from config)."""
from typing import Any, Optional

import requests

from bookgen.core.config import settings

_backend_client: Any = None


class BackendClient:
    """Thin wrapper over a requests.Session bound to the backend base URL.
    Why available: Keeps base URL, JSON headers, default timeout and bearer-token handling in one place so the worker only deals with paths."""

    def __init__(self, base_url: str, timeout: float, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    @staticmethod
    def _auth_headers(token: Optional[str]) -> dict:
        return {"Authorization": f"Bearer {token}"} if token else {}

    def get(self, path: str, token: Optional[str] = None, timeout: Optional[float] = None) -> Any:
        """GET path and return the decoded JSON body. Raises requests.HTTPError on non-2xx and requests.RequestException on transport failures."""
        resp = self.session.get(
            self._url(path),
            headers=self._auth_headers(token),
            timeout=timeout or self.timeout,
        )
        resp.raise_for_status()
        return resp.json() if resp.content else None

    def post(self, path: str, payload: Optional[dict] = None, token: Optional[str] = None, timeout: Optional[float] = None) -> Any:
        """POST a JSON payload to path and return the decoded JSON body. Same error contract as get()."""
        resp = self.session.post(
            self._url(path),
            json=payload or {},
            headers=self._auth_headers(token),
            timeout=timeout or self.timeout,
        )
        resp.raise_for_status()
        return resp.json() if resp.content else None

    def ping(self, path: str, timeout: Optional[float] = None) -> int:
        """GET path without decoding the body; returns the status code. Raises like get() when the endpoint is down or answers non-2xx."""
        resp = self.session.get(self._url(path), timeout=timeout or self.timeout)
        resp.raise_for_status()
        return resp.status_code


def get_backend_client() -> BackendClient:
    """Return a singleton BackendClient configured from settings.
    Why available: Single place to build the backend client so the worker, scripts and API share one session."""
    global _backend_client
    if _backend_client is None:
        _backend_client = BackendClient(settings.api_base, settings.request_timeout_seconds)
    return _backend_client
