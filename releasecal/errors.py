"""Error types shared by the backend layer and the HTTP API."""

from __future__ import annotations


class BackendError(Exception):
    """Raised by the backend service layer (auth and table access).

    ``kind`` is one of ``invalid``, ``conflict``, ``unauthorized``,
    ``not_found`` or ``unavailable``; API handlers map it to a status code.
    """

    def __init__(self, message: str, *, kind: str = "unavailable") -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind


class ApiError(Exception):
    """Raised inside route handlers; rendered as ``{"error": message}``."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
