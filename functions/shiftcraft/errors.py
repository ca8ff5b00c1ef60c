"""
Error types rendered as JSON `{error, detail?}` bodies.
"""

from __future__ import annotations

from typing import Any, Optional


class ApiError(Exception):
    """Base class for failures reported to the caller before any body is sent."""

    status_code = 500

    def __init__(
        self,
        error: str,
        detail: Optional[str] = None,
        **extra: Any,
    ) -> None:
        super().__init__(error)
        self.error = error
        self.detail = detail
        self.extra = extra

    def to_payload(self) -> dict:
        payload: dict = {"error": self.error}
        if self.detail is not None:
            payload["detail"] = self.detail
        payload.update(self.extra)
        return payload


class ClientError(ApiError):
    """Malformed method or body."""

    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class ConfigurationError(ApiError):
    """Server-side setup is incomplete, e.g. the upstream credential is unset."""

    status_code = 500


class StorageError(ApiError):
    status_code = 500


class UpstreamUnreachableError(ApiError):
    """The upstream endpoint could not be reached before it sent a response."""

    status_code = 502


class StreamTruncationError(Exception):
    """A streamed body was aborted after the response headers went out."""
