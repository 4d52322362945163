"""
Client error taxonomy. Every failure surfaced to callers is an ApiError subclass:
credential errors, session expiry, transport errors, validation errors, and the rest by status.
"""
from dataclasses import dataclass
from typing import Any

import httpx

from ems_client.config import EXEMPT_PATHS

CANNOT_CONNECT_MESSAGE = "Unable to connect to server. Please check your connection."
SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."


class ApiError(Exception):
    def __init__(self, message: str, *, status: int = 0, path: str | None = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.path = path
        self.payload = payload

    def __str__(self) -> str:
        if self.status:
            return f"{self.status}: {self.message}"
        return self.message


class CredentialError(ApiError):
    """401 from an exempt endpoint: wrong password, bad activation or reset token."""


class SessionExpiredError(ApiError):
    def __init__(self, message: str = SESSION_EXPIRED_MESSAGE, **kwargs: Any):
        kwargs.setdefault("status", 401)
        super().__init__(message, **kwargs)


class NoRefreshTokenError(SessionExpiredError):
    def __init__(self, message: str = "No refresh token available", **kwargs: Any):
        kwargs.setdefault("status", 0)
        super().__init__(message, **kwargs)


class TransportError(ApiError):
    def __init__(self, message: str = CANNOT_CONNECT_MESSAGE, **kwargs: Any):
        kwargs.setdefault("status", 0)
        super().__init__(message, **kwargs)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    rejected_value: Any = None


class ValidationError(ApiError):
    def __init__(self, message: str, *, field_errors: list[FieldError] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field_errors = field_errors or []

    def messages_by_field(self) -> dict[str, list[str]]:
        grouped: dict[str, list[str]] = {}
        for fe in self.field_errors:
            grouped.setdefault(fe.field, []).append(fe.message)
        return grouped


class PermissionDeniedError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


class ConflictError(ApiError):
    pass


class RateLimitedError(ApiError):
    def __init__(self, message: str, *, retry_after: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


def is_exempt_path(path: str) -> bool:
    """True for auth endpoints that never carry a bearer token."""
    return path.rstrip("/").endswith(EXEMPT_PATHS)


def _parse_body(response: httpx.Response) -> Any:
    if response.headers.get("content-type", "").startswith("application/json"):
        try:
            return response.json()
        except ValueError:
            return None
    return None


def error_from_response(response: httpx.Response) -> ApiError:
    """Map a non-2xx response to the matching ApiError subclass."""
    body = _parse_body(response)
    status = response.status_code
    path = response.request.url.path if response.request is not None else None
    message = ""
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail") or body.get("error") or ""
        if not isinstance(message, str):
            message = str(message)
    if not message:
        message = response.reason_phrase or f"HTTP {status}"
    kwargs = {"status": status, "path": path, "payload": body}

    if status == 400 and isinstance(body, dict) and body.get("fieldErrors"):
        field_errors = [
            FieldError(field=fe.get("field", ""), message=fe.get("message", ""), rejected_value=fe.get("rejectedValue"))
            for fe in body["fieldErrors"]
        ]
        return ValidationError(message, field_errors=field_errors, **kwargs)
    if status == 401:
        if path is not None and is_exempt_path(path):
            return CredentialError(message, **kwargs)
        return SessionExpiredError(message, **kwargs)
    if status == 403:
        return PermissionDeniedError(message, **kwargs)
    if status == 404:
        return NotFoundError(message, **kwargs)
    if status == 409:
        return ConflictError(message, **kwargs)
    if status == 429:
        retry_after = response.headers.get("retry-after")
        return RateLimitedError(message, retry_after=int(retry_after) if retry_after else None, **kwargs)
    return ApiError(message, **kwargs)
