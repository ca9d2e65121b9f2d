from typing import Optional


class AppError(Exception):
    """Base for errors that map onto a tool/webhook response."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.kind

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.kind, "reason": self.reason, "detail": self.message}


class AuthError(AppError):
    status_code = 401
    kind = "unauthorized"


class ValidationError(AppError):
    """Malformed input or an interval rejected by the tenant's business rules."""

    status_code = 422
    kind = "validation_error"


class ConflictError(AppError):
    """The interval is already occupied; `source` is "store" or "calendar"."""

    status_code = 409
    kind = "conflict"

    def __init__(self, message: str, source: str):
        super().__init__(message, reason=f"busy_in_{source}")
        self.source = source


class NotFoundError(AppError):
    status_code = 404
    kind = "not_found"


class UpstreamError(AppError):
    """Calendar, store, notifier or call platform call failed."""

    status_code = 502
    kind = "upstream_error"
