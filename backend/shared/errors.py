import json
from typing import Any, Dict, Optional, Tuple

UNKNOWN_ERROR = "Unknown error"
ANALYSIS_FAILED = "Failed to analyze package"
BADGE_MESSAGE_LIMIT = 80


class ScorecardError(Exception):
    """
    Base error for the scoring backend.

    Carries a machine-readable `kind`, the HTTP `status_code` the router should answer with
    and an optional `detail` holding the underlying cause, so callers never have to parse
    formatted message strings.
    """
    kind = "error"
    status_code = 500

    def __init__(self, message: str, kind: Optional[str] = None,
                 status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class ValidationError(ScorecardError):
    """Caller input is missing or malformed."""
    kind = "validation"
    status_code = 400


class ConfigError(ScorecardError):
    """A secret, engine or function address is not configured or cannot be read."""
    kind = "config"
    status_code = 500


class CredentialError(ScorecardError):
    """The anonymous identity or credential exchange failed."""
    kind = "credentials"
    status_code = 500


class UpstreamError(ScorecardError):
    """
    The remote analysis function failed.

    kind is one of:
      - function_error: the function ran but raised; detail is the fault payload
      - status: the function returned a non-200 status; status_code is the embedded one
      - invoke: the invocation API call itself failed
    """
    kind = "upstream"
    status_code = 500


def _detail_text(detail: Any) -> str:
    if detail is None:
        return ""
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        for key in ("errorMessage", "error", "message"):
            if detail.get(key):
                return str(detail[key])
    return json.dumps(detail, default=str)


def user_message(exc: BaseException) -> str:
    """
    Returns the user-safe cause of a failure.
    Upstream failures are unwrapped one level so the remote function's own message surfaces.
    """
    message = ""
    if isinstance(exc, UpstreamError):
        message = _detail_text(exc.detail) or exc.message
    elif isinstance(exc, ScorecardError):
        message = exc.message
    else:
        message = str(exc)
    return message.strip() or UNKNOWN_ERROR


def badge_message(exc: BaseException, limit: int = BADGE_MESSAGE_LIMIT) -> str:
    return user_message(exc)[:limit]


def to_error_body(exc: BaseException) -> Tuple[int, Dict[str, str]]:
    """Maps any failure to (statusCode, {error, message}) for the JSON responses."""
    if isinstance(exc, ValidationError):
        return exc.status_code, {"error": exc.message, "message": exc.message}
    if isinstance(exc, ConfigError):
        return exc.status_code, {"error": "Service is not configured", "message": user_message(exc)}
    return 500, {"error": ANALYSIS_FAILED, "message": user_message(exc)}
