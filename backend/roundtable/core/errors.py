"""Error Hierarchy: typed, categorized exceptions for all Round Table failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Expected concurrency outcomes (conflict, rate limit, not found) are WARNING/INFO;
      auth and unclassified store failures are CRITICAL
    - to_response() produces the REST envelope
    - No credentials or raw response bodies leaked in user-facing messages

Design Decisions:
    - Single hierarchy with RoundTableError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    CONFLICT = "conflict"
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    ACCESS_GATE = "access_gate"
    MALFORMED = "malformed"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    path: str | None = None
    team: str | None = None
    session: str | None = None
    status_code: int | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class RoundTableError(Exception):
    """Base exception for all Round Table errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "path": self.context.path,
                    "team": self.context.team,
                    "session": self.context.session,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(RoundTableError):
    """User input failed a domain rule (e.g. missing writer name)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ResourceNotFoundError(RoundTableError):
    """Object does not exist in the store. Benign on the read path."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.INFO, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class VersionConflictError(RoundTableError):
    """CAS write rejected: presented version is stale or missing."""
    def __init__(self, path: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.path = path
        super().__init__(
            f"Version conflict writing '{path}'",
            "VERSION_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.path = path


class PassphraseRequiredError(RoundTableError):
    """Team is passphrase-protected and no passphrase was supplied."""
    def __init__(self, team: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.team = team
        super().__init__(
            f"Team '{team}' is passphrase-protected",
            "PASSPHRASE_REQUIRED", ErrorCategory.ACCESS_GATE,
            ErrorSeverity.WARNING, ctx, 403,
        )
        self.team = team


class PassphraseMismatchError(RoundTableError):
    """Supplied passphrase does not match the team registry entry."""
    def __init__(self, team: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.team = team
        super().__init__(
            f"Incorrect passphrase for team '{team}'",
            "PASSPHRASE_MISMATCH", ErrorCategory.ACCESS_GATE,
            ErrorSeverity.WARNING, ctx, 403,
        )
        self.team = team


class MalformedRecordError(RoundTableError):
    """Stored body could not be decoded at all (not raised for recoverable fields)."""
    def __init__(self, path: str, reason: str, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.path = path
        super().__init__(
            f"Malformed object at '{path}': {reason}",
            "MALFORMED_RECORD", ErrorCategory.MALFORMED,
            ErrorSeverity.WARNING, ctx, 422,
        )
        self.path = path


# ─── Infrastructure Errors (500-level) ──────────────────────────

class RateLimitedError(RoundTableError):
    """Store throttled the request (403/429). Drives backoff, not a user error."""
    def __init__(
        self,
        status_code: int,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.status_code = status_code
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"Content API rate limited ({status_code})",
            "RATE_LIMITED", ErrorCategory.RATE_LIMIT,
            ErrorSeverity.WARNING, ctx, 503,
        )
        self.status_code = status_code


class AuthFailureError(RoundTableError):
    """Credential rejected by the store. Fatal for the session, never retried."""
    def __init__(self, status_code: int = 401, context: ErrorContext | None = None):
        ctx = context or ErrorContext()
        ctx.status_code = status_code
        super().__init__(
            "Content API rejected the store token",
            "AUTH_FAILURE", ErrorCategory.AUTH,
            ErrorSeverity.CRITICAL, ctx, 502,
        )
        self.status_code = status_code


class StoreAPIError(RoundTableError):
    """Any other content API failure (5xx, unexpected 4xx, transport error)."""
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.status_code = status_code
        super().__init__(
            f"Content API error: {message}",
            "STORE_API_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 502,
        )
        self.status_code = status_code
