"""Error Hierarchy — typed, categorized exceptions for all PlantBid failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (4xx) never leave a partial mutation behind
    - Provider errors are classified by the payment client; controllers decide what they mean
    - to_response() produces the REST envelope; no internal details in user-facing messages

Design Decisions:
    - Single hierarchy with PlantBidError base: one FastAPI handler catches all
    - ErrorContext as dataclass: carries bid/order/conversation ids for logs and responses
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    bid_id: int | None = None
    order_id: str | None = None
    conversation_id: int | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class PlantBidError(Exception):
    """Base exception for all PlantBid errors."""

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
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "bid_id": self.context.bid_id,
                    "order_id": self.context.order_id,
                    "conversation_id": self.context.conversation_id,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class ValidationError(PlantBidError):
    """Request is well-formed but violates a bid/order precondition."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class InvalidTransitionError(PlantBidError):
    """Requested status change is not an edge of the state machine."""
    def __init__(
        self,
        current: str,
        target: str,
        reason: str | None = None,
        context: ErrorContext | None = None,
        code: str = "INVALID_TRANSITION",
    ):
        message = f"Cannot move from '{current}' to '{target}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message, code, ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 409,
        )
        self.current = current
        self.target = target


class AlreadyFinalizedError(InvalidTransitionError):
    """Finalize called on a bid that is already bidded or completed."""
    def __init__(self, current: str, context: ErrorContext | None = None):
        super().__init__(
            current, "bidded", "bid is already finalized",
            context, code="ALREADY_FINALIZED",
        )


class CancellationFailedError(PlantBidError):
    """Payment provider explicitly refused the cancellation."""
    def __init__(self, detail: str, context: ErrorContext | None = None):
        super().__init__(
            f"Payment cancellation was refused by the provider: {detail}",
            "CANCELLATION_FAILED", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.ERROR, context, 502,
        )
        self.detail = detail


class ResourceNotFoundError(PlantBidError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )


class ConcurrencyError(PlantBidError):
    """Concurrent modification detected and retries exhausted."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "CONCURRENCY_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(PlantBidError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class TranscriptAppendError(PlantBidError):
    """Transcript append could not be committed."""
    def __init__(
        self, conversation_id: int, attempts: int, context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.conversation_id = conversation_id
        super().__init__(
            f"Could not append to conversation {conversation_id} "
            f"after {attempts} attempt(s)",
            "TRANSCRIPT_APPEND_FAILED", ErrorCategory.CONFLICT,
            ErrorSeverity.WARNING, ctx, 409,
        )
        self.attempts = attempts


class PaymentProviderError(PlantBidError):
    """Base for payment gateway failures."""
    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory = ErrorCategory.EXTERNAL_API,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, code, category, ErrorSeverity.CRITICAL, context, 503,
        )


class ProviderTimeoutError(PaymentProviderError):
    """Gateway did not answer within the bounded timeout."""
    def __init__(self, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Payment provider timed out during {operation}",
            "PAYMENT_PROVIDER_TIMEOUT", ErrorCategory.TIMEOUT, context,
        )
        self.operation = operation


class ProviderAmbiguousError(PaymentProviderError):
    """Gateway answered with something we cannot interpret."""
    def __init__(self, operation: str, detail: str, context: ErrorContext | None = None):
        super().__init__(
            f"Payment provider returned an unreadable response during {operation}: {detail}",
            "PAYMENT_PROVIDER_AMBIGUOUS", context=context,
        )
        self.operation = operation


class ProviderFailureError(PaymentProviderError):
    """Gateway explicitly rejected the request."""
    def __init__(
        self,
        operation: str,
        detail: str,
        status_code: int | None = None,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Payment provider rejected {operation}: {detail}",
            "PAYMENT_PROVIDER_FAILURE", context=context,
        )
        self.operation = operation
        self.status_code = status_code
