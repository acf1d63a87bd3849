"""
Custom Exceptions - Application-specific error classes.

This module defines a hierarchy of exceptions for clean error handling:
- Each exception has a status code and error code
- Used by the API layer for consistent error responses
- No stack traces leaked in production

ProviderError never reaches an HTTP response from /ask: the orchestrator
recovers from it by falling back to the other provider.
"""
from typing import Optional


class RukhException(Exception):
    """
    Base exception for all gateway errors.

    Subclass this for specific error types.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Convert to error response dict."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ValidationError(RukhException):
    """Raised when input validation fails."""
    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details=f"field={field}" if field else None)
        self.field = field


class InvalidPasswordError(RukhException):
    """Raised when a context password does not match."""
    status_code = 401
    error_code = "invalid_password"

    def __init__(self, context_name: str):
        super().__init__(
            message="Invalid password for context",
            details=f"context={context_name}"
        )


class InvalidSignatureError(RukhException):
    """Raised when a SIWE signature cannot be verified."""
    status_code = 401
    error_code = "invalid_signature"

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class PaymentRequiredError(RukhException):
    """Raised when a gated context's free quota is used up and no subscription is proven."""
    status_code = 402
    error_code = "payment_required"

    def __init__(self, context_name: str, free_uses: int):
        super().__init__(
            message=(
                f"Free quota of {free_uses} requests for context '{context_name}' "
                f"is exhausted. An active subscription is required."
            ),
            details=f"context={context_name}"
        )
        self.context_name = context_name


class NotFoundError(RukhException):
    status_code = 404
    error_code = "not_found"


class ContextNotFoundError(NotFoundError):
    """Raised when a named context does not exist."""
    error_code = "context_not_found"

    def __init__(self, context_name: str):
        super().__init__(
            message=f"Context '{context_name}' not found",
            details=f"context={context_name}"
        )


class ContextFileNotFoundError(NotFoundError):
    """Raised when a file is missing from a context."""
    error_code = "context_file_not_found"

    def __init__(self, context_name: str, file_name: str):
        super().__init__(
            message=f"File '{file_name}' not found in context '{context_name}'",
            details=f"context={context_name}, file={file_name}"
        )


class ConflictError(RukhException):
    """Raised when creating something that already exists."""
    status_code = 409
    error_code = "conflict"


class RateLimitExceeded(RukhException):
    """Raised when a client exceeds the rate limit."""
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(self, limit: int, retry_after: int = 60):
        minutes = max(1, -(-retry_after // 60))
        unit = "minute" if minutes == 1 else "minutes"
        super().__init__(
            message=(
                f"Rate limit exceeded. Maximum {limit} requests allowed per window. "
                f"Please try again in {minutes} {unit}."
            ),
            details=f"retry_after={retry_after}"
        )
        self.retry_after = retry_after
        self.limit = limit


class ProviderError(RukhException):
    """
    Raised by a provider adapter when a completion could not be obtained.

    Opaque: lower-level detail is logged by the adapter,
    not carried to the caller.
    """
    status_code = 502
    error_code = "provider_error"

    def __init__(self, provider: str):
        super().__init__(f"Failed to process message with {provider}")
        self.provider = provider
