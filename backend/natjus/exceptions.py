"""
NatJus Backend — Custom Exception Hierarchy
=============================================

What:  Application-specific exceptions for the different failure scenarios.
How:   Each exception carries a user-facing message and an optional context
       dict. Global handlers in main.py turn them into JSON error bodies.
       Inside the upload pipeline the orchestrator catches them per file and
       converts them into file-scoped outcomes instead.

Exception Hierarchy:
    NatJusError (base)
    ├── ValidationError          → 400 Bad Request
    ├── ConfigurationError       → 400 Bad Request (missing provider key)
    ├── NotFoundError            → 404 Not Found
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── FileStorageError         → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    ├── ProviderError            → 502 Bad Gateway (upstream LLM/storage failed)
    └── CircuitBreakerOpenError  → 503 Service Unavailable
"""

from typing import Any, Dict, Optional


class NatJusError(Exception):
    """
    Base exception for all NatJus application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NatJusError):
    """
    Raised when client input fails a business rule.

    Example: a batch containing a non-PDF file is rejected as a whole with
    ``{"error": "validation_error", "message": "Apenas arquivos PDF são aceitos",
    "details": {"field": "files", "rejected": ["foto.png"]}}``.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ConfigurationError(NatJusError):
    """
    A selected non-default provider has no credentials configured.

    The message is the exact string shown to the user in place of an AI
    response, e.g. ``Erro: Chave API do Gemini não configurada. Verifique as
    configurações.``
    """

    def __init__(
        self,
        message: str = "Provider is not configured",
        provider: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if provider:
            ctx["provider"] = provider
        super().__init__(message=message, context=ctx)
        self.provider = provider


class NotFoundError(NatJusError):
    """Raised when a requested resource does not exist."""

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(NatJusError):
    """
    Raised when a storage backend cannot read, write or delete a file.

    Covers the local storage root as well as Google Drive transport errors
    that the storage router did not absorb through its fallback.
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ProviderError(NatJusError):
    """
    An upstream provider (LLM endpoint or storage API) failed.

    Carries the upstream HTTP status and message so callers can tell a
    rejected key (401/403) from an outage (5xx) without parsing strings.
    """

    def __init__(
        self,
        message: str = "Upstream provider request failed",
        provider: Optional[str] = None,
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if provider:
            ctx["provider"] = provider
        if status is not None:
            ctx["status"] = status
        super().__init__(message=message, context=ctx)
        self.provider = provider
        self.status = status


class CircuitBreakerOpenError(NatJusError):
    """
    Raised when the Gemini circuit breaker is OPEN.

    State machine:
        CLOSED → (threshold failures) → OPEN → (recovery timeout) → HALF_OPEN
        HALF_OPEN → success → CLOSED
        HALF_OPEN → failure → OPEN
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"AI service is temporarily unavailable due to repeated failures. "
            f"The service will automatically retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class DatabaseError(NatJusError):
    """
    Raised when a database operation fails unexpectedly.

    The API response is always generic; the SQL error is logged server-side.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(NatJusError):
    """Raised when a client exceeds the per-IP request rate limit."""

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
