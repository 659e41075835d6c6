"""Exception hierarchy for the retrieval core.

Every error carries a human-readable message plus a details dict for logs.
The orchestrator maps all of them to a single user-visible message per operation.
"""
from typing import Any, Dict, Optional


class RagError(Exception):
    """Base exception for all retrieval-core errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(RagError):
    """Raised when the API key, endpoint or model name is missing."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class ProviderError(RagError):
    """Raised on a non-2xx (or malformed) response from the embedding provider.

    Attributes:
        status_code: HTTP status of the failing response.
        reason: HTTP reason phrase.
        provider_message: ``error.message`` from the response body, if any.
    """

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        provider_message: str = "",
        model: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self.provider_message = provider_message
        text = f"{status_code} {reason}".strip()
        if model:
            text += f" (Embedding Model: {model})"
        if provider_message:
            text += f". {provider_message}"
        super().__init__(text, {"status_code": status_code})


class TransportError(RagError):
    """Raised when the provider cannot be reached (timeout, DNS, connection reset)."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message, {"cause": repr(cause)} if cause is not None else None)
        self.cause = cause


class StorageError(RagError):
    """Raised when the backing store fails a read, write or delete."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Vector store {operation} failed", {"cause": repr(cause)} if cause is not None else None)
        self.operation = operation
        self.cause = cause


class DimensionMismatchError(RagError):
    """Raised when two vectors compared for similarity differ in length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Vector dimension mismatch: {expected} != {actual}",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual
