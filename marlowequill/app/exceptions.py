"""Custom exceptions for the content service."""


class ContentServiceError(Exception):
    """Base class for service exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Content service error"):
        self.message = message
        super().__init__(message)


class ValidationError(ContentServiceError):
    """Raised when a required request field is missing or blank.

    User-correctable. Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, message: str = "Content type and topic are required"):
        super().__init__(message)


class RateLimitError(ContentServiceError):
    """Raised when a client is denied admission by a rate limit policy.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(
        self,
        retry_after: int,
        limit: int = 0,
        reset_at: int = 0,
        message: str = "Too many requests, please try again later",
    ):
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at = reset_at
        super().__init__(message)


class GenerationError(ContentServiceError):
    """Raised when the generation backend fails.

    The message is surfaced to the caller verbatim.
    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500


class StorageError(ContentServiceError):
    """Raised when generated content cannot be persisted.

    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500
