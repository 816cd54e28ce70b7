"""
Natours API — Exception Hierarchy
==================================

What:  Application-specific errors raised by pipeline stages and routers.
How:   Every expected failure is an ``AppError`` carrying a message, an HTTP
       status code and an ``is_operational`` flag. The error-conversion stage
       (see ``natours.error_handling``) is the only place that turns them into
       responses.
Who:   Raised by middleware stages, the fallback route and resource routers.

Exception Hierarchy:
    AppError (operational, status from caller)
    ├── BadRequestError            → 400
    ├── NotFoundError              → 404
    ├── PayloadTooLargeError       → 413
    ├── UnsupportedMediaTypeError  → 415
    ├── RateLimitExceededError     → 429
    ├── NotConfiguredError         → 501
    └── UnexpectedError            → 500 (non-operational, wraps a defect)

    PipelineAssemblyError is raised at startup only, never during a request.
"""

from typing import Optional


class AppError(Exception):
    """
    Operational error: an expected failure whose message is safe to show.

    Attributes are read-only once constructed.

    ``status`` follows the response contract: ``"fail"`` for 4xx codes,
    ``"error"`` for everything else.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        is_operational: bool = True,
    ):
        super().__init__(message)
        self._message = message
        self._status_code = status_code
        self._is_operational = is_operational

    @property
    def message(self) -> str:
        return self._message

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def is_operational(self) -> bool:
        return self._is_operational

    @property
    def status(self) -> str:
        return "fail" if 400 <= self._status_code < 500 else "error"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self._message!r}, "
            f"status_code={self._status_code}, is_operational={self._is_operational})"
        )


class BadRequestError(AppError):
    """Client sent input that cannot be processed as-is."""

    def __init__(self, message: str = "Bad request"):
        super().__init__(message, 400)


class NotFoundError(AppError):
    """No router owns the requested path, or a router could not find a resource."""

    def __init__(self, message: str = "The requested resource was not found"):
        super().__init__(message, 404)


class PayloadTooLargeError(AppError):
    """
    Request body exceeded the configured byte limit.

    Raised by the body ingestion stage before the body reaches any router.
    """

    def __init__(self, limit: int, message: str = "Request entity too large"):
        super().__init__(message, 413)
        self.limit = limit


class UnsupportedMediaTypeError(AppError):
    def __init__(self, message: str = "Unsupported media type"):
        super().__init__(message, 415)


class RateLimitExceededError(AppError):
    """
    Client IP exceeded the request cap within the current window.

    ``retry_after`` is the number of seconds until the window resets; the
    error converter turns it into a ``Retry-After`` header.
    """

    def __init__(
        self,
        retry_after: int,
        message: str = "Too many requests from this IP, please try again in an hour!",
    ):
        super().__init__(message, 429)
        self.retry_after = retry_after


class NotConfiguredError(AppError):
    """A collaborator the route depends on was not supplied at startup."""

    def __init__(self, message: str = "This endpoint is not configured on this server"):
        super().__init__(message, 501)


class UnexpectedError(AppError):
    """
    Non-operational wrapper around a defect.

    What:  Any exception that is not an ``AppError`` and that no translator
           recognised ends up here, so the converter handles one type.
    How:   Keeps the original exception (and its traceback) in ``original``
           for logging and development-mode diagnostics.
    """

    def __init__(self, original: BaseException, message: Optional[str] = None):
        super().__init__(
            message or str(original) or type(original).__name__,
            500,
            is_operational=False,
        )
        self.original = original
        self.__cause__ = original


class PipelineAssemblyError(Exception):
    """The request pipeline or route table was assembled incorrectly."""
