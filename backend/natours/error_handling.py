"""
Natours API — Error Conversion
===============================

What:  Turns any failure raised anywhere in the pipeline into exactly one
       client response.
How:   ``ErrorConverter.render`` walks every failure through the same states:

           received → classified (operational | defect) → rendered → sent

       classified  ``AppError`` is kept as-is; registered translators may map
                   a foreign exception to an ``AppError``; everything else is
                   wrapped in ``UnexpectedError`` (500, non-operational).
       rendered    API paths get JSON, other paths a minimal HTML page.
                   Development discloses message, type, stack and origin.
                   Production discloses the message of operational errors
                   only; defects get a generic message and status 500.

Who:   ``ErrorConversionMiddleware`` (failures from stages and routers) and
       the FastAPI exception handlers registered in ``natours.main``.

The development flag is passed in at construction; nothing here reads the
process environment.
"""

import logging
import traceback
from typing import Any, Callable, Dict, Iterable, List, Optional

from fastapi.exceptions import RequestValidationError
from markupsafe import escape
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import HTTPConnection
from starlette.responses import HTMLResponse, JSONResponse, Response

from natours.context import request_id_var
from natours.exceptions import AppError, RateLimitExceededError, UnexpectedError

logger = logging.getLogger(__name__)

GENERIC_API_MESSAGE = "Something went very wrong!"
GENERIC_PAGE_MESSAGE = "Please try again later."
ERROR_PAGE_TITLE = "Something went wrong!"

# A translator returns an AppError for exceptions it recognises, else None.
Translator = Callable[[BaseException], Optional[AppError]]

ERROR_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Natours | {title}</title></head>
<body>
<main class="main">
<div class="error">
<div class="error__title"><h2 class="heading-secondary heading-secondary--error">{title}</h2></div>
<div class="error__msg">{message}</div>
</div>
</main>
</body>
</html>
"""


def translate_validation_error(exc: BaseException) -> Optional[AppError]:
    if not isinstance(exc, RequestValidationError):
        return None
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()))
        messages.append(f"{location}: {error.get('msg', 'invalid value')}")
    return AppError(f"Invalid input data. {'. '.join(messages)}", 400)


def translate_http_exception(exc: BaseException) -> Optional[AppError]:
    if not isinstance(exc, StarletteHTTPException):
        return None
    return AppError(str(exc.detail), exc.status_code)


DEFAULT_TRANSLATORS = (translate_validation_error, translate_http_exception)


def failure_origin(exc: BaseException) -> Optional[str]:
    """``file:function:line`` of the innermost frame that raised ``exc``."""
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return None
    frame = frames[-1]
    return f"{frame.filename}:{frame.name}:{frame.lineno}"


class ErrorConverter:
    """
    Single place where failures become responses.

    Args:
        development:  Disclose diagnostic detail (message, stack, origin).
        translators:  Extra exception → AppError mappings, consulted before
                      the built-in ones. Resource routers and collaborators
                      register theirs here instead of formatting responses.
        api_prefix:   Paths under this prefix get JSON, all others HTML.
    """

    def __init__(
        self,
        development: bool = False,
        translators: Iterable[Translator] = (),
        api_prefix: str = "/api",
    ):
        self.development = development
        self.translators: List[Translator] = [*translators, *DEFAULT_TRANSLATORS]
        self.api_prefix = api_prefix.rstrip("/")

    # ── received → classified ────────────────────────────────────────────

    def classify(self, exc: BaseException) -> AppError:
        if isinstance(exc, AppError):
            return exc
        for translator in self.translators:
            translated = translator(exc)
            if translated is not None:
                translated.__cause__ = exc
                return translated
        return UnexpectedError(exc)

    # ── classified → rendered ────────────────────────────────────────────

    def render(self, conn: HTTPConnection, exc: BaseException) -> Response:
        error = self.classify(exc)
        self.log(conn, error, exc)

        headers = self.response_headers(error)

        if self.is_api_path(conn.url.path):
            return JSONResponse(
                status_code=self.response_status(error),
                content=self.api_payload(error, exc),
                headers=headers,
            )
        return HTMLResponse(
            status_code=self.response_status(error),
            content=self.page(error),
            headers=headers,
        )

    def response_headers(self, error: AppError) -> Dict[str, str]:
        """Headers the failure itself asks for (Retry-After, WWW-Authenticate, ...)."""
        headers: Dict[str, str] = {}
        cause = error.__cause__
        if isinstance(cause, StarletteHTTPException) and cause.headers:
            headers.update(cause.headers)
        if isinstance(error, RateLimitExceededError):
            headers["Retry-After"] = str(error.retry_after)
        return headers

    def is_api_path(self, path: str) -> bool:
        return path == self.api_prefix or path.startswith(self.api_prefix + "/")

    def response_status(self, error: AppError) -> int:
        if self.development or error.is_operational:
            return error.status_code
        return 500

    def api_payload(self, error: AppError, exc: BaseException) -> Dict[str, Any]:
        if self.development:
            cause = error.original if isinstance(error, UnexpectedError) else exc
            return {
                "status": error.status,
                "message": error.message,
                "error": {
                    "type": type(cause).__name__,
                    "status_code": error.status_code,
                    "is_operational": error.is_operational,
                },
                "stack": traceback.format_exception(type(cause), cause, cause.__traceback__),
                "origin": failure_origin(cause),
                "request_id": request_id_var.get(""),
            }
        if error.is_operational:
            return {"status": error.status, "message": error.message}
        return {"status": "error", "message": GENERIC_API_MESSAGE}

    def page(self, error: AppError) -> str:
        if self.development or error.is_operational:
            message = error.message
        else:
            message = GENERIC_PAGE_MESSAGE
        return ERROR_PAGE_TEMPLATE.format(title=ERROR_PAGE_TITLE, message=escape(message))

    # ── logging ──────────────────────────────────────────────────────────

    def log(self, conn: HTTPConnection, error: AppError, exc: BaseException) -> None:
        path = conn.url.path
        if not error.is_operational:
            logger.error(
                "Unexpected error on %s: %s",
                path,
                error.message,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
        elif error.status_code >= 500:
            logger.error("%s on %s: %s", error.status_code, path, error.message)
        else:
            logger.warning("%s on %s: %s", error.status_code, path, error.message)
