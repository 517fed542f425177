"""
oas3-app: Failure Handler
==========================

What:  Turns a failure signalled by any stage into the JSON error response.
How:   Exceptions are converted to a structured Failure(status, message,
       errors) value, which is rendered as {"message": ..., "errors": ...}
       at failure.status. Fields that are None are left out of the body.

Two entry points share the same rendering:
    FailureBoundaryMiddleware    catches failures raised by middleware stages
    handle_request_failure       exception handler for failures raised by
                                 route handlers (registered on the app)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from oas3app.exceptions import RequestFailure

logger = logging.getLogger(__name__)

DEFAULT_STATUS = 500
GENERIC_MESSAGE = "Internal Server Error"


@dataclass(frozen=True)
class Failure:
    """A request failure as seen by the failure handler."""

    status: int = DEFAULT_STATUS
    message: Optional[str] = None
    errors: Optional[List[Any]] = None
    headers: Optional[Dict[str, str]] = None


def status_of(exc: BaseException) -> int:
    """Status code a raised exception will be answered with."""
    if isinstance(exc, RequestFailure):
        return exc.status or DEFAULT_STATUS
    if isinstance(exc, StarletteHTTPException):
        return exc.status_code
    return DEFAULT_STATUS


def failure_from_exception(exc: BaseException) -> Failure:
    """
    Map an exception to a Failure.

    RequestFailure       → its status, message and errors
    HTTPException        → status_code, detail and headers
    anything else        → 500 with a generic message, traceback logged
    """
    if isinstance(exc, RequestFailure):
        return Failure(status=status_of(exc), message=exc.message, errors=exc.errors)
    if isinstance(exc, StarletteHTTPException):
        return Failure(status=exc.status_code, message=exc.detail, headers=exc.headers)

    logger.error("Unhandled error: %s", exc, exc_info=exc)
    return Failure(status=DEFAULT_STATUS, message=GENERIC_MESSAGE)


def failure_response(failure: Failure) -> JSONResponse:
    content = {}
    if failure.message is not None:
        content["message"] = failure.message
    if failure.errors is not None:
        content["errors"] = failure.errors
    return JSONResponse(status_code=failure.status, content=content, headers=failure.headers)


async def handle_request_failure(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler rendering route-level failures the same way."""
    return failure_response(failure_from_exception(exc))


class FailureBoundaryMiddleware:
    """
    Pure ASGI boundary around the inner pipeline stages.

    Any exception raised below it becomes the failure response, unless the
    response has already started, in which case it is re-raised.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            response = failure_response(failure_from_exception(exc))
            await response(scope, receive, send)
