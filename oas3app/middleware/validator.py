"""
oas3-app: Request Validation Middleware
========================================

What:  Validates every request against the definition document.
How:   openapi-core finds the operation for the request and unmarshals its
       parameters and body. Errors are translated to RequestFailure
       subclasses; on success the unmarshal result is stored on
       request.state.openapi for the parameter normalization stage and the
       route handlers.

Error mapping:
    OperationNotFound (path known, method not)  → 405
    other PathError (no path / server matches)  → 404
    SecurityValidationError                     → 401 (never raised when the
                                                   OpenAPI object skips security)
    anything else (parameters, body)            → 400

Each failure carries an "errors" list of {path, message, error_code} entries,
path being "/<location>/<name>[/<schema path>]" or "/body[/<schema path>]".
"""

import logging
import re
from typing import Any, Dict, List, Optional

from openapi_core import OpenAPI
from openapi_core.contrib.starlette.requests import StarletteOpenAPIRequest
from openapi_core.templating.paths.exceptions import OperationNotFound, PathError
from openapi_core.validation.request.exceptions import SecurityValidationError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from oas3app.exceptions import (
    MethodNotAllowedError,
    RequestFailure,
    RequestValidationFailed,
    RouteNotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


def describe_error(error: Exception) -> List[Dict[str, Any]]:
    """Flatten one openapi-core error into response detail entries."""
    code = type(error).__name__
    name = getattr(error, "name", None)
    location = getattr(error, "location", None)
    if name and location:
        base = f"/{location}/{name}"
    elif isinstance(error, (PathError, SecurityValidationError)):
        base = ""
    else:
        base = "/body"

    schema_errors = getattr(error.__cause__, "schema_errors", None)
    if not schema_errors:
        return [{"path": base, "message": str(error), "error_code": code}]

    details = []
    for schema_error in schema_errors:
        parts = [str(part) for part in getattr(schema_error, "path", ())]
        path = "/".join([base] + parts) if parts else base
        details.append({"path": path, "message": schema_error.message, "error_code": code})
    return details


def failure_for(errors: List[Exception]) -> RequestFailure:
    """Pick the failure class from the first error and attach all details."""
    details = [detail for error in errors for detail in describe_error(error)]
    message = "; ".join(
        f"{d['path']} {d['message']}".strip() for d in details
    )
    first = errors[0]
    if isinstance(first, OperationNotFound):
        return MethodNotAllowedError(message, errors=details)
    if isinstance(first, PathError):
        return RouteNotFoundError(message, errors=details)
    if isinstance(first, SecurityValidationError):
        return UnauthorizedError(message, errors=details)
    return RequestValidationFailed(message, errors=details)


class RequestValidatorMiddleware(BaseHTTPMiddleware):
    """
    Args:
        openapi:            openapi-core OpenAPI object built from the document.
        validate_requests:  False → pass everything through.
        ignore_paths:       Regex; matching request paths skip validation.
    """

    def __init__(
        self,
        app,
        openapi: OpenAPI,
        validate_requests: bool = True,
        ignore_paths: Optional[str] = None,
    ):
        super().__init__(app)
        self.openapi = openapi
        self.validate_requests = validate_requests
        self.ignore_paths = re.compile(ignore_paths) if ignore_paths else None

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not self.validate_requests:
            return await call_next(request)
        if self.ignore_paths is not None and self.ignore_paths.search(request.url.path):
            return await call_next(request)

        body = getattr(request.state, "raw_body", None)
        if body is None:
            body = await request.body()

        result = self.openapi.unmarshal_request(StarletteOpenAPIRequest(request, body))
        errors = list(result.errors)
        if errors:
            failure = failure_for(errors)
            logger.debug(
                "Request %s %s failed validation: %s",
                request.method,
                request.url.path,
                failure.message,
            )
            raise failure

        request.state.openapi = result
        return await call_next(request)
