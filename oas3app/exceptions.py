"""
oas3-app: Exception Hierarchy
==============================

What:  Application-specific exceptions for construction and request failures.
How:   Every request-time failure is a RequestFailure carrying an HTTP status,
       a message and an optional list of error details. The failure boundary
       (middleware/errors.py) turns them into JSON responses.
Who:   Raised by the pipeline stages and the route dispatcher.

Exception Hierarchy:
    Oas3AppError (base)
    ├── DefinitionError                 construction time, never a response
    └── RequestFailure                  → failure.status
        ├── MalformedBodyError          → 400
        ├── RequestValidationFailed     → 400
        ├── UnauthorizedError           → 401
        ├── RouteNotFoundError          → 404
        ├── MethodNotAllowedError       → 405
        ├── PayloadTooLargeError        → 413
        ├── UnsupportedCharsetError     → 415
        └── HandlerNotImplementedError  → 501

Construction failures on the definition file itself (missing file, YAML
syntax) are NOT wrapped: the OSError / yaml.YAMLError reaches the caller
unchanged.
"""

from typing import Any, Dict, List, Optional


class Oas3AppError(Exception):
    """
    Base exception for all oas3-app errors.

    Attributes:
        message:  Human-readable description
        context:  Extra debug info (logged, never part of a response)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class DefinitionError(Oas3AppError):
    """
    Raised when the definition document parses but is not usable.

    When:  The YAML/JSON root is not a mapping (e.g. a bare list or scalar).
    """

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Definition file '{path}' must contain a mapping at its root",
            context={"path": path},
        )
        self.path = path


class RequestFailure(Oas3AppError):
    """
    A per-request failure signalled by any pipeline stage.

    What:    Carries the status code and the response fields of the failure.
    How:     The failure boundary reads status/message/errors and renders
             {"message": ..., "errors": ...} at that status.

    Attributes:
        status:  HTTP status code (default 500)
        errors:  Optional list of detail entries
    """

    status: int = 500
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[List[Any]] = None,
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message or self.default_message, context=context)
        if status is not None:
            self.status = status
        self.errors = errors


class MalformedBodyError(RequestFailure):
    """Request body could not be parsed for its declared media type."""

    status = 400
    default_message = "Malformed request body"


class RequestValidationFailed(RequestFailure):
    """Parameters or body do not satisfy the definition document."""

    status = 400
    default_message = "Request validation failed"


class UnauthorizedError(RequestFailure):
    """No security requirement of the operation is satisfied."""

    status = 401
    default_message = "Unauthorized"


class RouteNotFoundError(RequestFailure):
    """The request path is not described by the definition document."""

    status = 404
    default_message = "Not Found"


class MethodNotAllowedError(RequestFailure):
    """The path exists but the method is not defined for it."""

    status = 405
    default_message = "Method Not Allowed"


class PayloadTooLargeError(RequestFailure):
    """
    Request body exceeds the configured parser limit.

    Context holds the limit and, when known, the announced length.
    """

    status = 413
    default_message = "request entity too large"

    def __init__(self, limit: int, length: Optional[int] = None):
        ctx: Dict[str, Any] = {"limit": limit}
        if length is not None:
            ctx["length"] = length
        super().__init__(context=ctx)
        self.limit = limit
        self.length = length


class UnsupportedCharsetError(RequestFailure):
    status = 415
    default_message = "unsupported charset"

    def __init__(self, charset: str):
        super().__init__(
            message=f'unsupported charset "{charset.upper()}"',
            context={"charset": charset},
        )
        self.charset = charset


class HandlerNotImplementedError(RequestFailure):
    """
    Raised by a routed operation whose controller function is missing.

    HTTP:  501 Not Implemented
    """

    status = 501
    default_message = "Not Implemented"

    def __init__(self, operation_id: Optional[str], controller: Optional[str] = None):
        name = operation_id or "<anonymous>"
        if controller:
            name = f"{controller}.{name}"
        super().__init__(
            message=f"Handler '{name}' is not implemented",
            context={"operation_id": operation_id, "controller": controller},
        )
        self.operation_id = operation_id
        self.controller = controller
