"""
oas3-app: Parameter Normalization Middleware

Flattens the validated request parameters into request.state.params so
custom middlewares and controllers read them from one place.

Precedence when a name occurs in several locations (first wins):
    path → query → header → cookie
The unmarshalled request body, when present, is stored under "body".
Without a validation result (validation disabled or the path ignored) the
raw query parameters and the parsed body are used instead.
"""

from typing import Any, Dict

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

LOCATIONS = ("path", "query", "header", "cookie")


def normalize_parameters(request: Request) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    result = getattr(request.state, "openapi", None)

    if result is None:
        params.update(request.query_params)
        body = getattr(request.state, "body", None)
        if body not in (None, {}):
            params["body"] = body
        return params

    for location in LOCATIONS:
        for name, value in (getattr(result.parameters, location, None) or {}).items():
            params.setdefault(name, value)
    if result.body is not None:
        params["body"] = result.body
    return params


class ParameterNormalizationMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.params = normalize_parameters(request)
        return await call_next(request)
