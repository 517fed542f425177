"""
oas3-app: Cookie Parser Middleware

Parses the Cookie header into request.state.cookies (empty dict when absent).
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request, cookie_parser
from starlette.responses import Response


class CookieParserMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.cookies = cookie_parser(request.headers.get("cookie", ""))
        return await call_next(request)
