"""
oas3-app: Request Logging Middleware
=====================================

What:  One access log line per request, in a configurable format.
How:   Measures the time until the downstream stages produce response headers,
       renders the chosen format template and writes it to the
       "oas3app.access" logger. A skip predicate can drop responses below a
       status threshold.
When:  Registered after the body parser, so requests rejected while parsing
       the body are not logged.

Format presets (str.format templates of the well-known access log layouts):
    combined  Apache combined log format
    common    Apache common log format
    dev       "{method} {url} {status} {response_time:.3f} ms - {content_length}"
    short     remote address, request line, status, length, time
    tiny      method, url, status, length, time

Threshold semantics:
    error_limit=T skips every response with status < T, i.e. only statuses
    >= T are logged. Without a threshold nothing is skipped.
"""

import logging
import string
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, Mapping, Optional, Set, Union

from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from oas3app.middleware.errors import status_of

if TYPE_CHECKING:
    from oas3app.options import LoggingOptions

logger = logging.getLogger("oas3app.access")

DEFAULT_FORMAT = "dev"

FORMAT_PRESETS: Dict[str, str] = {
    "combined": (
        '{remote_addr} - {remote_user} [{date}] "{method} {url} HTTP/{http_version}" '
        '{status} {content_length} "{referrer}" "{user_agent}"'
    ),
    "common": (
        '{remote_addr} - {remote_user} [{date}] "{method} {url} HTTP/{http_version}" '
        "{status} {content_length}"
    ),
    "dev": "{method} {url} {status} {response_time:.3f} ms - {content_length}",
    "short": (
        "{remote_addr} {remote_user} {method} {url} HTTP/{http_version} "
        "{status} {content_length} - {response_time:.3f} ms"
    ),
    "tiny": "{method} {url} {status} {content_length} - {response_time:.3f} ms",
}

LOG_FIELDS = frozenset(
    {
        "remote_addr",
        "remote_user",
        "date",
        "method",
        "url",
        "http_version",
        "status",
        "content_length",
        "referrer",
        "user_agent",
        "response_time",
    }
)

SkipPredicate = Callable[[Request, int], bool]


def template_fields(template: str) -> Set[str]:
    """Return the top-level field names a str.format template refers to."""
    fields = set()
    for _, field_name, _, _ in string.Formatter().parse(template):
        if field_name is None:
            continue
        if field_name == "" or field_name.isdigit():
            raise ValueError("positional fields are not supported")
        fields.add(field_name.split(".", 1)[0].split("[", 1)[0])
    return fields


def status_below(threshold: int) -> SkipPredicate:
    """Build a skip predicate that drops responses with status < threshold."""

    def skip(request: Request, status_code: int) -> bool:
        return status_code < threshold

    return skip


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Writes one access log record per request.

    Log level follows the status code:
        5xx → ERROR
        4xx → WARNING
        else → INFO

    Failures raised downstream are logged with their failure status and
    re-raised unchanged for the failure boundary.
    """

    def __init__(self, app, format: str = DEFAULT_FORMAT, skip: Optional[SkipPredicate] = None):
        super().__init__(app)
        self.format = format
        self.template = FORMAT_PRESETS.get(format, format)
        self.skip = skip

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            self._log(request, status_of(exc), None, start_time)
            raise
        self._log(
            request,
            response.status_code,
            response.headers.get("content-length"),
            start_time,
        )
        return response

    def _log(
        self,
        request: Request,
        status: int,
        content_length: Optional[str],
        start_time: float,
    ) -> None:
        if self.skip is not None and self.skip(request, status):
            return

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        fields = self._fields(request, status, content_length, start_time)
        logger.log(log_level, self.template.format(**fields), extra={"access": fields})

    @staticmethod
    def _fields(
        request: Request,
        status: int,
        content_length: Optional[str],
        start_time: float,
    ) -> Dict[str, Union[str, int, float]]:
        url = request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return {
            "remote_addr": request.client.host if request.client else "-",
            "remote_user": "-",
            "date": datetime.now(timezone.utc).strftime("%d/%b/%Y:%H:%M:%S +0000"),
            "method": request.method,
            "url": url,
            "http_version": request.scope.get("http_version", "1.1"),
            "status": status,
            "content_length": content_length or "-",
            "referrer": request.headers.get("referer", "-"),
            "user_agent": request.headers.get("user-agent", "-"),
            "response_time": (time.perf_counter() - start_time) * 1000,
        }


def configure_logger(
    options: Optional[Union["LoggingOptions", Mapping[str, object]]] = None,
) -> Middleware:
    """
    Turn logging options into a RequestLoggingMiddleware declaration.

    options=None → "dev" format, nothing skipped.
    options.error_limit=T → responses with status < T are skipped.
    """
    from oas3app.options import LoggingOptions

    if options is None:
        return Middleware(RequestLoggingMiddleware, format=DEFAULT_FORMAT, skip=None)
    if not isinstance(options, LoggingOptions):
        options = LoggingOptions.model_validate(options)

    skip = None
    if options.error_limit is not None:
        skip = status_below(options.error_limit)
    return Middleware(RequestLoggingMiddleware, format=options.format, skip=skip)
