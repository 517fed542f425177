"""
oas3-app: Assembler Option Models
==================================

What:  Typed, closed option models accepted by AppConfig.
How:   Pydantic models with extra="forbid": an unknown key is a
       ValidationError at construction, never silently ignored. Every field
       documents its default; all models are frozen once built.
Who:   Built by callers (or by Settings.to_app_options()) and read once by
       the assembler.

Option tree:
    AppOptions
    ├── routing:          RoutingOptions     controllers package, base path
    ├── parser_limit:     int                bytes, accepts "100kb"-style strings
    ├── validator:        ValidatorOptions   None → {api_spec: definition path}
    ├── logging:          LoggingOptions     None → "dev" format, no skipping
    ├── cors:             CorsOptions        cors-package defaults
    ├── docs:             DocsOptions        /api-docs + /docs
    ├── app:              Starlette          pre-existing application, optional
    └── json_media_type:  str                extra media type parsed as JSON
"""

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from starlette.applications import Starlette

from oas3app.middleware.logging import FORMAT_PRESETS, template_fields, LOG_FIELDS


# ══════════════════════════════════════════════════════════════════════════
# Size parsing
# ══════════════════════════════════════════════════════════════════════════

_SIZE_UNITS = {
    "b": 1,
    "kb": 1 << 10,
    "mb": 1 << 20,
    "gb": 1 << 30,
    "tb": 1 << 40,
    "pb": 1 << 50,
}

_SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(b|kb|mb|gb|tb|pb)?\s*$", re.IGNORECASE)


def parse_size(value: Union[int, str]) -> int:
    """
    Convert a byte size like "100kb" or "1.5mb" to an integer byte count.

    Units are base 1024 and case-insensitive; a bare number means bytes.
    Raises ValueError for anything else (negative, unknown unit, empty).
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Size must not be negative: {value}")
        return value
    match = _SIZE_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid size: {value!r}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[(unit or "b").lower()])


_CLOSED = ConfigDict(extra="forbid", frozen=True)


# ══════════════════════════════════════════════════════════════════════════
# Stage options
# ══════════════════════════════════════════════════════════════════════════


class RoutingOptions(BaseModel):
    """
    What:  Where the route dispatcher finds controller functions.

    controllers:  Dotted package path; operation handlers are looked up as
                  <controllers>.<x-router-controller>.<operationId>.
                  None → no routes are registered.
    base_path:    Prefix for every route. None → path of the first
                  `servers` entry of the document ("" when absent).
    """

    model_config = _CLOSED

    controllers: Optional[str] = None
    base_path: Optional[str] = None

    @field_validator("base_path")
    @classmethod
    def normalize_base_path(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            raise ValueError(f"base_path must start with '/': {v!r}")
        return v


class ValidatorOptions(BaseModel):
    """
    What:  Request validation switches.

    api_spec:           Always overridden with the definition path by the
                        assembler; kept for parity with callers that set it.
    validate_requests:  False → validation stage passes everything through.
    validate_security:  False → security requirements are not evaluated.
    ignore_paths:       Regular expression; matching request paths skip
                        validation (re.search semantics).
    """

    model_config = _CLOSED

    api_spec: Optional[str] = None
    validate_requests: bool = True
    validate_security: bool = True
    ignore_paths: Optional[str] = None

    @field_validator("ignore_paths")
    @classmethod
    def validate_ignore_paths(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"ignore_paths is not a valid regular expression: {e}") from e
        return v


class LoggingOptions(BaseModel):
    """
    What:  Access log format and status threshold.

    format:       Preset name (combined, common, dev, short, tiny) or a
                  str.format template over the access log fields.
    error_limit:  Responses with a status strictly below this are not
                  logged. Accepts an int or a decimal string ("400").
    """

    model_config = _CLOSED

    format: str = "dev"
    error_limit: Optional[int] = None

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v in FORMAT_PRESETS:
            return v
        try:
            fields = template_fields(v)
        except ValueError as e:
            raise ValueError(f"Invalid log format template: {e}") from e
        unknown = sorted(fields - LOG_FIELDS)
        if unknown:
            raise ValueError(
                f"Unknown log format fields {unknown}. Allowed: {sorted(LOG_FIELDS)}"
            )
        return v

    @field_validator("error_limit", mode="before")
    @classmethod
    def parse_error_limit(cls, v: Any) -> Optional[int]:
        if v is None:
            return None
        if isinstance(v, bool):
            raise ValueError("error_limit must be a number or a numeric string")
        if isinstance(v, int):
            return v
        if isinstance(v, str) and v.strip().isdigit():
            return int(v.strip())
        raise ValueError(f"error_limit must be a number or a numeric string, got {v!r}")


class CorsOptions(BaseModel):
    """
    Cross-origin policy, passed to Starlette's CORSMiddleware as keywords.

    Defaults follow the cors package: any origin, the common methods,
    request headers reflected, no credentials.
    """

    model_config = _CLOSED

    allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    allow_origin_regex: Optional[str] = None
    allow_methods: List[str] = Field(
        default_factory=lambda: ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"]
    )
    allow_headers: List[str] = Field(default_factory=lambda: ["*"])
    allow_credentials: bool = False
    expose_headers: List[str] = Field(default_factory=list)
    max_age: int = Field(default=600, ge=0)


class DocsOptions(BaseModel):
    """
    Documentation UI paths and page settings.

    api_docs_path:          Serves the parsed definition as JSON.
    docs_path:              Serves the Swagger UI page.
    title:                  Page title; None → document info.title.
    swagger_ui_parameters:  Extra Swagger UI configuration keys.
    """

    model_config = _CLOSED

    api_docs_path: str = "/api-docs"
    docs_path: str = "/docs"
    title: Optional[str] = None
    swagger_ui_parameters: Optional[Dict[str, Any]] = None

    @field_validator("api_docs_path", "docs_path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"Path must start with '/': {v!r}")
        return v.rstrip("/") or "/"


# ══════════════════════════════════════════════════════════════════════════
# Top-level bundle
# ══════════════════════════════════════════════════════════════════════════


class AppOptions(BaseModel):
    """
    The full options bundle for AppConfig.

    parser_limit defaults to "100kb" (102400 bytes) and is stored in bytes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, arbitrary_types_allowed=True)

    routing: RoutingOptions = Field(default_factory=RoutingOptions)
    parser_limit: int = Field(default="100kb", validate_default=True)
    validator: Optional[ValidatorOptions] = None
    logging: Optional[LoggingOptions] = None
    cors: CorsOptions = Field(default_factory=CorsOptions)
    docs: DocsOptions = Field(default_factory=DocsOptions)
    app: Optional[Starlette] = None
    json_media_type: str = "application/json"

    @field_validator("parser_limit", mode="before")
    @classmethod
    def validate_parser_limit(cls, v: Any) -> int:
        return parse_size(v)

    @field_validator("json_media_type")
    @classmethod
    def validate_media_type(cls, v: str) -> str:
        v = v.strip().lower()
        if "/" not in v:
            raise ValueError(f"Not a media type: {v!r}")
        return v
