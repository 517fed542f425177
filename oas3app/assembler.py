"""
oas3-app: Application Assembler
================================

What:  Builds a fully configured application around an OpenAPI 3 definition.
How:   Stages the pipeline in execution order, then installs it on the
       application in one go. Starlette runs the LAST added middleware FIRST,
       so the staged list is added in reverse.
Who:   Called once by the embedding program (or oas3app.main.create_app).
When:  Before the application serves its first request.

Pipeline (execution order):
    ┌───────────────────────────────────────────────────────────────┐
    │  cors                 CORSMiddleware                          │
    │  ┌─────────────────────────────────────────────────────────┐  │
    │  │ failure boundary   FailureBoundaryMiddleware            │  │
    │  │  body_parser       BodyParserMiddleware                 │  │
    │  │  logging           RequestLoggingMiddleware             │  │
    │  │  cookies           CookieParserMiddleware               │  │
    │  │  docs              DocsUIMiddleware                     │  │
    │  │  validator         RequestValidatorMiddleware           │  │
    │  │  parameters        ParameterNormalizationMiddleware     │  │
    │  │  custom:*          caller middlewares                   │  │
    │  │  router            routes derived from the definition   │  │
    │  └─────────────────────────────────────────────────────────┘  │
    └───────────────────────────────────────────────────────────────┘

The failure handler is a capability rather than a positional stage: it
wraps everything inside CORS (error responses keep their CORS headers) and is
also the application's exception handler for failures raised by routes.

Nothing touches the application until every step succeeded, so a missing or
malformed definition never leaves a half-configured application behind.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from fastapi import FastAPI
from starlette.applications import Starlette
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from oas3app.definition import build_openapi, load_definition
from oas3app.exceptions import RequestFailure
from oas3app.middleware.body_parser import BodyParserMiddleware
from oas3app.middleware.cookies import CookieParserMiddleware
from oas3app.middleware.docs import DocsUIMiddleware
from oas3app.middleware.errors import FailureBoundaryMiddleware, handle_request_failure
from oas3app.middleware.logging import configure_logger
from oas3app.middleware.parameters import ParameterNormalizationMiddleware
from oas3app.middleware.validator import RequestValidatorMiddleware
from oas3app.options import AppOptions, LoggingOptions, ValidatorOptions
from oas3app.routing import build_routes

logger = logging.getLogger(__name__)

CustomMiddleware = Union[Middleware, Callable[..., Any]]


def as_middleware(custom: CustomMiddleware) -> Middleware:
    """
    Normalize a caller-supplied middleware.

    Middleware declaration      → used as is
    async (request, call_next)  → wrapped in BaseHTTPMiddleware
    """
    if isinstance(custom, Middleware):
        return custom
    if callable(custom) and not isinstance(custom, type):
        return Middleware(BaseHTTPMiddleware, dispatch=custom)
    raise TypeError(
        "Custom middlewares must be starlette Middleware declarations or "
        f"dispatch callables, got {custom!r}"
    )


def _middleware_name(middleware: Middleware) -> str:
    dispatch = middleware.kwargs.get("dispatch")
    if dispatch is not None:
        return getattr(dispatch, "__name__", type(dispatch).__name__)
    return getattr(middleware.cls, "__name__", repr(middleware.cls))


class AppConfig:
    """
    Application assembler.

    Args:
        definition_path:     Path of the OpenAPI definition (YAML or JSON).
        app_options:         AppOptions or a mapping validated into one.
        custom_middlewares:  Run after parameter normalization, before dispatch.
        json_media_type:     Overrides app_options.json_media_type when given.

    Raises:
        OSError, yaml.YAMLError, DefinitionError:  definition unusable
        pydantic.ValidationError:                  invalid or unknown options
        TypeError:                                 unsupported custom middleware
    """

    def __init__(
        self,
        definition_path: str,
        app_options: Optional[Union[AppOptions, Dict[str, Any]]] = None,
        custom_middlewares: Optional[Sequence[CustomMiddleware]] = None,
        json_media_type: Optional[str] = None,
    ):
        # ── 1. Resolve configuration ──────────────────────────────────────
        if app_options is None:
            app_options = AppOptions()
        elif not isinstance(app_options, AppOptions):
            app_options = AppOptions.model_validate(app_options)
        if json_media_type is not None:
            app_options = AppOptions.model_validate(
                {**dict(app_options), "json_media_type": json_media_type}
            )

        self.definition_path = str(definition_path)
        self.options = app_options
        self.routing_options = app_options.routing
        self.parser_limit = app_options.parser_limit
        self.validator_options = self._resolve_validator_options(
            self.definition_path, app_options.validator
        )
        customs = [as_middleware(m) for m in (custom_middlewares or [])]

        # ── 2. Application handle ─────────────────────────────────────────
        app = app_options.app
        if app is None:
            app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

        stages: List[Tuple[str, Middleware]] = []

        # ── 3. CORS ───────────────────────────────────────────────────────
        stages.append(("cors", Middleware(CORSMiddleware, **app_options.cors.model_dump())))
        stages.append(("failure_boundary", Middleware(FailureBoundaryMiddleware)))

        # ── 4. Definition document ────────────────────────────────────────
        self.document = load_definition(self.definition_path)
        openapi = build_openapi(self.document, self.validator_options.validate_security)

        # ── 5. Body parsing ───────────────────────────────────────────────
        stages.append(
            (
                "body_parser",
                Middleware(
                    BodyParserMiddleware,
                    limit=self.parser_limit,
                    json_media_type=app_options.json_media_type,
                ),
            )
        )

        # ── 6. Request logging ────────────────────────────────────────────
        stages.append(("logging", self.configure_logger(app_options.logging)))

        # ── 7. Cookies ────────────────────────────────────────────────────
        stages.append(("cookies", Middleware(CookieParserMiddleware)))

        # ── 8. Documentation UI ───────────────────────────────────────────
        docs = app_options.docs
        stages.append(
            (
                "docs",
                Middleware(
                    DocsUIMiddleware,
                    document=self.document,
                    api_docs_path=docs.api_docs_path,
                    docs_path=docs.docs_path,
                    title=docs.title,
                    swagger_ui_parameters=docs.swagger_ui_parameters,
                ),
            )
        )

        # ── 9. Validation ─────────────────────────────────────────────────
        validator = self.validator_options
        stages.append(
            (
                "validator",
                Middleware(
                    RequestValidatorMiddleware,
                    openapi=openapi,
                    validate_requests=validator.validate_requests,
                    ignore_paths=validator.ignore_paths,
                ),
            )
        )

        # ── 10. Parameter normalization ───────────────────────────────────
        stages.append(("parameters", Middleware(ParameterNormalizationMiddleware)))

        # ── 11. Custom middlewares ────────────────────────────────────────
        for custom in customs:
            stages.append((f"custom:{_middleware_name(custom)}", custom))

        # ── 12. Route dispatch ────────────────────────────────────────────
        self.routes: List[Route] = build_routes(
            self.document,
            self.routing_options.controllers,
            self.routing_options.base_path,
        )

        # ── 13. Failure handler ───────────────────────────────────────────
        # Everything above is staged only; the application is modified below.
        for _, middleware in reversed(stages):
            app.add_middleware(middleware.cls, *middleware.args, **middleware.kwargs)
        app.router.routes.extend(self.routes)
        app.add_exception_handler(RequestFailure, handle_request_failure)
        app.add_exception_handler(StarletteHTTPException, handle_request_failure)

        self._stages = tuple(name for name, _ in stages) + ("router", "failure_handler")
        self.app = app
        logger.info(
            "Configured application from %s: %d stages, %d routes",
            self.definition_path,
            len(stages),
            len(self.routes),
        )

    @staticmethod
    def _resolve_validator_options(
        definition_path: str, options: Optional[ValidatorOptions]
    ) -> ValidatorOptions:
        """api_spec always points at the definition path; the caller's object is not modified."""
        if options is None:
            return ValidatorOptions(api_spec=definition_path)
        return options.model_copy(update={"api_spec": definition_path})

    @staticmethod
    def configure_logger(
        logger_options: Optional[Union[LoggingOptions, Dict[str, Any]]] = None,
    ) -> Middleware:
        return configure_logger(logger_options)

    @property
    def stages(self) -> Tuple[str, ...]:
        """Stage names in execution order."""
        return self._stages

    def get_app(self) -> Starlette:
        return self.app

