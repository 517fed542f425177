"""
oas3-app: OpenAPI 3 Application Assembler
==========================================

What:  Wires a fixed middleware pipeline around a FastAPI/Starlette
       application, driven by an OpenAPI 3 definition file.

Package layout:
    ┌─────────────────────────────────────┐
    │  assembler.py   AppConfig           │  ← orders and installs the stages
    ├─────────────────────────────────────┤
    │  middleware/    pipeline stages     │  ← one module per stage
    │  routing.py     route dispatch      │  ← routes from the definition
    ├─────────────────────────────────────┤
    │  options.py     typed options       │  ← closed option models
    │  definition.py  document loading    │
    │  exceptions.py  failure hierarchy   │
    ├─────────────────────────────────────┤
    │  config.py / main.py                │  ← environment + uvicorn factory
    └─────────────────────────────────────┘

Usage:
    from oas3app import AppConfig, AppOptions

    app = AppConfig(
        "api/openapi.yaml",
        AppOptions(routing={"controllers": "myapi.controllers"}),
    ).get_app()
"""

from oas3app.assembler import AppConfig
from oas3app.options import (
    AppOptions,
    CorsOptions,
    DocsOptions,
    LoggingOptions,
    RoutingOptions,
    ValidatorOptions,
)

__version__ = "1.0.0"

__all__ = [
    "AppConfig",
    "AppOptions",
    "CorsOptions",
    "DocsOptions",
    "LoggingOptions",
    "RoutingOptions",
    "ValidatorOptions",
]
