"""
oas3-app: Definition-Driven Route Dispatch
===========================================

What:  Derives the application's route table from the definition document.
How:   Every operation becomes a Starlette route on <base path><template>.
       Its handler is the function named by operationId inside the
       controller module <controllers>.<x-router-controller>. Starlette's
       router does the matching; path parameters whose names Starlette
       cannot capture ("/pets/{pet-id}") are renamed in the route path.

Handler contract:
    handler(request)            sync (run in the threadpool) or async
    returns Response            → sent as is
    returns None                → 204 No Content
    returns anything else       → 200 JSON

Operations without a resolvable handler are still routed; they answer 501
(HandlerNotImplementedError) and are reported once at construction.
"""

import importlib
import inspect
import itertools
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from oas3app.exceptions import HandlerNotImplementedError

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
CONTROLLER_KEY = "x-router-controller"

Handler = Callable[[Request], Any]

_TEMPLATE_PARAM = re.compile(r"\{([^{}/]+)\}")
_ROUTE_PARAM_NAME = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


@dataclass(frozen=True)
class Operation:
    """One (method, path) pair of the document and its resolved handler."""

    method: str
    path: str
    operation_id: Optional[str]
    controller: Optional[str]
    handler: Optional[Handler] = None


def base_path_of(document: Dict[str, Any]) -> str:
    """Path component of the first `servers` entry, without trailing slash."""
    servers = document.get("servers") or []
    if not servers or not isinstance(servers[0], dict):
        return ""
    return urlparse(str(servers[0].get("url", ""))).path.rstrip("/")


def route_path(template: str) -> str:
    """
    Turn an OpenAPI path template into a Starlette route path.

    Parameter names Starlette cannot capture ("{pet-id}") would be
    matched as literal text, so they are renamed to p0, p1, ... in
    order of appearance. Handlers read parameters from request.state.params,
    which keeps the names of the document.
    """
    counter = itertools.count()

    def rename(match: re.Match) -> str:
        index = next(counter)
        name = match.group(1)
        return match.group(0) if _ROUTE_PARAM_NAME.fullmatch(name) else f"{{p{index}}}"

    return _TEMPLATE_PARAM.sub(rename, template)


def resolve_handler(
    controllers: str, controller: Optional[str], operation_id: Optional[str]
) -> Optional[Handler]:
    if not controller or not operation_id:
        return None
    module_name = f"{controllers}.{controller}"
    try:
        module = importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        # Only the controller module itself may be missing; a missing
        # controllers package or a broken import inside the module propagates.
        if e.name != module_name:
            raise
        return None
    handler = getattr(module, operation_id, None)
    return handler if callable(handler) else None


def collect_operations(document: Dict[str, Any], controllers: str) -> List[Operation]:
    operations = []
    for path, item in (document.get("paths") or {}).items():
        if not isinstance(item, dict):
            continue
        for method in HTTP_METHODS:
            op = item.get(method)
            if not isinstance(op, dict):
                continue
            controller = op.get(CONTROLLER_KEY) or item.get(CONTROLLER_KEY)
            operation_id = op.get("operationId")
            operations.append(
                Operation(
                    method=method.upper(),
                    path=path,
                    operation_id=operation_id,
                    controller=controller,
                    handler=resolve_handler(controllers, controller, operation_id),
                )
            )
    return operations


def to_response(result: Any) -> Response:
    if isinstance(result, Response):
        return result
    if result is None:
        return Response(status_code=204)
    return JSONResponse(result)


def make_endpoint(operation: Operation) -> Callable[[Request], Any]:
    handler = operation.handler

    async def endpoint(request: Request) -> Response:
        if handler is None:
            raise HandlerNotImplementedError(operation.operation_id, operation.controller)
        if inspect.iscoroutinefunction(handler):
            result = await handler(request)
        else:
            result = await run_in_threadpool(handler, request)
        return to_response(result)

    endpoint.__name__ = operation.operation_id or f"{operation.method.lower()}_endpoint"
    return endpoint


def build_routes(
    document: Dict[str, Any],
    controllers: Optional[str],
    base_path: Optional[str] = None,
) -> List[Route]:
    """
    Build one Starlette route per operation of the document.

    Handlers are resolved here, so a broken controllers package fails before
    anything is added to the application. Returns an empty list when no
    controllers package is configured.
    """
    if not controllers:
        logger.debug("No controllers package configured; skipping route registration")
        return []

    prefix = base_path_of(document) if base_path is None else base_path
    routes = []
    for operation in collect_operations(document, controllers):
        if operation.handler is None:
            logger.warning(
                "No handler for %s %s (controller=%s, operationId=%s); it will answer 501",
                operation.method,
                operation.path,
                operation.controller,
                operation.operation_id,
            )
        routes.append(
            Route(
                prefix + route_path(operation.path),
                make_endpoint(operation),
                methods=[operation.method],
                name=operation.operation_id,
            )
        )
    logger.info("Built %d routes from controllers package '%s'", len(routes), controllers)
    return routes
