"""
oas3-app: Documentation UI Middleware
======================================

What:  Serves the parsed definition document and an interactive viewer for it.
How:   GET <api_docs_path> answers with the document as JSON;
       GET <docs_path> (trailing slash optional) answers with the Swagger UI
       page produced by FastAPI, pointed at <api_docs_path>.
       Every other request passes through untouched.
When:  Registered before the validator, so documentation paths never need
       to appear in the definition document.
"""

from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.openapi.docs import get_swagger_ui_html
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

DEFAULT_TITLE = "API documentation"


class DocsUIMiddleware(BaseHTTPMiddleware):
    """
    Args:
        document:               Parsed definition (shared, never modified).
        api_docs_path:          Path serving the JSON document.
        docs_path:              Path serving the UI page.
        title:                  Page title; None → info.title of the document.
        swagger_ui_parameters:  Extra Swagger UI configuration.
    """

    def __init__(
        self,
        app,
        document: Dict[str, Any],
        api_docs_path: str = "/api-docs",
        docs_path: str = "/docs",
        title: Optional[str] = None,
        swagger_ui_parameters: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(app)
        self.document = document
        self.api_docs_path = api_docs_path
        self.docs_path = docs_path
        info = document.get("info") or {}
        self.title = title or info.get("title") or DEFAULT_TITLE
        self.swagger_ui_parameters = swagger_ui_parameters

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.method not in ("GET", "HEAD"):
            return await call_next(request)

        path = request.url.path.rstrip("/") or "/"
        if path == self.api_docs_path:
            return JSONResponse(jsonable_encoder(self.document))
        if path == self.docs_path:
            return get_swagger_ui_html(
                openapi_url=self.api_docs_path,
                title=self.title,
                swagger_ui_parameters=self.swagger_ui_parameters,
            )
        return await call_next(request)
