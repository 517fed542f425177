"""
oas3-app: Failure Handler Tests
================================

What:  Exception → Failure mapping and the JSON rendering of failures.

What we test:
    ✅ RequestFailure keeps its status, message and errors
    ✅ HTTPException keeps status_code, detail and headers (Allow on 405)
    ✅ Unexpected exceptions become a generic 500
    ✅ The boundary middleware answers failures raised by inner stages
"""

import pytest
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse
from starlette.routing import Route

from oas3app.exceptions import (
    HandlerNotImplementedError,
    PayloadTooLargeError,
    RequestFailure,
    UnsupportedCharsetError,
)
from oas3app.middleware.errors import (
    Failure,
    FailureBoundaryMiddleware,
    failure_from_exception,
    failure_response,
    status_of,
)


class TestFailureMapping:
    def test_request_failure(self):
        failure = failure_from_exception(
            RequestFailure("Conflict", errors=[{"id": 1}], status=409)
        )
        assert failure == Failure(status=409, message="Conflict", errors=[{"id": 1}])

    def test_request_failure_without_status_is_500(self):
        failure = failure_from_exception(RequestFailure("boom"))
        assert failure.status == 500
        assert failure.message == "boom"

    def test_typed_failures_carry_their_status(self):
        assert failure_from_exception(PayloadTooLargeError(10, 20)) == Failure(
            status=413, message="request entity too large"
        )
        assert failure_from_exception(UnsupportedCharsetError("klingon")).status == 415
        assert status_of(HandlerNotImplementedError("deletePet", "pets")) == 501

    def test_http_exception(self):
        failure = failure_from_exception(HTTPException(status_code=404))
        assert failure == Failure(status=404, message="Not Found")

    def test_http_exception_headers_kept(self):
        failure = failure_from_exception(
            HTTPException(status_code=405, headers={"Allow": "GET, HEAD"})
        )
        assert failure.headers == {"Allow": "GET, HEAD"}

        response = failure_response(failure)
        assert response.status_code == 405
        assert response.headers["allow"] == "GET, HEAD"

    def test_unexpected_exception_is_generic_500(self, caplog):
        failure = failure_from_exception(ValueError("secret internals"))
        assert failure == Failure(status=500, message="Internal Server Error")
        assert "secret internals" in caplog.text


class TestFailureResponse:
    def test_full_body(self):
        response = failure_response(Failure(418, "teapot", [{"path": "/body"}]))
        assert response.status_code == 418
        assert response.body == b'{"message":"teapot","errors":[{"path":"/body"}]}'

    def test_empty_failure(self):
        response = failure_response(Failure())
        assert response.status_code == 500
        assert response.body == b"{}"


class RaiseConflict(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        if request.url.path == "/conflict":
            raise RequestFailure("Already exists", status=409)
        return await call_next(request)


async def crash(request):
    raise RuntimeError("kaput")


async def ok(request):
    return PlainTextResponse("ok")


boundary_app = Starlette(
    routes=[Route("/ok", ok), Route("/crash", crash)],
    middleware=[Middleware(FailureBoundaryMiddleware), Middleware(RaiseConflict)],
)


class TestFailureBoundary:
    @pytest.mark.asyncio
    async def test_middleware_failure_rendered(self, client_for):
        async with client_for(boundary_app) as client:
            response = await client.get("/conflict")

        assert response.status_code == 409
        assert response.json() == {"message": "Already exists"}

    @pytest.mark.asyncio
    async def test_route_crash_rendered(self, client_for):
        async with client_for(boundary_app) as client:
            response = await client.get("/crash")

        assert response.status_code == 500
        assert response.json() == {"message": "Internal Server Error"}

    @pytest.mark.asyncio
    async def test_success_passes_through(self, client_for):
        async with client_for(boundary_app) as client:
            response = await client.get("/ok")

        assert response.status_code == 200
        assert response.text == "ok"
