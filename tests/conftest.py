"""
oas3-app: Test Configuration (conftest.py)
===========================================

What:  Shared pytest fixtures for the test suite.
How:   pytest puts this directory on sys.path, so the petstore fixture API
       (tests/petstore_api) imports as `petstore_api`.

Fixtures:
    definition_path   Path of the petstore OpenAPI definition
    petstore_options  AppOptions routing to petstore_api.controllers
    client_for        Factory: HTTPX AsyncClient talking to an ASGI app
    write_definition  Factory: writes a definition file into tmp_path
"""

import os
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

# Keep tests quiet and independent of a developer's .env
os.environ["OAS3_LOG_LEVEL"] = "WARNING"
os.environ.pop("OAS3_DEFINITION_PATH", None)

from oas3app.options import AppOptions, RoutingOptions  # noqa: E402

PETSTORE = Path(__file__).parent / "petstore_api" / "openapi.yaml"


@pytest.fixture
def definition_path() -> str:
    return str(PETSTORE)


@pytest.fixture
def petstore_options() -> AppOptions:
    return AppOptions(routing=RoutingOptions(controllers="petstore_api.controllers"))


@pytest.fixture
def client_for():
    """
    Provides a factory for async HTTP test clients.

    Usage:
        async with client_for(app) as client:
            response = await client.get("/pets")
    """

    def make(app) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return make


@pytest.fixture
def write_definition(tmp_path):
    """Writes text to a definition file in a fresh temp dir and returns its path."""

    def write(text: str, name: str = "openapi.yaml") -> str:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)

    return write
