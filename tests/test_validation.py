"""
oas3-app: Validation, Normalization & Dispatch Tests
=====================================================

What:  Request validation against the petstore definition, parameter
       normalization and definition-driven routing.

What we test:
    ✅ Unknown path → 404, unknown method → 405, bad params/body → 400
    ✅ Security requirements → 401; when disabled, parameters are still validated
    ✅ ignore_paths / validate_requests=False bypass validation
    ✅ Missing handlers → 501; None results → 204; route failures keep status
"""

import pytest

from oas3app import AppConfig, AppOptions, RoutingOptions, ValidatorOptions
from oas3app.routing import base_path_of, build_routes, route_path

CONTROLLERS = "petstore_api.controllers"


def petstore_app(definition_path, **options):
    options.setdefault("routing", RoutingOptions(controllers=CONTROLLERS))
    return AppConfig(definition_path, AppOptions(**options)).get_app()


class TestRequestValidation:
    """Tests for the validator stage."""

    @pytest.mark.asyncio
    async def test_unknown_path(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.get("/owners")

        assert response.status_code == 404
        body = response.json()
        assert "message" in body
        assert body["errors"][0]["error_code"] == "PathNotFound"

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.put("/pets", json={"name": "x"})

        assert response.status_code == 405
        assert response.json()["errors"][0]["error_code"] == "OperationNotFound"

    @pytest.mark.asyncio
    async def test_invalid_query_parameter(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.get("/pets", params={"limit": 500})

        assert response.status_code == 400
        errors = response.json()["errors"]
        assert any("limit" in error["path"] + error["message"] for error in errors)

    @pytest.mark.asyncio
    async def test_invalid_path_parameter(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.get("/pets/rex")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_required_body_property(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.post("/pets", json={"tag": "dog"})

        assert response.status_code == 400
        body = response.json()
        assert all(error["path"].startswith("/body") for error in body["errors"])

    @pytest.mark.asyncio
    async def test_malformed_json_rejected_before_validation(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.post(
                "/pets", content=b'{"name": ', headers={"Content-Type": "application/json"}
            )

        assert response.status_code == 400
        assert response.json()["message"].startswith("Unexpected token in JSON")

    @pytest.mark.asyncio
    async def test_security_requirement(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.delete("/pets/1")

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_security_disabled_still_validates_parameters(self, definition_path, client_for):
        app = petstore_app(definition_path, validator=ValidatorOptions(validate_security=False))
        async with client_for(app) as client:
            response = await client.delete("/pets/rex")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_security_disabled_keeps_parameters(self, definition_path, client_for):
        seen = {}

        async def capture(request, call_next):
            seen.update(request.state.params)
            return await call_next(request)

        options = AppOptions(
            routing=RoutingOptions(controllers=CONTROLLERS),
            validator=ValidatorOptions(validate_security=False),
        )
        app = AppConfig(definition_path, options, [capture]).get_app()
        async with client_for(app) as client:
            response = await client.delete("/pets/1")

        assert seen == {"petId": 1}
        # passes validation; deletePet has no handler
        assert response.status_code == 501

    @pytest.mark.asyncio
    async def test_ignore_paths(self, definition_path, client_for):
        app = petstore_app(definition_path, validator=ValidatorOptions(ignore_paths=r"^/pets$"))
        async with client_for(app) as client:
            ignored = await client.get("/pets", params={"limit": "2"})
            checked = await client.get("/pets/rex")

        assert ignored.status_code == 200
        assert len(ignored.json()["pets"]) == 2
        assert checked.status_code == 400

    @pytest.mark.asyncio
    async def test_validation_disabled_uses_raw_parameters(self, definition_path, client_for):
        seen = {}

        async def capture(request, call_next):
            seen.update(request.state.params)
            return await call_next(request)

        options = AppOptions(
            routing=RoutingOptions(controllers=CONTROLLERS),
            validator=ValidatorOptions(validate_requests=False),
        )
        app = AppConfig(definition_path, options, [capture]).get_app()
        async with client_for(app) as client:
            response = await client.get("/owners", params={"q": "x"})

        assert seen == {"q": "x"}
        # not in the route table either
        assert response.status_code == 404
        assert response.json() == {"message": "Not Found"}


class TestDispatch:
    """Tests for definition-driven routing."""

    @pytest.mark.asyncio
    async def test_missing_handler_answers_501(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.delete("/pets/1", headers={"X-API-Key": "secret"})

        assert response.status_code == 501
        assert response.json() == {"message": "Handler 'pets.deletePet' is not implemented"}

    @pytest.mark.asyncio
    async def test_none_result_is_204(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.get("/health")

        assert response.status_code == 204
        assert response.content == b""

    @pytest.mark.asyncio
    async def test_route_failure_status_and_fields(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.get("/pets/99")

        assert response.status_code == 404
        assert response.json() == {"message": "Pet not found", "errors": [{"petId": 99}]}

    @pytest.mark.asyncio
    async def test_unexpected_handler_error_is_500(self, definition_path, client_for):
        async with client_for(petstore_app(definition_path)) as client:
            response = await client.get("/crash")

        assert response.status_code == 500
        assert response.json() == {"message": "Internal Server Error"}

    @pytest.mark.asyncio
    async def test_no_controllers_means_no_routes(self, definition_path, client_for):
        app = AppConfig(definition_path).get_app()
        async with client_for(app) as client:
            response = await client.get("/pets")

        assert response.status_code == 404
        assert response.json() == {"message": "Not Found"}

    def test_base_path_from_servers(self):
        assert base_path_of({"servers": [{"url": "https://api.example.com/v2/"}]}) == "/v2"
        assert base_path_of({"servers": [{"url": "/v1"}]}) == "/v1"
        assert base_path_of({"servers": [{"url": "/"}]}) == ""
        assert base_path_of({}) == ""

    def test_build_routes_prefix(self):
        document = {
            "servers": [{"url": "/v1"}],
            "paths": {"/pets": {"get": {"operationId": "listPets", "x-router-controller": "pets"}}},
        }
        routes = build_routes(document, CONTROLLERS)
        assert [(r.path, sorted(r.methods)) for r in routes] == [("/v1/pets", ["GET", "HEAD"])]

        routes = build_routes(document, CONTROLLERS, base_path="")
        assert routes[0].path == "/pets"

    def test_build_routes_without_controllers(self):
        assert build_routes({"paths": {"/pets": {"get": {}}}}, None) == []

    @pytest.mark.parametrize(
        "template, expected",
        [
            ("/pets/{petId}", "/pets/{petId}"),
            ("/pets/{pet-id}", "/pets/{p0}"),
            ("/owners/{owner_id}/pets/{pet.id}", "/owners/{owner_id}/pets/{p1}"),
        ],
    )
    def test_route_path(self, template, expected):
        assert route_path(template) == expected

    @pytest.mark.asyncio
    async def test_hyphenated_path_parameter(self, write_definition, client_for):
        path = write_definition(
            """
openapi: 3.0.3
info: {title: Keys, version: "1"}
paths:
  /pets/{pet-id}:
    get:
      operationId: showPetByKey
      x-router-controller: pets
      parameters:
        - {name: pet-id, in: path, required: true, schema: {type: integer}}
      responses:
        '200': {description: A pet}
"""
        )
        app = AppConfig(path, AppOptions(routing=RoutingOptions(controllers=CONTROLLERS))).get_app()
        async with client_for(app) as client:
            found = await client.get("/pets/2")
            missing = await client.get("/pets/9")

        assert found.status_code == 200
        assert found.json()["name"] == "Tom"
        assert missing.json() == {"message": "Pet not found", "errors": [{"pet-id": 9}]}

    @pytest.mark.asyncio
    async def test_router_method_not_allowed_keeps_allow_header(self, definition_path, client_for):
        app = petstore_app(definition_path, validator=ValidatorOptions(validate_requests=False))
        async with client_for(app) as client:
            response = await client.put("/pets", json={"name": "x"})

        assert response.status_code == 405
        assert "GET" in response.headers["allow"]
