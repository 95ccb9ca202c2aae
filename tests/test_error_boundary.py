"""Тесты единого обработчика ошибок."""

import pytest
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from gateway.error_handlers import (
    build_error_response,
    error_boundary_middleware,
    handle_http_error,
    handle_validation_error,
)
from gateway.errors import CollaboratorFailure, PayloadTooLarge, ValidationFailure

TOO_LARGE = {"error": "File too large", "message": "Maximum file size is 10MB"}


def make_request(path: str = "/ocr", method: str = "POST") -> Request:
    return Request({
        "type": "http",
        "method": method,
        "path": path,
        "headers": [],
        "query_string": b"",
    })


class TestClassification:

    def test_size_marker_is_400(self):
        response = build_error_response(make_request(), PayloadTooLarge(12, 10))

        assert response.status_code == 400
        assert response.body == b'{"error":"File too large","message":"Maximum file size is 10MB"}'

    def test_validation_without_marker_is_500(self):
        response = build_error_response(make_request(), ValidationFailure("Only image files are allowed!"))

        assert response.status_code == 500
        assert b'"message":"Only image files are allowed!"' in response.body

    def test_collaborator_failure_is_500(self):
        exc = CollaboratorFailure("Failed to fetch OCR logs: timeout", collaborator="database")

        response = build_error_response(make_request("/logs", "GET"), exc)

        assert response.status_code == 500
        assert b'"error":"Internal server error"' in response.body
        assert b"Failed to fetch OCR logs: timeout" in response.body

    def test_plain_exception_message(self):
        response = build_error_response(make_request(), KeyError("image"))

        assert response.status_code == 500
        assert b"image" in response.body

    def test_exception_without_message_uses_type(self):
        response = build_error_response(make_request(), RuntimeError())

        assert b'"message":"RuntimeError"' in response.body


@pytest.fixture
def boundary_client():
    """Отдельное приложение с тем же обработчиком ошибок."""
    app = FastAPI()
    app.middleware("http")(error_boundary_middleware)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)

    @app.get("/sync")
    def sync_failure():
        raise ValueError("sync boom")

    @app.get("/async")
    async def async_failure():
        raise CollaboratorFailure("async boom", collaborator="ocr")

    @app.get("/too-large")
    async def too_large():
        raise PayloadTooLarge(12, 10)

    @app.get("/typed")
    async def typed(limit: int):
        return {"limit": limit}

    @app.get("/body-too-large")
    async def body_too_large():
        # так FastAPI заворачивает ошибку чтения тела
        raise StarletteHTTPException(
            status_code=400, detail="There was an error parsing the body"
        ) from PayloadTooLarge(12, 10)

    @app.get("/teapot")
    async def teapot():
        raise StarletteHTTPException(status_code=418, detail="teapot")

    return TestClient(app)


class TestBoundaryReachability:

    def test_sync_throw(self, boundary_client):
        response = boundary_client.get("/sync")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "message": "sync boom"}

    def test_async_rejection(self, boundary_client):
        response = boundary_client.get("/async")

        assert response.status_code == 500
        assert response.json()["message"] == "async boom"

    def test_size_marker(self, boundary_client):
        response = boundary_client.get("/too-large")

        assert response.status_code == 400
        assert response.json() == TOO_LARGE

    def test_request_validation(self, boundary_client):
        response = boundary_client.get("/typed?limit=abc")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        message = response.json()["message"]
        assert message.startswith("Invalid request: query.limit: ")
        assert "abc" not in message
        assert "'input'" not in message
        assert "'loc'" not in message

    def test_size_marker_inside_body_parse_error(self, boundary_client):
        response = boundary_client.get("/body-too-large")

        assert response.status_code == 400
        assert response.json() == TOO_LARGE

    def test_other_http_errors(self, boundary_client):
        response = boundary_client.get("/teapot")

        assert response.status_code == 500
        assert "teapot" in response.json()["message"]

    def test_unknown_route_not_found(self, boundary_client):
        response = boundary_client.get("/nowhere")

        assert response.status_code == 404
        assert "/nowhere" in response.json()["message"]
