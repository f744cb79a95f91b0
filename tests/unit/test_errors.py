"""Unit tests for the error taxonomy rendering."""
import json

from fastapi.exceptions import RequestValidationError

from railfaults.errors import AuthError, ConflictError, render_error, request_validation_handler


def test_taxonomy_renders_kind_and_detail():
    response = render_error(ConflictError("Chiefdom 'Kars' already exists"))

    assert response.status_code == 409
    assert json.loads(response.body) == {"error": "conflict", "detail": "Chiefdom 'Kars' already exists"}


def test_auth_errors_carry_basic_challenge():
    assert render_error(AuthError("Invalid credentials")).headers["www-authenticate"] == "Basic"


def test_binary_request_body_still_renders_as_validation_error():
    exc = RequestValidationError(
        [
            {
                "type": "model_attributes_type",
                "loc": ("body",),
                "msg": "Input should be a valid dictionary",
                "input": b"--boundary\r\n\xff\xd8\xff\xe0 jpeg bytes",
            },
            {"type": "missing", "loc": ("body", "title"), "msg": "Field required", "input": {"description": "d"}},
        ]
    )

    response = request_validation_handler(None, exc)

    assert response.status_code == 400
    body = json.loads(response.body)
    assert body["error"] == "validation_error"
    assert "input" not in body["errors"][0]
    assert body["errors"][1]["input"] == {"description": "d"}
