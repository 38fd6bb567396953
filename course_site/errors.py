"""
API error taxonomy.

Raising one of these inside a request handler produces
`{"error": <message>}` with the matching status code (see the handlers
registered in `gateway.server`).
"""

from typing import Any, Dict, Optional, Type, TypeVar

from flask import request
from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


class ApiError(Exception):
    status_code = 400
    default_message = "Bad request"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidInput(ApiError):
    status_code = 400
    default_message = "Invalid input"


class InvalidCredentials(ApiError):
    status_code = 401
    default_message = "Invalid credentials"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "unauthorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "not found"


class InvalidOperation(ApiError):
    status_code = 400
    default_message = "Invalid operation"


class RateLimited(ApiError):
    status_code = 429
    default_message = "Too many requests. Please try again later."


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    msg = first.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


def parse_body(model: Type[M]) -> M:
    """
    Validate the JSON body of the current request against `model`.

    Raises:
        InvalidInput: If the body is missing required fields or has bad values.
    """
    data: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidInput(_describe(e)) from e
