"""Helpers shared by the API Gateway proxy handlers."""

import base64
import json
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.errors import (
    AuthenticationError,
    AuthorizationError,
    ErrorCode,
    TripDeskError,
    USER_MESSAGES,
    ValidationError,
)
from core.models.principal import Principal
from core.models.status import Role

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Handler = Callable[[dict[str, Any], object], dict[str, Any]]


def json_response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }


def error_response(error: TripDeskError) -> dict[str, Any]:
    """Structured failure body; ``retryable`` lets clients tell waiting from failing."""
    return json_response(
        error.http_status,
        {
            "success": False,
            "error": {
                "code": error.code.value,
                "message": error.user_message,
                "retryable": error.retryable,
                **error.details,
            },
        },
    )


def raw_body(event: dict[str, Any]) -> str:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body).decode("utf-8")
    return body


def header(event: dict[str, Any], name: str) -> str | None:
    """Case-insensitive header lookup."""
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def path_param(event: dict[str, Any], name: str) -> str:
    value = (event.get("pathParameters") or {}).get(name)
    if not value:
        raise ValidationError(f"Missing path parameter: {name}", code=ErrorCode.INVALID_REQUEST)
    return value


def query_param(event: dict[str, Any], name: str) -> str:
    value = (event.get("queryStringParameters") or {}).get(name)
    if not value:
        raise ValidationError(f"Missing query parameter: {name}", code=ErrorCode.INVALID_REQUEST)
    return value


def parse_body(event: dict[str, Any], model: type[ModelT]) -> ModelT:
    try:
        payload = json.loads(raw_body(event) or "{}")
    except json.JSONDecodeError as e:
        raise ValidationError(f"Request body is not JSON: {e}", code=ErrorCode.INVALID_REQUEST) from e
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model.__name__}: {e}",
            details={"fields": [".".join(str(p) for p in err["loc"]) for err in e.errors()]},
        ) from e


def principal_from_event(event: dict[str, Any]) -> Principal:
    """Read the caller set by the REQUEST authorizer into the request context."""
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    user_id = authorizer.get("userId")
    role = authorizer.get("role")
    if not user_id or not role:
        raise AuthenticationError("Request has no authorizer context")
    try:
        return Principal(user_id=user_id, role=Role(role))
    except ValueError as e:
        raise AuthenticationError(f"Unknown role in authorizer context: {role}") from e


def require_role(event: dict[str, Any], *roles: Role) -> Principal:
    principal = principal_from_event(event)
    if principal.role not in roles:
        raise AuthorizationError(f"Role {principal.role.value} may not call this endpoint")
    return principal


def api_handler(func: Handler) -> Handler:
    """Turn domain errors into structured responses and anything else into a 500."""

    def wrapper(event: dict[str, Any], context: object) -> dict[str, Any]:
        try:
            return func(event, context)
        except TripDeskError as e:
            if e.http_status >= 500:
                logger.error("%s failed: %s", func.__module__, e.message)
            else:
                logger.info("%s rejected: %s (%s)", func.__module__, e.message, e.code.value)
            return error_response(e)
        except Exception:
            logger.exception("Unhandled error in %s", func.__module__)
            return json_response(
                500,
                {
                    "success": False,
                    "error": {
                        "code": ErrorCode.INTERNAL_ERROR.value,
                        "message": USER_MESSAGES[ErrorCode.INTERNAL_ERROR],
                        "retryable": False,
                    },
                },
            )

    wrapper.__name__ = func.__name__
    wrapper.__doc__ = func.__doc__
    return wrapper
