"""API Gateway REQUEST authorizer: validates the Clerk session token on every REST call."""

import asyncio
import logging
from typing import Any

from core.api import header
from core.auth import get_auth_provider
from core.errors import AuthenticationError

logger = logging.getLogger(__name__)


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    # AuthProvider methods are async; the Clerk SDK calls underneath are
    # synchronous, so asyncio.run() bridges into this sync handler.
    try:
        token = _bearer_token(header(event, "Authorization"))
        auth_provider = get_auth_provider()
        auth_user = asyncio.run(auth_provider.verify_token(token))
        return _allow_policy(event["methodArn"], auth_user.user_id, auth_user.role.value)
    except (KeyError, AuthenticationError) as e:
        logger.info("Denied request: %s", e)
        return _deny_policy(event["methodArn"])


def _bearer_token(value: str | None) -> str:
    if not value:
        raise AuthenticationError("Missing Authorization header")
    scheme, _, token = value.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header is not a Bearer token")
    return token.strip()


def _allow_policy(method_arn: str, user_id: str, role: str) -> dict[str, Any]:
    return {
        "principalId": user_id,
        "policyDocument": {
            "Version": "2012-10-17",
            "Statement": [{"Action": "execute-api:Invoke", "Effect": "Allow", "Resource": method_arn}],
        },
        "context": {"userId": user_id, "role": role},
    }


def _deny_policy(method_arn: str) -> dict[str, Any]:
    return {
        "principalId": "unauthorized",
        "policyDocument": {
            "Version": "2012-10-17",
            "Statement": [{"Action": "execute-api:Invoke", "Effect": "Deny", "Resource": method_arn}],
        },
    }
