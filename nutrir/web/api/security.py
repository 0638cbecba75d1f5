"""Authentication of realtime connections.

Tokens are issued by the external identity provider; this service only
verifies them and reads one claim: the owning practitioner's id.

Security Impact:
    - Tokens are verified (signature and expiry) before any claim is read
    - A connection without a valid token is refused
    - A valid token without the practitioner claim is accepted but never
      joins a practitioner group, so it receives no targeted events
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import jwt
from fastapi import WebSocket
from starlette.requests import HTTPConnection

from nutrir.infrastructure.settings import AuthConfig

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


class AuthenticationError(Exception):
    """Raised when a connection does not carry a valid token."""
    pass


@dataclass(frozen=True)
class Principal:
    """Authenticated identity of a connection.

    Attributes:
        claims: Verified token claims
        practitioner_id: Value of the configured practitioner claim, if any
    """

    claims: Dict[str, Any] = field(default_factory=dict)
    practitioner_id: Optional[str] = None


def _normalise_token(candidate: Optional[str]) -> Optional[str]:
    if not candidate:
        return None
    value = candidate.strip()
    if not value:
        return None
    if value.lower().startswith(BEARER_PREFIX):
        _, _, remainder = value.partition(" ")
        value = remainder.strip()
    return value or None


def extract_token(connection: HTTPConnection) -> Optional[str]:
    """Find the bearer token of an HTTP request or WebSocket handshake.

    Looks at the Authorization header first, then the ``token`` query
    parameter (browsers cannot set headers on WebSocket handshakes).
    """
    auth_header = connection.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith(BEARER_PREFIX):
        token = _normalise_token(auth_header)
        if token:
            return token
    return _normalise_token(connection.query_params.get("token"))


def decode_principal(token: str, auth_config: AuthConfig) -> Principal:
    """Verify a token and build the principal.

    Parameters:
        token: Encoded JWT
        auth_config: Verification settings

    Returns:
        Principal with the practitioner id claim (None when absent or blank)

    Raises:
        AuthenticationError: If verification is not configured or fails
    """
    if not auth_config.is_configured:
        raise AuthenticationError("Token verification is not configured")

    try:
        claims = jwt.decode(
            token,
            auth_config.jwt_secret.get_secret_value(),
            algorithms=[auth_config.jwt_algorithm],
        )
    except jwt.PyJWTError as e:
        raise AuthenticationError(f"Invalid or expired token: {type(e).__name__}") from e

    raw_id = claims.get(auth_config.practitioner_claim)
    practitioner_id = str(raw_id).strip() if raw_id is not None else None
    return Principal(claims=claims, practitioner_id=practitioner_id or None)


def authenticate_connection(connection: HTTPConnection, auth_config: AuthConfig) -> Principal:
    """Authenticate a request or WebSocket handshake.

    Raises:
        AuthenticationError: If no token is present or it does not verify
    """
    token = extract_token(connection)
    if token is None:
        raise AuthenticationError("Missing bearer token")
    return decode_principal(token, auth_config)


async def reject_websocket(websocket: WebSocket, reason: str) -> None:
    """Close an unauthenticated WebSocket with a policy-violation code."""
    logger.warning(f"Rejecting WebSocket connection: {reason}")
    await websocket.close(code=1008)


def issue_token(practitioner_id: Optional[str], auth_config: AuthConfig, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    """Issue a token the way the identity provider does (local development and tests)."""
    if not auth_config.is_configured:
        raise AuthenticationError("Token verification is not configured")
    claims: Dict[str, Any] = dict(extra_claims or {})
    if practitioner_id is not None:
        claims[auth_config.practitioner_claim] = practitioner_id
    return jwt.encode(claims, auth_config.jwt_secret.get_secret_value(), algorithm=auth_config.jwt_algorithm)
