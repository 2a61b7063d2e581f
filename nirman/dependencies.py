"""
Common dependencies for route handlers.
"""
from typing import Optional

from fastapi import Request

from nirman.auth import Session, deserialize_session, validate_session
from nirman.config import BEARER_SCHEME
from nirman.exceptions import AuthenticationError
from nirman.roles import Capability, policy


def get_bearer_token(request: Request) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header."""
    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != BEARER_SCHEME.lower() or not token.strip():
        return None
    return token.strip()


def get_current_session(request: Request) -> Optional[Session]:
    """
    Get the caller's session from the bearer token.
    Returns None if the request is not authenticated.
    """
    token = get_bearer_token(request)
    if not token:
        return None

    session_id = deserialize_session(token)
    if not session_id:
        return None

    return validate_session(session_id)


def require_auth(request: Request) -> Session:
    """
    Dependency that requires authentication.
    Raises AuthenticationError (401) if the token is missing, invalid or expired.
    """
    session = get_current_session(request)
    if not session:
        raise AuthenticationError()
    return session


def require_capability(capability: Capability):
    """
    Build a dependency that requires authentication plus one capability.
    Raises AuthorizationError (403) when the session's role lacks it.
    """
    def dependency(request: Request) -> Session:
        session = require_auth(request)
        policy.require(session, capability)
        return session

    dependency.__name__ = f"require_{capability.name.lower()}"
    return dependency
