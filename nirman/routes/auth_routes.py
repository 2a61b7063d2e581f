"""
Authentication routes: login, logout, current user.
"""
import logging

from fastapi import APIRouter, Depends

from nirman.auth import Session, authenticate_user, create_session, delete_session, serialize_session
from nirman.dependencies import require_auth
from nirman.exceptions import AuthenticationError
from nirman.roles import capability_names
from nirman.schemas import LoginRequest

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login")
async def login(payload: LoginRequest):
    """Exchange email and password for a bearer token."""
    user = authenticate_user(payload.email, payload.password)
    if not user:
        raise AuthenticationError("Invalid email or password")

    session_id, expires_at = create_session(user['id'])
    logger.info("User %s logged in as %s", user['email'], user['role'])

    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "token": serialize_session(session_id),
            "expiresAt": expires_at.isoformat(),
            "user": {
                "id": user['id'],
                "userId": user['user_id'],
                "fullName": user['full_name'],
                "email": user['email'],
                "department": user['department'],
                "role": user['role'],
                "capabilities": capability_names(user['role']),
            },
        },
    }


@router.post("/logout")
async def logout(session: Session = Depends(require_auth)):
    delete_session(session.session_id)
    logger.info("User %s logged out", session.email)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
async def me(session: Session = Depends(require_auth)):
    return {"success": True, "data": session.to_dict()}
