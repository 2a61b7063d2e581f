"""
Admin routes: user management.
"""
import logging

from fastapi import APIRouter, Depends

from nirman.auth import Session, hash_password
from nirman.database import get_db
from nirman.dependencies import require_capability
from nirman.exceptions import ValidationError
from nirman.roles import Capability, Role, parse_role
from nirman.schemas import UserCreate
from nirman.serializers import format_datetime

router = APIRouter()
logger = logging.getLogger(__name__)

can_manage_users = require_capability(Capability.MANAGE_USERS)


def serialize_user(row) -> dict:
    return {
        "id": row['id'],
        "userId": row['user_id'],
        "fullName": row['full_name'],
        "email": row['email'],
        "department": row['department'],
        "role": row['role'],
        "isActive": bool(row['is_active']),
        "createdAt": format_datetime(row['created_at']),
    }


@router.post("/users", status_code=201)
async def create_user(payload: UserCreate, session: Session = Depends(can_manage_users)):
    role = parse_role(payload.role)
    if role is None:
        raise ValidationError(
            f"Unknown role '{payload.role}'. Expected one of: {', '.join(r.value for r in Role)}"
        )

    email = payload.email.lower().strip()
    user_id = payload.user_id.strip()

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT id FROM users WHERE email = ? OR user_id = ?",
            (email, user_id)
        )
        if cursor.fetchone():
            raise ValidationError("User with this email or user ID already exists")

        cursor.execute("""
            INSERT INTO users (user_id, full_name, email, department, role, password_hash, is_active)
            VALUES (?, ?, ?, ?, ?, ?, 1)
        """, (user_id, payload.full_name.strip(), email, payload.department, role.value,
              hash_password(payload.password)))
        new_id = cursor.lastrowid

        cursor.execute("""
            SELECT id, user_id, full_name, email, department, role, is_active, created_at
            FROM users WHERE id = ?
        """, (new_id,))
        user = serialize_user(cursor.fetchone())

    logger.info("User %s created %s with role %s", session.email, email, role.value)
    return {"success": True, "message": "User created successfully", "data": user}


@router.get("/users")
async def list_users(session: Session = Depends(can_manage_users)):
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("""
            SELECT id, user_id, full_name, email, department, role, is_active, created_at
            FROM users
            ORDER BY full_name
        """)
        users = [serialize_user(row) for row in cursor.fetchall()]

    return {"success": True, "data": users}
