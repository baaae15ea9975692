from datetime import datetime, timedelta, timezone
import os
from typing import Optional

import jwt

JWT_ALGORITHM = "HS256"
JWT_EXP_HOURS = 8

VALID_ROLES = {"ADMIN", "MANAGER", "EMPLOYEE"}


def _get_jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET is required")
    if len(secret) < 32:
        raise ValueError("JWT_SECRET must be at least 32 characters")
    return secret


def _get_exp_hours() -> int:
    raw = os.getenv("JWT_EXP_HOURS")
    if not raw:
        return JWT_EXP_HOURS
    try:
        return max(int(raw), 1)
    except ValueError:
        return JWT_EXP_HOURS


def create_access_token(user_id: str, company_id: int, role: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "company_id": int(company_id),
        "iat": now,
        "exp": now + timedelta(hours=_get_exp_hours()),
    }
    if role is not None:
        role = str(role).upper()
        if role not in VALID_ROLES:
            raise ValueError(f"Invalid role: {role}")
        payload["role"] = role
    return jwt.encode(payload, _get_jwt_secret(), algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, _get_jwt_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise ValueError("Invalid or expired token") from exc

    if "sub" not in payload or "company_id" not in payload:
        raise ValueError("Invalid token claims")

    return payload
