#app/core/auth_deps.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import Unauthenticated
from app.core.security import decode_token
from app.models.enums import UserRole
from app.policies.rbac import Principal

# auto_error=False: a missing header must surface as our 401 envelope
bearer = HTTPBearer(auto_error=False)


def get_current_principal(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Principal:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid
    - sub (user id) and role are present
    - role is a valid UserRole
    """
    if creds is None:
        raise Unauthenticated("Authentication required.")

    try:
        payload = decode_token(creds.credentials)
    except Exception:
        raise Unauthenticated("Invalid or expired token.")

    subject = payload.get("sub")
    role = payload.get("role")
    display_name = payload.get("display_name") or "Unknown"

    if not role or not subject:
        raise Unauthenticated("Token missing required claims.")

    try:
        user_id = uuid.UUID(str(subject))
        role_enum = UserRole(role)
    except ValueError:
        raise Unauthenticated("Invalid claims in token.")

    principal = Principal(
        user_id=user_id,
        role=role_enum,
        display_name=str(display_name),
    )

    # Make principal available to downstream handlers
    request.state.principal = principal

    return principal
