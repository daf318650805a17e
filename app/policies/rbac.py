#app/policies/rbac.py
from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import Set

from app.core.errors import Forbidden
from app.models.enums import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    role: UserRole
    display_name: str


# --- Core action constants ---
ACTION_CREATE_PROJECT = "CREATE_PROJECT"
ACTION_SUBMIT_BID = "SUBMIT_BID"


def allowed_actions(role: UserRole) -> Set[str]:
    """
    Pure RBAC: which actions a role may attempt.
    Ownership (who may accept/reject/complete) is checked by the services.
    """

    if role == UserRole.CLIENT:
        return {ACTION_CREATE_PROJECT}

    if role == UserRole.FREELANCER:
        return {ACTION_SUBMIT_BID}

    if role == UserRole.ADMIN:
        return {ACTION_CREATE_PROJECT, ACTION_SUBMIT_BID}

    return set()


def require_action(principal: Principal, action: str) -> None:
    if action not in allowed_actions(principal.role):
        raise Forbidden(
            f"Role {principal.role.value} not permitted for action {action}."
        )
