#/app/policies/projects_policy.py
from __future__ import annotations

from app.models.enums import UserRole
from app.models.project import Project
from app.policies.rbac import ACTION_CREATE_PROJECT, Principal, allowed_actions


def can_create_project(principal: Principal) -> bool:
    return ACTION_CREATE_PROJECT in allowed_actions(principal.role)


def can_view_bids(principal: Principal, project: Project) -> bool:
    # bid amounts are private to the owner (and admins)
    if principal.role == UserRole.ADMIN:
        return True
    return project.client_id == principal.user_id


def can_view_project(principal: Principal, project: Project) -> bool:
    # drafts are visible to their owner only
    if project.status != "draft":
        return True
    return principal.role == UserRole.ADMIN or project.client_id == principal.user_id
