# app/api/v1/projects.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.deps import get_coordinator, get_projects_service
from app.core.deps_idempotency import idempotency_guard, remember_response, replay_if_stored
from app.core.errors import Forbidden, NotFound
from app.core.lifecycle import ProjectStatus
from app.db.session import get_db
from app.models.project import Project
from app.policies.projects_policy import can_create_project, can_view_project
from app.policies.rbac import Principal
from app.schemas.common import ok
from app.schemas.projects import (
    ProjectCompleteRequest,
    ProjectCreateRequest,
    ProjectPatchRequest,
)
from app.services.fanout import Outcome
from app.services.project_coordinator import ProjectCoordinator
from app.services.projects_service import ProjectsService

router = APIRouter(prefix="/projects")


def _iso(dt):
    return dt.isoformat() if dt else None


def _money(v):
    return str(v) if v is not None else None


def project_resp(p: Project) -> dict:
    return {
        "projectId": str(p.id),
        "clientId": str(p.client_id),
        "title": p.title,
        "description": p.description,
        "budget": _money(p.budget),
        "status": p.status,
        "freelancerId": str(p.freelancer_id) if p.freelancer_id else None,
        "acceptedBidId": str(p.accepted_bid_id) if p.accepted_bid_id else None,
        "finalAmount": _money(p.final_amount),
        "publishedAtIso": _iso(p.published_at),
        "startedAtIso": _iso(p.started_at),
        "completedAtIso": _iso(p.completed_at),
        "cancelledAtIso": _iso(p.cancelled_at),
        "createdAtIso": _iso(p.created_at),
        "updatedAtIso": _iso(p.updated_at),
    }


def outcome_resp(o: Outcome) -> dict:
    return {"name": o.name, "ok": o.ok, "detail": o.detail}


@router.post("", status_code=201)
def create_project(
    body: ProjectCreateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ProjectsService = Depends(get_projects_service),
):
    if not can_create_project(principal):
        raise Forbidden("Role not permitted to create projects.")

    p = svc.create(
        db,
        client_id=principal.user_id,
        title=body.title,
        description=body.description,
        budget=body.budget,
    )
    return ok(project_resp(p), message="Project created.")


@router.get("")
def list_projects(
    status: Optional[ProjectStatus] = Query(default=None),
    mine: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ProjectsService = Depends(get_projects_service),
):
    """
    Published projects by default. mine=true lists the caller's own
    projects in any status (or the given one).
    """
    if mine:
        rows, total = svc.list(
            db, status=status, client_id=principal.user_id, limit=limit, offset=offset
        )
    else:
        if status is not None and status != ProjectStatus.published:
            raise Forbidden("Only published projects are listed publicly.")
        rows, total = svc.list(db, status=ProjectStatus.published, limit=limit, offset=offset)

    return ok(
        {
            "items": [project_resp(p) for p in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }
    )


@router.get("/{project_id}")
def get_project(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ProjectsService = Depends(get_projects_service),
):
    p = svc.get(db, project_id=project_id)
    if not can_view_project(principal, p):
        raise NotFound("Project not found.")
    return ok(project_resp(p))


@router.patch("/{project_id}")
def patch_project(
    project_id: uuid.UUID,
    body: ProjectPatchRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ProjectsService = Depends(get_projects_service),
):
    p = svc.update(
        db,
        project_id=project_id,
        owner_id=principal.user_id,
        title=body.title,
        description=body.description,
        budget=body.budget,
    )
    return ok(project_resp(p), message="Project updated.")


@router.post("/{project_id}/publish")
def publish_project(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ProjectsService = Depends(get_projects_service),
):
    p = svc.publish(db, project_id=project_id, owner_id=principal.user_id)
    return ok(project_resp(p), message="Project published.")


@router.post("/{project_id}/cancel")
def cancel_project(
    project_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ProjectsService = Depends(get_projects_service),
):
    p = svc.cancel(db, project_id=project_id, owner_id=principal.user_id)
    return ok(project_resp(p), message="Project cancelled.")


@router.post("/{project_id}/complete")
def complete_project(
    request: Request,
    project_id: uuid.UUID,
    body: Optional[ProjectCompleteRequest] = None,
    _idem: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    coordinator: ProjectCoordinator = Depends(get_coordinator),
):
    replay = replay_if_stored(request)
    if replay is not None:
        return replay

    body = body or ProjectCompleteRequest()
    out = coordinator.complete_project(
        db,
        project_id=project_id,
        caller_id=principal.user_id,
        final_amount=body.finalAmount,
        rating=body.rating,
        review_text=body.review,
    )

    resp = ok(
        {
            "project": project_resp(out.project),
            "reviewId": str(out.review.id) if out.review is not None else None,
            "freelancerRating": out.freelancer_rating,
            "sideEffects": [outcome_resp(o) for o in out.side_effects],
        },
        message="Project completed.",
    )
    remember_response(request, db, principal, resp)
    return resp
