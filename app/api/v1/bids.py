# app/api/v1/bids.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.api.v1.projects import outcome_resp, project_resp
from app.core.auth_deps import get_current_principal
from app.core.deps import get_bid_service, get_coordinator, get_projects_service, limit_bid_submit
from app.core.deps_idempotency import idempotency_guard, remember_response, replay_if_stored
from app.core.errors import Forbidden, NotFound
from app.core.lifecycle import BidStatus
from app.db.session import get_db
from app.models.bid import Bid
from app.policies.bid_policies import enforce_bid_submit_role
from app.policies.projects_policy import can_view_bids
from app.policies.rbac import Principal
from app.schemas.bids import BidSubmitRequest
from app.schemas.common import ok
from app.services.bids_service import BidService, parse_delivery_days
from app.services.project_coordinator import ProjectCoordinator
from app.services.projects_service import ProjectsService

router = APIRouter()


def _iso(dt):
    return dt.isoformat() if dt else None


def bid_resp(b: Bid) -> dict:
    return {
        "bidId": str(b.id),
        "projectId": str(b.project_id),
        "freelancerId": str(b.freelancer_id),
        "amount": str(b.amount),
        "deliveryDays": b.delivery_days,
        "coverLetter": b.cover_letter,
        "status": b.status,
        "acceptedAtIso": _iso(b.accepted_at),
        "rejectedAtIso": _iso(b.rejected_at),
        "withdrawnAtIso": _iso(b.withdrawn_at),
        "createdAtIso": _iso(b.created_at),
        "updatedAtIso": _iso(b.updated_at),
    }


@router.post("/projects/{project_id}/bids", status_code=201)
def submit_bid(
    project_id: uuid.UUID,
    body: BidSubmitRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    _rl: None = Depends(limit_bid_submit),
    svc: BidService = Depends(get_bid_service),
):
    enforce_bid_submit_role(principal)

    delivery_days = body.deliveryDays or parse_delivery_days(body.deliveryTime)
    bid = svc.submit(
        db,
        project_id=project_id,
        freelancer_id=principal.user_id,
        amount=body.amount,
        delivery_days=delivery_days,
        cover_letter=body.coverLetter,
    )
    return ok(bid_resp(bid), message="Bid submitted.")


@router.get("/projects/{project_id}/bids")
def list_bids(
    project_id: uuid.UUID,
    status: Optional[BidStatus] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    projects: ProjectsService = Depends(get_projects_service),
    svc: BidService = Depends(get_bid_service),
):
    p = projects.get(db, project_id=project_id)
    if not can_view_bids(principal, p):
        raise Forbidden("Only the project owner can list its bids.")

    rows = svc.list_for_project(db, project_id=project_id, status=status)
    return ok({"items": [bid_resp(b) for b in rows], "total": len(rows)})


@router.post("/projects/{project_id}/bids/{bid_id}/accept")
def accept_bid(
    request: Request,
    project_id: uuid.UUID,
    bid_id: uuid.UUID,
    _idem: Optional[str] = Depends(idempotency_guard),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    coordinator: ProjectCoordinator = Depends(get_coordinator),
):
    replay = replay_if_stored(request)
    if replay is not None:
        return replay

    out = coordinator.accept_bid(
        db,
        project_id=project_id,
        winning_bid_id=bid_id,
        caller_id=principal.user_id,
    )

    resp = ok(
        {
            "project": project_resp(out.project),
            "bid": bid_resp(out.bid),
            "rejectedBidIds": [str(x) for x in out.rejected_bid_ids],
            "sideEffects": [outcome_resp(o) for o in out.side_effects],
        },
        message="Bid accepted.",
    )
    remember_response(request, db, principal, resp)
    return resp


@router.post("/projects/{project_id}/bids/{bid_id}/reject")
def reject_bid(
    project_id: uuid.UUID,
    bid_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: BidService = Depends(get_bid_service),
):
    if svc.get(db, bid_id).project_id != project_id:
        raise NotFound("Bid not found.")

    bid = svc.reject(db, bid_id=bid_id, by_owner_id=principal.user_id)
    return ok(bid_resp(bid), message="Bid rejected.")


@router.post("/bids/{bid_id}/withdraw")
def withdraw_bid(
    bid_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: BidService = Depends(get_bid_service),
):
    bid = svc.withdraw(db, bid_id=bid_id, by_freelancer_id=principal.user_id)
    return ok(bid_resp(bid), message="Bid withdrawn.")
