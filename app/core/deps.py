# /app/core/deps.py
from __future__ import annotations

from fastapi import Depends, Request

from app.core.auth_deps import get_current_principal
from app.core.errors import RateLimited
from app.core.rate_limit import InMemoryRateLimiter
from app.policies.rbac import Principal
from app.services.bids_service import BidService
from app.services.fanout import NotificationFanout
from app.services.moderation_cache import ModerationCache
from app.services.project_coordinator import ProjectCoordinator
from app.services.projects_service import ProjectsService

# Process-wide collaborators are built once in create_app() and parked on
# app.state; these accessors are what routes depend on and what tests override.


def get_moderation_cache(request: Request) -> ModerationCache:
    return request.app.state.moderation_cache


def get_fanout(request: Request) -> NotificationFanout:
    return request.app.state.fanout


def get_bid_service(fanout: NotificationFanout = Depends(get_fanout)) -> BidService:
    return BidService(fanout=fanout)


def get_projects_service(
    bids: BidService = Depends(get_bid_service),
    fanout: NotificationFanout = Depends(get_fanout),
) -> ProjectsService:
    return ProjectsService(bids=bids, fanout=fanout)


def get_coordinator(
    bids: BidService = Depends(get_bid_service),
    fanout: NotificationFanout = Depends(get_fanout),
) -> ProjectCoordinator:
    return ProjectCoordinator(fanout=fanout, bids=bids)


# ---------------------------------------------------------------------
# rate limits
# ---------------------------------------------------------------------


def _client_address(request: Request) -> str:
    """
    The TCP peer, unless that peer is a configured proxy, in which case the
    first X-Forwarded-For entry it reports.
    """
    peer = request.client.host if request.client else "unknown"
    trusted = request.app.state.settings.trusted_proxy_hosts
    if peer in trusted:
        first = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
        if first:
            return first
    return peer


def limit_bid_submit(
    request: Request,
    principal: Principal = Depends(get_current_principal),
) -> None:
    limiter: InMemoryRateLimiter = request.app.state.bid_submit_limiter
    if not limiter.allow(str(principal.user_id), "POST:bids"):
        raise RateLimited("Too many bids submitted. Try again later.")


def limit_moderation(request: Request) -> None:
    limiter: InMemoryRateLimiter = request.app.state.moderation_limiter
    if not limiter.allow(_client_address(request), "POST:moderation"):
        raise RateLimited("Too many moderation requests. Try again later.")
