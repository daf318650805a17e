# app/core/lifecycle.py
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet

from app.core.errors import InvalidState, InvalidTransition


class BidStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    withdrawn = "withdrawn"


class ProjectStatus(str, Enum):
    draft = "draft"
    published = "published"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


# ─────────────────────────────────────────────
# TRANSITION TABLES
# ─────────────────────────────────────────────

BID_TRANSITIONS: Dict[BidStatus, FrozenSet[BidStatus]] = {
    BidStatus.pending: frozenset(
        {BidStatus.accepted, BidStatus.rejected, BidStatus.withdrawn}
    ),
    BidStatus.accepted: frozenset(),
    BidStatus.rejected: frozenset(),
    BidStatus.withdrawn: frozenset(),
}

PROJECT_TRANSITIONS: Dict[ProjectStatus, FrozenSet[ProjectStatus]] = {
    ProjectStatus.draft: frozenset({ProjectStatus.published, ProjectStatus.cancelled}),
    ProjectStatus.published: frozenset(
        {ProjectStatus.in_progress, ProjectStatus.cancelled}
    ),
    ProjectStatus.in_progress: frozenset({ProjectStatus.completed}),
    ProjectStatus.completed: frozenset(),
    ProjectStatus.cancelled: frozenset(),
}


def is_terminal_bid(status: str | BidStatus) -> bool:
    return not BID_TRANSITIONS[BidStatus(status)]


def ensure_bid_transition(current: str | BidStatus, target: BidStatus) -> None:
    cur = BidStatus(current)
    if target not in BID_TRANSITIONS[cur]:
        raise InvalidTransition(
            f"Bid cannot move from '{cur.value}' to '{target.value}'."
        )


def ensure_project_transition(
    current: str | ProjectStatus, target: ProjectStatus
) -> None:
    cur = ProjectStatus(current)
    if target not in PROJECT_TRANSITIONS[cur]:
        raise InvalidState(
            f"Project cannot move from '{cur.value}' to '{target.value}'."
        )
