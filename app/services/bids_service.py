# app/services/bids_service.py
from __future__ import annotations

import logging
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import (
    DuplicateBid,
    Forbidden,
    InvalidTransition,
    NotFound,
    ProjectNotOpen,
    ValidationError,
)
from app.core.lifecycle import BidStatus, ProjectStatus, ensure_bid_transition
from app.core.status_guard import compare_and_set_status, lock_for_update
from app.models.bid import Bid
from app.models.enums import NotificationType
from app.models.project import Project
from app.models.user import User
from app.services.fanout import NotificationFanout

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------


def _now():
    return datetime.now(timezone.utc)


DEFAULT_DELIVERY_DAYS = 14

_NUMBER = re.compile(r"\d+")


def parse_delivery_days(text: Optional[str]) -> int:
    """
    Free-text delivery estimate to days.

    "2 weeks" / "2 недели" -> 14, "1 month" / "1 месяц" -> 30,
    "5 days" / "5 дней" -> 5. Anything unrecognised -> 14.
    A missing number counts as 1 of the unit.
    """
    if not text:
        return DEFAULT_DELIVERY_DAYS

    s = text.strip().lower()
    m = _NUMBER.search(s)
    n = int(m.group(0)) if m else 1

    if "недел" in s or "week" in s:
        days = n * 7
    elif "месяц" in s or "month" in s:
        days = n * 30
    elif "дн" in s or "день" in s or "day" in s:
        days = n
    else:
        return DEFAULT_DELIVERY_DAYS

    return days if days > 0 else DEFAULT_DELIVERY_DAYS


# ---------------------------------------------------------------------
# service
# ---------------------------------------------------------------------


class BidService:
    """
    Single-bid lifecycle: pending -> accepted | rejected | withdrawn.
    Acceptance itself lives in ProjectCoordinator because it moves the
    project as well.
    """

    def __init__(self, fanout: Optional[NotificationFanout] = None):
        self.fanout = fanout

    def get(self, db: Session, bid_id: uuid.UUID) -> Bid:
        bid = db.get(Bid, bid_id)
        if bid is None:
            raise NotFound("Bid not found.")
        return bid

    def list_for_project(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        status: Optional[BidStatus] = None,
    ) -> List[Bid]:
        q = select(Bid).where(Bid.project_id == project_id)
        if status is not None:
            q = q.where(Bid.status == BidStatus(status).value)
        return list(db.execute(q.order_by(Bid.created_at.asc(), Bid.id.asc())).scalars().all())

    def has_active_bid(
        self, db: Session, *, project_id: uuid.UUID, freelancer_id: uuid.UUID
    ) -> bool:
        row = db.execute(
            select(Bid.id).where(
                Bid.project_id == project_id,
                Bid.freelancer_id == freelancer_id,
                Bid.status != BidStatus.withdrawn.value,
            )
        ).first()
        return row is not None

    # -----------------------------------------------------------------
    # submit
    # -----------------------------------------------------------------

    def submit(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        freelancer_id: uuid.UUID,
        amount: Decimal,
        delivery_days: int,
        cover_letter: str,
    ) -> Bid:
        project = db.get(Project, project_id)
        if project is None:
            raise NotFound("Project not found.")
        if project.status != ProjectStatus.published.value:
            raise ProjectNotOpen()
        if project.client_id == freelancer_id:
            raise ValidationError("You cannot bid on your own project.")
        if Decimal(amount) <= 0:
            raise ValidationError("Bid amount must be positive.")
        if int(delivery_days) <= 0:
            raise ValidationError("Delivery days must be positive.")

        if self.has_active_bid(db, project_id=project_id, freelancer_id=freelancer_id):
            raise DuplicateBid()

        bid = Bid(
            project_id=project_id,
            freelancer_id=freelancer_id,
            amount=Decimal(amount),
            delivery_days=int(delivery_days),
            cover_letter=cover_letter,
            status=BidStatus.pending.value,
        )
        db.add(bid)
        try:
            db.commit()
        except IntegrityError:
            # lost a race against a concurrent submit; the partial index decided
            db.rollback()
            raise DuplicateBid()
        db.refresh(bid)

        logger.info("bid submitted bid_id=%s project_id=%s", bid.id, project_id)

        if self.fanout is not None:
            freelancer = db.get(User, freelancer_id)
            name = freelancer.display_name if freelancer else "A freelancer"
            self.fanout.notify(
                db,
                user_id=project.client_id,
                notification_type=NotificationType.bid_received,
                title="New bid on your project",
                message=f'{name} placed a bid on "{project.title}"',
                metadata={
                    "project_id": project.id,
                    "project_title": project.title,
                    "bid_id": bid.id,
                    "amount": bid.amount,
                },
                url=f"/projects/{project.id}",
            )
        return bid

    # -----------------------------------------------------------------
    # single-bid transitions
    # -----------------------------------------------------------------

    def _lock(self, db: Session, bid_id: uuid.UUID) -> Bid:
        return lock_for_update(db, Bid, bid_id, not_found="Bid not found.")

    def _move_pending(self, db: Session, bid: Bid, target: BidStatus, **values) -> None:
        # conditional write: a bid accepted or withdrawn meanwhile stays as it is
        try:
            compare_and_set_status(
                db,
                Bid,
                bid.id,
                BidStatus.pending,
                error=InvalidTransition,
                message="Bid is no longer pending.",
                status=target.value,
                **values,
            )
            db.commit()
        except InvalidTransition:
            db.rollback()
            raise
        db.refresh(bid)

    def withdraw(self, db: Session, *, bid_id: uuid.UUID, by_freelancer_id: uuid.UUID) -> Bid:
        bid = self._lock(db, bid_id)
        if bid.freelancer_id != by_freelancer_id:
            raise Forbidden("Only the bid author can withdraw it.")
        ensure_bid_transition(bid.status, BidStatus.withdrawn)

        self._move_pending(db, bid, BidStatus.withdrawn, withdrawn_at=_now())

        logger.info("bid withdrawn bid_id=%s", bid.id)

        if self.fanout is not None:
            project = bid.project
            self.fanout.notify(
                db,
                user_id=project.client_id,
                notification_type=NotificationType.bid_withdrawn,
                title="A bid was withdrawn",
                message=f'A freelancer withdrew their bid on "{project.title}"',
                metadata={"project_id": project.id, "bid_id": bid.id},
                url=f"/projects/{project.id}",
            )
        return bid

    def reject(self, db: Session, *, bid_id: uuid.UUID, by_owner_id: uuid.UUID) -> Bid:
        bid = self._lock(db, bid_id)
        project = bid.project
        if project.client_id != by_owner_id:
            raise Forbidden("Only the project owner can reject bids.")
        ensure_bid_transition(bid.status, BidStatus.rejected)

        self._move_pending(db, bid, BidStatus.rejected, rejected_at=_now())

        logger.info("bid rejected bid_id=%s project_id=%s", bid.id, project.id)

        if self.fanout is not None:
            self.fanout.notify(
                db,
                user_id=bid.freelancer_id,
                notification_type=NotificationType.bid_rejected,
                title="Your bid was declined",
                message=f'The client declined your bid on "{project.title}"',
                metadata={"project_id": project.id, "bid_id": bid.id},
                url=f"/projects/{project.id}",
            )
        return bid

    # -----------------------------------------------------------------
    # bulk
    # -----------------------------------------------------------------

    def reject_pending_siblings(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        winning_bid_id: Optional[uuid.UUID] = None,
    ) -> List[Tuple[uuid.UUID, uuid.UUID]]:
        """
        Reject every pending bid of the project except the winner.

        Only rows still pending are touched, so running it twice is a no-op.
        Does not commit: the caller owns the transaction.
        Returns (bid_id, freelancer_id) of each bid it rejected.
        """
        q = select(Bid.id, Bid.freelancer_id).where(
            Bid.project_id == project_id,
            Bid.status == BidStatus.pending.value,
        )
        if winning_bid_id is not None:
            q = q.where(Bid.id != winning_bid_id)
        targets = [(r.id, r.freelancer_id) for r in db.execute(q).all()]
        if not targets:
            return []

        db.execute(
            update(Bid)
            .where(
                Bid.id.in_([t[0] for t in targets]),
                Bid.status == BidStatus.pending.value,
            )
            .values(status=BidStatus.rejected.value, rejected_at=_now())
        )
        return targets
