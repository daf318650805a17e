# app/services/project_coordinator.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import (
    Forbidden,
    InvalidState,
    InvalidTransition,
    MarketplaceError,
    NotFound,
    UpstreamFailure,
    ValidationError,
)
from app.core.lifecycle import (
    BidStatus,
    ProjectStatus,
    ensure_bid_transition,
    ensure_project_transition,
)
from app.core.status_guard import compare_and_set_status, lock_for_update
from app.models.bid import Bid
from app.models.enums import NotificationType
from app.models.project import Project
from app.models.review import Review
from app.models.user import User
from app.services.bids_service import BidService
from app.services.chat_service import ChatService
from app.services.fanout import NotificationFanout, Outcome, attempt

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


@dataclass
class AcceptOutcome:
    project: Project
    bid: Bid
    rejected_bid_ids: List[uuid.UUID] = field(default_factory=list)
    side_effects: List[Outcome] = field(default_factory=list)


@dataclass
class CompleteOutcome:
    project: Project
    review: Optional[Review] = None
    freelancer_rating: Optional[float] = None
    side_effects: List[Outcome] = field(default_factory=list)


class ProjectCoordinator:
    """
    Multi-entity project transitions.

    accept_bid and complete_project each write their state change in one
    transaction, serialized per project by a row lock and guarded by a
    conditional update on the expected status. Notifications, push and
    chat run after the commit and are reported in side_effects; they
    never undo or fail the transition.
    """

    def __init__(
        self,
        fanout: Optional[NotificationFanout] = None,
        bids: Optional[BidService] = None,
        chat: Optional[ChatService] = None,
    ):
        self.fanout = fanout or NotificationFanout()
        self.bids = bids or BidService()
        self.chat = chat or ChatService()

    # -----------------------------------------------------------------
    # helpers
    # -----------------------------------------------------------------

    def _lock_project(self, db: Session, project_id: uuid.UUID) -> Project:
        return lock_for_update(db, Project, project_id, not_found="Project not found.")

    def _cas_project_status(
        self,
        db: Session,
        project_id: uuid.UUID,
        expected: ProjectStatus,
        **values,
    ) -> None:
        compare_and_set_status(
            db,
            Project,
            project_id,
            expected,
            message="Project status changed concurrently; nothing was applied.",
            **values,
        )

    # -----------------------------------------------------------------
    # accept
    # -----------------------------------------------------------------

    def accept_bid(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        winning_bid_id: uuid.UUID,
        caller_id: uuid.UUID,
    ) -> AcceptOutcome:
        try:
            project = self._lock_project(db, project_id)
            if project.client_id != caller_id:
                raise Forbidden("Only the project owner can accept bids.")
            ensure_project_transition(project.status, ProjectStatus.in_progress)

            bid = db.get(Bid, winning_bid_id)
            if bid is None:
                raise NotFound("Bid not found.")
            if bid.project_id != project.id:
                raise ValidationError("Bid does not belong to this project.")
            ensure_bid_transition(bid.status, BidStatus.accepted)

            now = _now()

            # winner first, then the losers, then the project
            compare_and_set_status(
                db,
                Bid,
                bid.id,
                BidStatus.pending,
                error=InvalidTransition,
                message="Bid is no longer pending.",
                status=BidStatus.accepted.value,
                accepted_at=now,
            )

            rejected = self.bids.reject_pending_siblings(
                db, project_id=project.id, winning_bid_id=bid.id
            )

            self._cas_project_status(
                db,
                project.id,
                ProjectStatus.published,
                status=ProjectStatus.in_progress.value,
                freelancer_id=bid.freelancer_id,
                accepted_bid_id=bid.id,
                started_at=now,
            )
            db.commit()
        except MarketplaceError:
            db.rollback()
            raise
        except IntegrityError:
            # one-accepted-bid index: another acceptance committed first
            db.rollback()
            raise InvalidState("Another bid was already accepted for this project.")
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("accept_bid storage failure project_id=%s", project_id)
            raise UpstreamFailure() from e

        db.refresh(project)
        db.refresh(bid)
        logger.info(
            "bid accepted project_id=%s bid_id=%s rejected=%d",
            project.id,
            bid.id,
            len(rejected),
        )

        out = AcceptOutcome(
            project=project,
            bid=bid,
            rejected_bid_ids=[r[0] for r in rejected],
        )
        out.side_effects = self._after_accept(db, project, bid)
        return out

    def _after_accept(self, db: Session, project: Project, bid: Bid) -> List[Outcome]:
        project_id = project.id
        title = project.title
        client_id = project.client_id
        freelancer_id = bid.freelancer_id
        bid_id = bid.id

        client = db.get(User, client_id)
        client_name = client.display_name if client else "The client"

        outcomes: List[Outcome] = []
        outcomes += self.fanout.notify(
            db,
            user_id=freelancer_id,
            notification_type=NotificationType.bid_accepted,
            title="Your bid was accepted!",
            message=f'{client_name} accepted your bid on "{title}"',
            metadata={
                "project_id": project_id,
                "project_title": title,
                "bid_id": bid_id,
                "amount": bid.amount,
                "client_id": client_id,
                "client_name": client_name,
            },
            url=f"/messages?project={project_id}",
        )
        outcomes += self.fanout.notify(
            db,
            user_id=client_id,
            notification_type=NotificationType.project_started,
            title="Project started",
            message=f'You accepted a bid on "{title}". Say hello to your freelancer.',
            metadata={
                "project_id": project_id,
                "project_title": title,
                "bid_id": bid_id,
                "freelancer_id": freelancer_id,
            },
            url=f"/projects/{project_id}",
        )
        outcomes.append(
            attempt(
                db,
                "chat:kickoff",
                lambda: self.chat.send_kickoff(
                    db,
                    project_id=project_id,
                    project_title=title,
                    client_id=client_id,
                    freelancer_id=freelancer_id,
                ),
            )
        )
        return outcomes

    # -----------------------------------------------------------------
    # complete
    # -----------------------------------------------------------------

    def complete_project(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        caller_id: uuid.UUID,
        final_amount: Optional[Decimal] = None,
        rating: Optional[int] = None,
        review_text: Optional[str] = None,
    ) -> CompleteOutcome:
        review: Optional[Review] = None
        new_rating: Optional[float] = None

        try:
            project = self._lock_project(db, project_id)
            if project.client_id != caller_id:
                raise Forbidden("Only the project owner can complete it.")
            ensure_project_transition(project.status, ProjectStatus.completed)

            if final_amount is not None and Decimal(final_amount) < 0:
                raise ValidationError("Final amount cannot be negative.")
            if rating is not None and not 1 <= int(rating) <= 5:
                raise ValidationError("Rating must be between 1 and 5.")

            amount = Decimal(final_amount) if final_amount is not None else project.budget
            freelancer_id = project.freelancer_id
            now = _now()

            self._cas_project_status(
                db,
                project.id,
                ProjectStatus.in_progress,
                status=ProjectStatus.completed.value,
                completed_at=now,
                final_amount=amount,
            )

            if rating is not None and review_text:
                review = Review(
                    project_id=project.id,
                    reviewer_id=caller_id,
                    reviewee_id=freelancer_id,
                    rating=int(rating),
                    comment=review_text,
                )
                db.add(review)
                db.flush()

                avg = db.execute(
                    select(func.avg(Review.rating)).where(Review.reviewee_id == freelancer_id)
                ).scalar_one()
                new_rating = float(avg) if avg is not None else None

            freelancer = db.execute(
                select(User).where(User.id == freelancer_id).with_for_update()
            ).scalar_one_or_none()
            if freelancer is None:
                logger.warning(
                    "complete_project: freelancer row missing, stats not updated freelancer_id=%s",
                    freelancer_id,
                )
            else:
                if new_rating is not None:
                    freelancer.rating = new_rating
                freelancer.completed_projects = (freelancer.completed_projects or 0) + 1
                freelancer.total_earnings = (freelancer.total_earnings or Decimal("0")) + (
                    amount or Decimal("0")
                )

            db.commit()
        except MarketplaceError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("complete_project storage failure project_id=%s", project_id)
            raise UpstreamFailure() from e

        db.refresh(project)
        if review is not None:
            db.refresh(review)
        logger.info("project completed project_id=%s final_amount=%s", project.id, amount)

        out = CompleteOutcome(project=project, review=review, freelancer_rating=new_rating)
        out.side_effects = self.fanout.notify(
            db,
            user_id=freelancer_id,
            notification_type=NotificationType.project_completed,
            title="Project completed",
            message=f'The client marked "{project.title}" as completed',
            metadata={
                "project_id": project.id,
                "project_title": project.title,
                "final_amount": amount,
                "rating": rating if review is not None else None,
            },
            url=f"/projects/{project.id}",
        )
        return out
