# app/services/projects_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, InvalidState, MarketplaceError, NotFound, ValidationError
from app.core.lifecycle import ProjectStatus, ensure_project_transition
from app.core.status_guard import compare_and_set_status, lock_for_update
from app.models.enums import NotificationType
from app.models.project import Project
from app.services.bids_service import BidService
from app.services.fanout import NotificationFanout

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


class ProjectsService:
    def __init__(
        self,
        bids: Optional[BidService] = None,
        fanout: Optional[NotificationFanout] = None,
    ):
        self.bids = bids or BidService()
        self.fanout = fanout

    def create(
        self,
        db: Session,
        *,
        client_id: uuid.UUID,
        title: str,
        description: str = "",
        budget: Optional[Decimal] = None,
    ) -> Project:
        if budget is not None and Decimal(budget) <= 0:
            raise ValidationError("Budget must be positive.")

        p = Project(
            client_id=client_id,
            title=title,
            description=description,
            budget=budget,
            status=ProjectStatus.draft.value,
        )
        db.add(p)
        db.commit()
        db.refresh(p)
        logger.info("project created project_id=%s client_id=%s", p.id, client_id)
        return p

    def get(self, db: Session, *, project_id: uuid.UUID) -> Project:
        p = db.get(Project, project_id)
        if p is None:
            raise NotFound("Project not found.")
        return p

    def list(
        self,
        db: Session,
        *,
        status: Optional[ProjectStatus] = ProjectStatus.published,
        client_id: Optional[uuid.UUID] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Project], int]:
        stmt = select(Project)
        if status is not None:
            stmt = stmt.where(Project.status == ProjectStatus(status).value)
        if client_id is not None:
            stmt = stmt.where(Project.client_id == client_id)

        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = (
            db.execute(
                stmt.order_by(Project.created_at.desc(), Project.id.desc())
                .limit(limit)
                .offset(offset)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total)

    def _lock_owned(self, db: Session, *, project_id: uuid.UUID, owner_id: uuid.UUID) -> Project:
        p = lock_for_update(db, Project, project_id, not_found="Project not found.")
        if p.client_id != owner_id:
            raise Forbidden("Only the project owner can do this.")
        return p

    def _move(
        self,
        db: Session,
        p: Project,
        expected: ProjectStatus,
        message: str = "Project status changed concurrently; nothing was applied.",
        then: Optional[Callable[[], None]] = None,
        **values,
    ) -> None:
        """
        Conditional write on the status read under the row lock, plus any
        dependent writes in `then`, committed together or not at all.
        """
        try:
            compare_and_set_status(db, Project, p.id, expected, message=message, **values)
            if then is not None:
                then()
            db.commit()
        except MarketplaceError:
            db.rollback()
            raise
        db.refresh(p)

    def update(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        owner_id: uuid.UUID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        budget: Optional[Decimal] = None,
    ) -> Project:
        p = self._lock_owned(db, project_id=project_id, owner_id=owner_id)

        # terms are frozen once freelancers can see them
        if p.status != ProjectStatus.draft.value:
            raise InvalidState("Only draft projects can be edited.")
        if budget is not None and Decimal(budget) <= 0:
            raise ValidationError("Budget must be positive.")

        values = {
            k: v
            for k, v in (("title", title), ("description", description), ("budget", budget))
            if v is not None
        }
        if values:
            self._move(
                db,
                p,
                ProjectStatus.draft,
                message="Only draft projects can be edited.",
                **values,
            )
        return p

    def publish(self, db: Session, *, project_id: uuid.UUID, owner_id: uuid.UUID) -> Project:
        p = self._lock_owned(db, project_id=project_id, owner_id=owner_id)
        ensure_project_transition(p.status, ProjectStatus.published)

        self._move(
            db,
            p,
            ProjectStatus.draft,
            status=ProjectStatus.published.value,
            published_at=_now(),
        )
        logger.info("project published project_id=%s", p.id)
        return p

    def cancel(self, db: Session, *, project_id: uuid.UUID, owner_id: uuid.UUID) -> Project:
        """
        draft/published -> cancelled. Pending bids are rejected in the same
        commit; each affected bidder is told afterwards, best-effort.
        An acceptance committed after our read wins: the project is then
        in_progress and the cancel fails with InvalidState.
        """
        p = self._lock_owned(db, project_id=project_id, owner_id=owner_id)
        ensure_project_transition(p.status, ProjectStatus.cancelled)

        rejected = []

        def reject_bids():
            rejected.extend(self.bids.reject_pending_siblings(db, project_id=p.id))

        self._move(
            db,
            p,
            ProjectStatus(p.status),
            then=reject_bids,
            status=ProjectStatus.cancelled.value,
            cancelled_at=_now(),
        )

        logger.info("project cancelled project_id=%s rejected_bids=%d", p.id, len(rejected))

        if self.fanout is not None:
            for bid_id, freelancer_id in rejected:
                self.fanout.notify(
                    db,
                    user_id=freelancer_id,
                    notification_type=NotificationType.project_cancelled,
                    title="Project cancelled",
                    message=f'The client cancelled "{p.title}"',
                    metadata={"project_id": p.id, "bid_id": bid_id},
                )
        return p
