# app/services/notifications_service.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.errors import Forbidden, NotFound
from app.models.enums import NotificationType
from app.models.notification import Notification
from app.models.notification_preference import NotificationPreference


def json_safe(value: Any) -> Any:
    """
    Metadata is stored as JSON: UUID and Decimal values become strings.
    """
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    return value


def _now():
    return datetime.now(timezone.utc)


class NotificationsService:
    # -----------------------------------------------------------------
    # records
    # -----------------------------------------------------------------

    def create(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        row = Notification(
            user_id=user_id,
            type=NotificationType(notification_type).value,
            title=title,
            message=message,
            metadata_json=json_safe(metadata or {}),
            is_read=False,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def list(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Notification], int, int]:
        """
        Returns (page newest first, total matching, unread total).
        """
        base = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            base = base.where(Notification.is_read.is_(False))

        rows = list(
            db.execute(
                base.order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(limit)
                .offset(offset)
            )
            .scalars()
            .all()
        )
        total = db.execute(
            select(func.count()).select_from(base.subquery())
        ).scalar_one()
        return rows, int(total), self.unread_count(db, user_id=user_id)

    def unread_count(self, db: Session, *, user_id: uuid.UUID) -> int:
        n = db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        ).scalar_one()
        return int(n or 0)

    def mark_read(
        self, db: Session, *, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> Notification:
        row = db.get(Notification, notification_id)
        if row is None:
            raise NotFound("Notification not found.")
        if row.user_id != user_id:
            raise Forbidden("Not your notification.")
        if not row.is_read:
            row.is_read = True
            row.read_at = _now()
            db.commit()
            db.refresh(row)
        return row

    def mark_all_read(self, db: Session, *, user_id: uuid.UUID) -> int:
        res = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=_now())
        )
        db.commit()
        return int(res.rowcount or 0)

    # -----------------------------------------------------------------
    # preferences
    # -----------------------------------------------------------------

    def get_preferences(self, db: Session, *, user_id: uuid.UUID) -> NotificationPreference:
        """
        Stored row, or an unsaved one carrying the defaults.
        """
        row = db.get(NotificationPreference, user_id)
        if row is not None:
            return row
        return NotificationPreference(
            user_id=user_id, push_enabled=True, sms_enabled=False, email_enabled=True
        )

    def update_preferences(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        push_enabled: Optional[bool] = None,
        sms_enabled: Optional[bool] = None,
        email_enabled: Optional[bool] = None,
    ) -> NotificationPreference:
        row = db.get(NotificationPreference, user_id)
        if row is None:
            row = NotificationPreference(
                user_id=user_id, push_enabled=True, sms_enabled=False, email_enabled=True
            )
            db.add(row)

        if push_enabled is not None:
            row.push_enabled = push_enabled
        if sms_enabled is not None:
            row.sms_enabled = sms_enabled
        if email_enabled is not None:
            row.email_enabled = email_enabled

        db.commit()
        db.refresh(row)
        return row
