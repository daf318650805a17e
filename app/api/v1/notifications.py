# app/api/v1/notifications.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.models.notification import Notification
from app.models.notification_preference import NotificationPreference
from app.policies.rbac import Principal
from app.schemas.common import ok
from app.schemas.notifications import PreferencesUpdateRequest
from app.services.notifications_service import NotificationsService

router = APIRouter(prefix="/notifications")


def _iso(dt):
    return dt.isoformat() if dt else None


def notification_resp(n: Notification) -> dict:
    return {
        "notificationId": str(n.id),
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "metadata": n.metadata_json or {},
        "isRead": bool(n.is_read),
        "readAtIso": _iso(n.read_at),
        "createdAtIso": _iso(n.created_at),
    }


def preferences_resp(p: NotificationPreference) -> dict:
    return {
        "pushEnabled": bool(p.push_enabled),
        "smsEnabled": bool(p.sms_enabled),
        "emailEnabled": bool(p.email_enabled),
    }


@router.get("")
def list_notifications(
    unreadOnly: bool = Query(default=False),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows, total, unread = NotificationsService().list(
        db,
        user_id=principal.user_id,
        unread_only=unreadOnly,
        limit=limit,
        offset=offset,
    )
    return ok(
        {
            "items": [notification_resp(n) for n in rows],
            "total": total,
            "unread": unread,
            "limit": limit,
            "offset": offset,
        }
    )


@router.post("/read-all")
def mark_all_read(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    n = NotificationsService().mark_all_read(db, user_id=principal.user_id)
    return ok({"updated": n})


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    row = NotificationsService().mark_read(
        db, notification_id=notification_id, user_id=principal.user_id
    )
    return ok(notification_resp(row))


@router.get("/preferences")
def get_preferences(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return ok(preferences_resp(NotificationsService().get_preferences(db, user_id=principal.user_id)))


@router.put("/preferences")
def update_preferences(
    body: PreferencesUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    row = NotificationsService().update_preferences(
        db,
        user_id=principal.user_id,
        push_enabled=body.pushEnabled,
        sms_enabled=body.smsEnabled,
        email_enabled=body.emailEnabled,
    )
    return ok(preferences_resp(row), message="Preferences saved.")
