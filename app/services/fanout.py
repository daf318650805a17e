# app/services/fanout.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models.enums import NotificationType
from app.models.user import User
from app.services.delivery import PushClient, SmsClient
from app.services.notifications_service import NotificationsService, json_safe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """
    Result of one best-effort side effect.
    name is "<channel>:<what>", e.g. "push:bid_accepted" or "chat:kickoff".
    """
    name: str
    ok: bool
    detail: Optional[str] = None


def attempt(db: Session, name: str, fn: Callable[[], Any]) -> Outcome:
    """
    Run one side effect. Any exception is logged, the session is rolled
    back and the failure is reported as an Outcome instead of raised.

    fn may return False to report a soft failure (e.g. a channel that
    declined delivery).
    """
    try:
        result = fn()
    except Exception as e:
        logger.exception("side effect failed name=%s", name)
        try:
            db.rollback()
        except Exception:
            logger.exception("rollback after side effect failure failed name=%s", name)
        return Outcome(name=name, ok=False, detail=f"{type(e).__name__}: {e}")

    if result is False:
        logger.warning("side effect not delivered name=%s", name)
        return Outcome(name=name, ok=False, detail="not delivered")
    return Outcome(name=name, ok=True)


class NotificationFanout:
    """
    In-app record first, then push and SMS as the user's preferences allow.
    Every channel is independent; notify() never raises.
    """

    def __init__(
        self,
        push: Optional[PushClient] = None,
        sms: Optional[SmsClient] = None,
        notifications: Optional[NotificationsService] = None,
    ):
        self.push = push
        self.sms = sms
        self.notifications = notifications or NotificationsService()

    def notify(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        notification_type: NotificationType,
        title: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        url: Optional[str] = None,
    ) -> List[Outcome]:
        kind = NotificationType(notification_type).value
        data = json_safe(dict(metadata or {}))

        outcomes = [
            attempt(
                db,
                f"in_app:{kind}",
                lambda: self.notifications.create(
                    db,
                    user_id=user_id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    metadata=data,
                ),
            )
        ]

        prefs_box: Dict[str, Any] = {}

        def load_recipient():
            prefs_box["prefs"] = self.notifications.get_preferences(db, user_id=user_id)
            prefs_box["user"] = db.get(User, user_id)

        loaded = attempt(db, f"preferences:{kind}", load_recipient)
        if not loaded.ok:
            outcomes.append(loaded)
            return outcomes

        prefs = prefs_box["prefs"]
        user = prefs_box["user"]

        if prefs.push_enabled and self.push is not None:
            outcomes.append(
                attempt(
                    db,
                    f"push:{kind}",
                    lambda: self.push.send(
                        user_id, title, message, url=url, data={"type": kind, **data}
                    ),
                )
            )

        if prefs.sms_enabled and self.sms is not None:
            if user is not None and user.phone:
                outcomes.append(
                    attempt(db, f"sms:{kind}", lambda: self.sms.send(user.phone, f"{title}. {message}"))
                )
            else:
                logger.info("sms skipped: no phone user_id=%s", user_id)

        return outcomes
