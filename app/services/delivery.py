# app/services/delivery.py
from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Dict, Optional

import httpx

from app.core.config import Settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# push (OneSignal REST API)
# ---------------------------------------------------------------------


class PushClient:
    """
    Sends one push notification to a user addressed by external user id.

    send() reports success as a bool and never raises; an unconfigured
    client is a no-op that returns False.
    """

    API_URL = "https://onesignal.com/api/v1/notifications"

    def __init__(
        self,
        app_id: Optional[str],
        api_key: Optional[str],
        timeout: float = 5.0,
        base_url: str = "",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.app_id = app_id
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "PushClient":
        return cls(
            app_id=settings.onesignal_app_id,
            api_key=settings.onesignal_api_key,
            timeout=settings.outbound_timeout_seconds,
            base_url=settings.public_base_url,
        )

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.api_key)

    def build_payload(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        url: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "app_id": self.app_id,
            "include_external_user_ids": [str(user_id)],
            "headings": {"en": title, "ru": title},
            "contents": {"en": message, "ru": message},
            "data": data or {},
        }
        if url:
            payload["url"] = f"{self.base_url}{url}" if url.startswith("/") else url
        return payload

    def send(
        self,
        user_id: uuid.UUID,
        title: str,
        message: str,
        url: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if not self.configured:
            logger.debug("push skipped: client not configured user_id=%s", user_id)
            return False

        payload = self.build_payload(user_id, title, message, url=url, data=data)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(
                    self.API_URL,
                    json=payload,
                    headers={"Authorization": f"Basic {self.api_key}"},
                )
        except httpx.HTTPError as e:
            logger.warning("push request failed user_id=%s error=%s", user_id, e)
            return False

        if resp.status_code >= 400:
            logger.warning(
                "push rejected user_id=%s status=%s body=%s",
                user_id,
                resp.status_code,
                resp.text[:200],
            )
            return False
        return True


# ---------------------------------------------------------------------
# sms (SMS.ru REST API)
# ---------------------------------------------------------------------

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


class SmsClient:
    API_URL = "https://sms.ru/sms/send"

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmsClient":
        return cls(api_key=settings.smsru_api_key, timeout=settings.outbound_timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send(self, phone: str, message: str) -> bool:
        to = normalize_phone(phone)
        if not to:
            logger.warning("sms skipped: empty phone number")
            return False
        if not self.configured:
            logger.debug("sms skipped: client not configured")
            return False

        form = {"api_id": self.api_key, "to": to, "msg": message, "json": "1"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(self.API_URL, data=form)
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("sms request failed error=%s", e)
            return False

        if resp.status_code >= 400 or body.get("status") != "OK":
            logger.warning("sms rejected status=%s body=%s", resp.status_code, body)
            return False
        return True
