from __future__ import annotations

import uuid
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import IdempotencyConflict
from app.core.hashing import stable_hash
from app.models.idempotency_key import IdempotencyKeyRecord


class IdempotencyService:
    def get_existing(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        endpoint_key: str,
        idem_key: str,
    ) -> Optional[IdempotencyKeyRecord]:
        return db.execute(
            select(IdempotencyKeyRecord).where(
                IdempotencyKeyRecord.user_id == user_id,
                IdempotencyKeyRecord.endpoint_key == endpoint_key,
                IdempotencyKeyRecord.idem_key == idem_key,
            )
        ).scalar_one_or_none()

    def reserve_or_replay(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        endpoint_key: str,
        idem_key: str,
        request_payload: Dict[str, Any],
    ) -> Tuple[Optional[Dict[str, Any]], Optional[int], str]:
        """
        Returns (replay_json, replay_status_code, request_hash).
        If existing record exists:
          - If request_hash matches => replay response
          - If request_hash differs => conflict
        """
        req_hash = stable_hash(request_payload)
        existing = self.get_existing(
            db, user_id=user_id, endpoint_key=endpoint_key, idem_key=idem_key
        )
        if not existing:
            return None, None, req_hash

        if existing.request_hash != req_hash:
            raise IdempotencyConflict()
        return existing.response_json, int(existing.response_status), req_hash

    def store_response(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        endpoint_key: str,
        idem_key: str,
        request_hash: str,
        response_json: Dict[str, Any],
        response_status: int,
    ) -> None:
        existing = self.get_existing(
            db, user_id=user_id, endpoint_key=endpoint_key, idem_key=idem_key
        )
        if existing:
            # first response wins
            return

        row = IdempotencyKeyRecord(
            user_id=user_id,
            endpoint_key=endpoint_key,
            idem_key=idem_key,
            request_hash=request_hash,
            response_status=str(response_status),
            response_json=response_json,
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            # a concurrent request with the same key stored first
            db.rollback()
