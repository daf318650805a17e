from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.core.errors import ValidationError
from app.db.session import get_db
from app.policies.rbac import Principal
from app.services.idempotency_service import IdempotencyService

MAX_KEY_LENGTH = 128


async def optional_idempotency_key(request: Request) -> Optional[str]:
    key = request.headers.get("Idempotency-Key")
    if not key:
        return None
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError("Idempotency-Key too long.")
    return key


async def idempotency_guard(
    request: Request,
    idem_key: Optional[str] = Depends(optional_idempotency_key),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> Optional[str]:
    """
    Use on POST endpoints that accept an optional Idempotency-Key.

    Stores in request.state:
      - idempotency_endpoint_key
      - idempotency_key
      - idempotency_request_hash
      - idempotency_replay_json / idempotency_replay_status (on replay)
    Raises IdempotencyConflict when the key was used with another body.
    """
    request.state.idempotency_key = idem_key
    request.state.idempotency_replay_json = None
    request.state.idempotency_replay_status = None
    if idem_key is None:
        return None

    endpoint_key = f"{request.method}:{request.url.path}"

    # Read JSON body once and cache it
    try:
        payload = await request.json()
    except Exception:
        payload = {}

    replay_json, replay_status, req_hash = IdempotencyService().reserve_or_replay(
        db,
        user_id=principal.user_id,
        endpoint_key=endpoint_key,
        idem_key=idem_key,
        request_payload=payload if isinstance(payload, dict) else {"_": payload},
    )

    request.state.idempotency_endpoint_key = endpoint_key
    request.state.idempotency_request_hash = req_hash
    request.state.idempotency_replay_json = replay_json
    request.state.idempotency_replay_status = replay_status

    return idem_key


def replay_if_stored(request: Request) -> Optional[JSONResponse]:
    body = getattr(request.state, "idempotency_replay_json", None)
    if body is None:
        return None
    status = getattr(request.state, "idempotency_replay_status", None) or 200
    return JSONResponse(status_code=status, content=body, headers={"Idempotent-Replay": "true"})


def remember_response(
    request: Request,
    db: Session,
    principal: Principal,
    body: Dict[str, Any],
    status_code: int = 200,
) -> None:
    idem_key = getattr(request.state, "idempotency_key", None)
    if idem_key is None:
        return
    IdempotencyService().store_response(
        db,
        user_id=principal.user_id,
        endpoint_key=request.state.idempotency_endpoint_key,
        idem_key=idem_key,
        request_hash=request.state.idempotency_request_hash,
        response_json=body,
        response_status=status_code,
    )
