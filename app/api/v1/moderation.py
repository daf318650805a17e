# app/api/v1/moderation.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.deps import get_moderation_cache, limit_moderation
from app.schemas.common import ok
from app.schemas.moderation import ModerationCheckRequest
from app.services.moderation_cache import ModerationCache

router = APIRouter(prefix="/moderation")


@router.post("/check")
def check_text(
    body: ModerationCheckRequest,
    _rl: None = Depends(limit_moderation),
    cache: ModerationCache = Depends(get_moderation_cache),
):
    result = cache.check(body.text)
    return ok(result.model_dump(by_alias=True, exclude_none=True))
