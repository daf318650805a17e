from fastapi import APIRouter, Request

from app.schemas.common import ok

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    rid = getattr(request.state, "request_id", None)
    return ok({"status": "ok", "request_id": rid})
