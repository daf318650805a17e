import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.router import v1_router
from app.core.config import Settings, get_settings
from app.core.errors import MarketplaceError
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware
from app.core.rate_limit import InMemoryRateLimiter
from app.schemas.common import fail
from app.services.delivery import PushClient, SmsClient
from app.services.fanout import NotificationFanout
from app.services.moderation_cache import ModerationCache

logger = logging.getLogger(__name__)


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(MarketplaceError)
    async def marketplace_error(request: Request, exc: MarketplaceError):
        if exc.status_code >= 500:
            logger.error("request failed path=%s error=%s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=fail(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=fail(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg")}
            for e in exc.errors()
        ]
        return JSONResponse(status_code=400, content=fail("Invalid request.", details))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("unhandled error path=%s", request.url.path)
        message = "Internal server error."
        if not settings.is_production:
            message = f"{message} ({type(exc).__name__})"
        return JSONResponse(status_code=500, content=fail(message))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Process-wide collaborators, reached by routes through app.core.deps
    app.state.settings = settings
    app.state.moderation_cache = ModerationCache(
        ttl_seconds=settings.moderation_cache_ttl_seconds,
        sweep_threshold=settings.moderation_cache_sweep_threshold,
    )
    app.state.fanout = NotificationFanout(
        push=PushClient.from_settings(settings),
        sms=SmsClient.from_settings(settings),
    )
    app.state.bid_submit_limiter = InMemoryRateLimiter(
        capacity=settings.bid_submit_rate_capacity,
        refill_per_sec=settings.bid_submit_rate_per_minute / 60.0,
        prune_threshold=settings.rate_limit_prune_threshold,
    )
    app.state.moderation_limiter = InMemoryRateLimiter(
        capacity=settings.moderation_rate_capacity,
        refill_per_sec=settings.moderation_rate_per_minute / 60.0,
        prune_threshold=settings.rate_limit_prune_threshold,
    )

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    _install_error_handlers(app, settings)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
