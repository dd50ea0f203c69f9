"""HTTP surface for the review card service.

Run with ``uvicorn reviewcard.api:app`` or ``python -m reviewcard.main --serve``.
"""

import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .config import settings
from .errors import ErrorCode, RateLimitError, ReviewCardError, SessionError, ValidationError
from .models import RenderOptions, SizePreset
from .rate_limit import RateLimiter
from .service import RenderResult, ReviewCardService
from .utils import bind_request, get_logger, reset_request, setup_logging

logger = get_logger(__name__)

STATUS_BY_CODE = {
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.SESSION_EXPIRED: 404,
    ErrorCode.ACCESS_DENIED: 403,
    ErrorCode.HTTP_ERROR: 502,
    ErrorCode.FETCH_FAILED: 502,
    ErrorCode.INVALID_REDIRECT: 502,
    ErrorCode.REDIRECT_FAILED: 502,
    ErrorCode.RENDER_TIMEOUT: 500,
    ErrorCode.RENDER_FAILED: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def status_for(code: ErrorCode) -> int:
    """HTTP status for an error code; anything unlisted is a client error."""
    return STATUS_BY_CODE.get(code, 400)


# ----------------------------------------------------------------------
# Request bodies
# ----------------------------------------------------------------------


class UrlRequest(BaseModel):
    url: Optional[str] = None


class StyleFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    preset: Optional[str] = None
    font_size: Optional[int] = Field(default=None, alias="fontSize")
    card_style: Optional[str] = Field(default=None, alias="cardStyle")
    template_version: Optional[str] = Field(default=None, alias="templateVersion")

    def render_options(self) -> RenderOptions:
        return RenderOptions.build(
            preset=self.preset or SizePreset.SQUARE,
            font_scale=self.font_size,
            style=self.card_style,
            template_version=self.template_version or settings.template_version,
        )


class RenderRequest(StyleFields):
    url: Optional[str] = None


class SessionRenderRequest(StyleFields):
    session_id: Optional[str] = Field(default=None, alias="sessionId")


# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------


def get_service(request: Request) -> ReviewCardService:
    return request.app.state.service


def client_ip(request: Request) -> str:
    """Client identity for rate limiting, honouring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def enforce_render_rate_limit(request: Request) -> None:
    request.app.state.rate_limiter.enforce(client_ip(request))


async def tag_request_logs(request: Request, call_next):
    """Bind a per-request tag for log records and echo it as X-Request-ID."""
    tag = request.headers.get("x-request-id", "").strip()[:64]
    if not tag:
        tag = f"{client_ip(request)}-{secrets.token_hex(4)}"
    token = bind_request(tag)
    try:
        response = await call_next(request)
    finally:
        reset_request(token)
    response.headers["X-Request-ID"] = tag
    return response


def _require_url(url: Optional[str]) -> str:
    if not url or not url.strip():
        raise ValidationError(ErrorCode.MISSING_URL, "URL is required")
    return url


def _png_response(result: RenderResult, cache_control: str) -> Response:
    return Response(
        content=result.png,
        media_type="image/png",
        headers={
            "X-Cache": "HIT" if result.cache_hit else "MISS",
            "Cache-Control": cache_control,
            "Content-Disposition": 'inline; filename="review-card.png"',
        },
    )


# ----------------------------------------------------------------------
# Routes
# ----------------------------------------------------------------------

router = APIRouter()


@router.post("/metadata")
async def fetch_metadata(body: UrlRequest, service: ReviewCardService = Depends(get_service)):
    """Fetch a review and cache its metadata; returns a session id."""
    summary = await service.fetch_metadata(_require_url(body.url))
    return {"success": True, **summary.to_dict()}


@router.get("/metadata/{session_id}")
async def get_metadata(session_id: str, service: ReviewCardService = Depends(get_service)):
    return service.get_metadata(session_id).to_dict()


@router.post("/parse")
async def parse_review(body: UrlRequest, service: ReviewCardService = Depends(get_service)):
    """Fetch and parse a review without caching it."""
    metadata = await service.parse(_require_url(body.url))
    return JSONResponse(
        content=metadata.to_dict(),
        headers={"Cache-Control": "public, max-age=3600"},
    )


@router.post("/render", dependencies=[Depends(enforce_render_rate_limit)])
async def render_card(body: RenderRequest, service: ReviewCardService = Depends(get_service)):
    """Full pipeline: URL in, PNG out. Rate limited per client."""
    options = body.render_options()
    result = await service.render(url=_require_url(body.url), options=options)
    return _png_response(result, "public, max-age=3600")


@router.post("/render-from-metadata")
async def render_from_metadata(
    body: SessionRenderRequest, service: ReviewCardService = Depends(get_service)
):
    """Re-render from a cached metadata session without refetching anything."""
    if not body.session_id:
        raise SessionError(ErrorCode.MISSING_SESSION, "Session ID is required")
    result = await service.render(session_id=body.session_id, options=body.render_options())
    return _png_response(result, "no-cache")


@router.get("/health")
async def health(service: ReviewCardService = Depends(get_service)):
    try:
        report = await service.health()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
    status_code = 200 if report["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=report)


@router.get("/templates")
async def templates(service: ReviewCardService = Depends(get_service)):
    return service.templates()


# ----------------------------------------------------------------------
# Error handlers
# ----------------------------------------------------------------------


async def _review_card_error_handler(request: Request, exc: ReviewCardError) -> JSONResponse:
    status_code = status_for(exc.code)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r} {exc.details or ''}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc!r}")
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationError(ErrorCode.INVALID_REQUEST, "Invalid request body", details=str(exc.errors()))
    return JSONResponse(status_code=400, content=error.to_dict())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    error = ReviewCardError(ErrorCode.INTERNAL_ERROR, "Internal server error")
    return JSONResponse(status_code=500, content=error.to_dict())


# ----------------------------------------------------------------------
# Application factory
# ----------------------------------------------------------------------


def create_app(
    service: Optional[ReviewCardService] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built service (tests pass a fake); created on startup otherwise
        rate_limiter: Limiter for the render-from-URL route

    Returns:
        Configured FastAPI app
    """
    limiter = rate_limiter or RateLimiter()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if service is None:
            setup_logging(level=settings.log_level, gcp_project_id=settings.gcp_project_id)
        # the sweep loop of a built service also prunes the limiter
        svc = service or ReviewCardService(rate_limiter=limiter)
        await svc.start()
        app.state.service = svc
        logger.info("Review card service started")
        try:
            yield
        finally:
            await svc.close()
            logger.info("Review card service stopped")

    app = FastAPI(
        title="Review Card API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.rate_limiter = limiter
    app.middleware("http")(tag_request_logs)
    app.include_router(router, prefix="/api")
    app.add_exception_handler(ReviewCardError, _review_card_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    return app


app = create_app()
