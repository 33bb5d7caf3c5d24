import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pushgate import __version__
from pushgate.api.router import api_router
from pushgate.core.config import Settings, get_settings
from pushgate.core.exceptions import ErrorKind, PushError
from pushgate.core.limiter import build_limiter
from pushgate.core.logging import configure_logging
from pushgate.services.encryption import WebPushPayloadEncryptor
from pushgate.services.push_service import PushDispatchService, ResultListener
from pushgate.services.token_issuer import OAuthCredentials

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.AUTH_FAILURE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.MALFORMED_TOKEN_RESPONSE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.TRANSPORT_FAILURE: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.KEY_GENERATION: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.UNKNOWN: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def build_push_service(
    settings: Settings,
    http_client: httpx.AsyncClient,
    on_result: Optional[ResultListener] = None,
) -> PushDispatchService:
    oauth = None
    if settings.wns_configured:
        oauth = OAuthCredentials(
            tenant_id=settings.WNS_TENANT_ID,
            client_id=settings.WNS_CLIENT_ID,
            client_secret=settings.WNS_CLIENT_SECRET,
            scope=settings.WNS_SCOPE,
            authority=settings.OAUTH_AUTHORITY,
        )
    else:
        logger.warning("WNS credentials not configured, raw channel sends will fail")

    return PushDispatchService(
        http_client,
        oauth=oauth,
        vapid_subject=settings.VAPID_SUBJECT,
        web_push_marker=settings.WEB_PUSH_ENDPOINT_MARKER,
        timeout=settings.PUSH_TIMEOUT_SECONDS,
        token_safety_margin=timedelta(seconds=settings.TOKEN_SAFETY_MARGIN_SECONDS),
        max_concurrent=settings.BULK_MAX_CONCURRENT,
        encryptor=WebPushPayloadEncryptor(),
        on_result=on_result,
    )


def create_application(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    on_result: Optional[ResultListener] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(settings.PUSH_TIMEOUT_SECONDS),
        ) as http_client:
            app.state.push_service = build_push_service(settings, http_client, on_result)
            logger.info(f"{settings.PROJECT_NAME} started ({settings.ENVIRONMENT})")
            yield
        logger.info(f"{settings.PROJECT_NAME} stopped")

    app = FastAPI(title=settings.PROJECT_NAME, version=__version__, lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = build_limiter(settings.RATE_LIMIT_DEFAULT)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(PushError)
    async def push_error_handler(request: Request, exc: PushError):
        status_code = ERROR_STATUS.get(exc.kind, status.HTTP_400_BAD_REQUEST)
        logger.warning(f"{request.method} {request.url.path} failed: {exc.kind.value} - {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"success": False, "errorKind": exc.kind.value, "message": exc.message},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"success": False, "detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "detail": "Internal server error"},
        )

    app.include_router(api_router, prefix=settings.API_PREFIX)

    return app


app = create_application()
